from __future__ import annotations

import struct
from dataclasses import dataclass, field

from backend.config import get_settings

# WAVE_FORMAT_* tags and the sample width each encoding uses on the wire.
_ENCODINGS: dict[str, tuple[int, int]] = {
    "mulaw": (7, 8),
    "alaw": (6, 8),
    "linear16": (1, 16),
}
_ENCODING_ALIASES = {
    "audio/x-mulaw": "mulaw",
    "mu-law": "mulaw",
    "ulaw": "mulaw",
    "audio/x-alaw": "alaw",
    "a-law": "alaw",
    "audio/l16": "linear16",
    "pcm": "linear16",
    "l16": "linear16",
}


def normalize_encoding(encoding: str) -> str:
    key = (encoding or "").strip().lower()
    key = _ENCODING_ALIASES.get(key, key)
    if key not in _ENCODINGS:
        raise ValueError(f"Unsupported audio encoding: {encoding!r}")
    return key


@dataclass(frozen=True)
class AudioFormat:
    encoding: str = "mulaw"
    sample_rate: int = 8000
    channels: int = 1

    @classmethod
    def from_settings(cls) -> "AudioFormat":
        settings = get_settings()
        return cls(
            encoding=normalize_encoding(settings.audio_encoding),
            sample_rate=settings.audio_sample_rate,
            channels=settings.audio_channels,
        )

    @classmethod
    def from_media_format(cls, encoding: str, sample_rate: int, channels: int) -> "AudioFormat":
        return cls(encoding=normalize_encoding(encoding), sample_rate=sample_rate, channels=channels)

    @property
    def format_tag(self) -> int:
        return _ENCODINGS[self.encoding][0]

    @property
    def bits_per_sample(self) -> int:
        return _ENCODINGS[self.encoding][1]

    @property
    def block_align(self) -> int:
        return self.channels * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate * self.block_align


def wrap_wav(data: bytes, fmt: AudioFormat) -> bytes:
    """Prefix raw samples with a canonical 44-byte RIFF/WAVE header."""
    header = struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + len(data),
        b"WAVE",
        b"fmt ",
        16,
        fmt.format_tag,
        fmt.channels,
        fmt.sample_rate,
        fmt.byte_rate,
        fmt.block_align,
        fmt.bits_per_sample,
        b"data",
        len(data),
    )
    return header + data


@dataclass
class AudioBatch:
    payload: bytes
    raw_length: int
    chunk_count: int
    track: str | None = None


@dataclass
class AudioBatcher:
    """Collects decoded media frames for one stream and packages them as WAV.

    Not shared between sessions. ``ingest`` and ``flush`` never await, so on a
    single event loop they cannot interleave with each other.
    """

    batch_size: int = 50
    audio_format: AudioFormat = field(default_factory=AudioFormat)
    _chunks: list[bytes] = field(default_factory=list, init=False, repr=False)
    _track: str | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")

    @classmethod
    def from_settings(cls) -> "AudioBatcher":
        return cls(batch_size=get_settings().audio_batch_chunks, audio_format=AudioFormat.from_settings())

    @property
    def pending_chunks(self) -> int:
        return len(self._chunks)

    @property
    def pending_bytes(self) -> int:
        return sum(len(chunk) for chunk in self._chunks)

    def ingest(self, raw: bytes, track: str | None = None) -> AudioBatch | None:
        self._chunks.append(raw)
        if track:
            self._track = track
        if len(self._chunks) < self.batch_size:
            return None
        return self.flush()

    def flush(self) -> AudioBatch | None:
        if not self._chunks:
            return None
        chunks, track = self._chunks, self._track
        self._chunks = []
        data = b"".join(chunks)
        return AudioBatch(
            payload=wrap_wav(data, self.audio_format),
            raw_length=len(data),
            chunk_count=len(chunks),
            track=track,
        )
