from __future__ import annotations

import logging
from typing import Any

import httpx

from backend.config import get_settings
from backend.models.meeting_model import TranscriptSegment
from backend.services.audio_batcher import AudioBatch

logger = logging.getLogger(__name__)

TRACK_SPEAKERS = {"inbound": "Caller"}
DEFAULT_SPEAKER = "Agent"


def speaker_for_track(track: str | None) -> str:
    return TRACK_SPEAKERS.get(track or "", DEFAULT_SPEAKER)


def segment_from_response(result: dict[str, Any], track: str | None = None) -> TranscriptSegment | None:
    """Normalize an ElevenLabs speech-to-text response body.

    Empty or whitespace-only text yields ``None`` so silent batches never turn
    into segments.
    """
    text = result.get("text")
    if not isinstance(text, str) or not text.strip():
        return None

    words = [word for word in result.get("words") or [] if isinstance(word, dict)]
    first = words[0] if words else {}
    last = words[-1] if words else {}

    scores = [word["confidence"] for word in words if isinstance(word.get("confidence"), (int, float))]
    return TranscriptSegment(
        speaker=first.get("speaker_id") or speaker_for_track(track),
        content=text.strip(),
        start_time=first.get("start"),
        end_time=last.get("end"),
        confidence=sum(scores) / len(scores) if scores else None,
    )


class ElevenLabsTranscriber:
    """Sends packaged audio batches to the ElevenLabs speech-to-text endpoint."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self.settings = get_settings()
        self.client = client or httpx.AsyncClient(timeout=self.settings.transcription_timeout_seconds)

    async def transcribe(self, batch: AudioBatch) -> TranscriptSegment | None:
        try:
            response = await self.client.post(
                self.settings.elevenlabs_api_url,
                headers={"xi-api-key": self.settings.elevenlabs_api_key},
                files={"file": ("audio.wav", batch.payload, "audio/wav")},
                data={
                    "model_id": self.settings.elevenlabs_model_id,
                    "num_speakers": str(self.settings.elevenlabs_num_speakers),
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Speech-to-text request failed: %s", exc)
            return None

        if not response.is_success:
            logger.error("Speech-to-text error status=%s body=%s", response.status_code, response.text[:500])
            return None

        try:
            result = response.json()
        except ValueError:
            logger.error("Speech-to-text returned a non-JSON body: %s", response.text[:500])
            return None
        if not isinstance(result, dict):
            return None

        segment = segment_from_response(result, batch.track)
        if segment:
            logger.debug("Transcribed %s bytes into %s chars", batch.raw_length, len(segment.content))
        return segment

    async def aclose(self) -> None:
        await self.client.aclose()
