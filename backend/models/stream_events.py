"""Frames sent by the Twilio Media Streams protocol over the call's WebSocket."""
from __future__ import annotations

import base64
import json
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class _StreamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class MediaFormat(_StreamModel):
    encoding: str = "audio/x-mulaw"
    sample_rate: int = Field(8000, alias="sampleRate")
    channels: int = 1


class StartPayload(_StreamModel):
    stream_sid: str = Field(alias="streamSid")
    call_sid: str = Field(alias="callSid")
    tracks: list[str] = Field(default_factory=list)
    media_format: MediaFormat | None = Field(None, alias="mediaFormat")


class MediaPayload(_StreamModel):
    track: str = "inbound"
    payload: str
    chunk: str | None = None
    timestamp: str | None = None

    def audio_bytes(self) -> bytes:
        return base64.b64decode(self.payload, validate=True)


class StopPayload(_StreamModel):
    call_sid: str | None = Field(None, alias="callSid")


class ConnectedEvent(_StreamModel):
    event: Literal["connected"]
    protocol: str | None = None
    version: str | None = None


class StartEvent(_StreamModel):
    event: Literal["start"]
    stream_sid: str = Field(alias="streamSid")
    start: StartPayload


class MediaEvent(_StreamModel):
    event: Literal["media"]
    stream_sid: str | None = Field(None, alias="streamSid")
    media: MediaPayload


class StopEvent(_StreamModel):
    event: Literal["stop"]
    stream_sid: str | None = Field(None, alias="streamSid")
    stop: StopPayload = Field(default_factory=StopPayload)


StreamEvent = Union[ConnectedEvent, StartEvent, MediaEvent, StopEvent]

EVENT_MODELS: dict[str, type[_StreamModel]] = {
    "connected": ConnectedEvent,
    "start": StartEvent,
    "media": MediaEvent,
    "stop": StopEvent,
}


def parse_stream_event(raw: str | bytes) -> StreamEvent | None:
    """Parse one frame.

    Returns ``None`` for event kinds this service does not act on (``mark``,
    ``dtmf``). Raises ``json.JSONDecodeError`` or ``pydantic.ValidationError``
    for malformed frames.
    """
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("stream frame must be a JSON object")
    kind = data.get("event")
    model = EVENT_MODELS.get(kind) if isinstance(kind, str) else None
    if model is None:
        return None
    return model.model_validate(data)
