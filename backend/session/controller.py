from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

from fastapi import WebSocket

from backend.config import get_settings
from backend.models.stream_events import MediaEvent, StartEvent, StopEvent, parse_stream_event
from backend.services.audio_batcher import AudioBatch, AudioBatcher, AudioFormat
from backend.services.orchestrator import AgentOrchestrator
from backend.services.repository import MeetingRepository, RepositoryError
from backend.services.transcription_client import ElevenLabsTranscriber
from backend.utils.scheduling import RecurringTask


class SessionState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    ACTIVE = "active"
    STOPPED = "stopped"


@dataclass
class StreamSession:
    """State of one live call's media stream. Owned by a single connection."""

    batcher: AudioBatcher
    call_sid: str = ""
    stream_sid: str = ""
    meeting_id: str | None = None
    transcript_buffer: list[str] = field(default_factory=list)
    agent_timer: RecurringTask | None = None
    state: SessionState = SessionState.CREATED

    def transcript_text(self) -> str:
        return " ".join(self.transcript_buffer)


class MediaStreamController:
    def __init__(
        self,
        repository: MeetingRepository | None = None,
        transcriber: ElevenLabsTranscriber | None = None,
        orchestrator: AgentOrchestrator | None = None,
    ):
        self.settings = get_settings()
        self.repository = repository or MeetingRepository()
        self.transcriber = transcriber or ElevenLabsTranscriber()
        self.orchestrator = orchestrator or AgentOrchestrator(self.repository)
        self.logger = logging.getLogger(__name__)

    def new_session(self) -> StreamSession:
        return StreamSession(batcher=AudioBatcher.from_settings())

    async def serve(self, websocket: WebSocket) -> None:
        """Read frames off the socket while a single worker handles them in order."""
        await websocket.accept()
        self.logger.info("Media stream connected")
        session = self.new_session()
        queue: asyncio.Queue[str | bytes | None] = asyncio.Queue()
        worker = asyncio.create_task(self._consume(session, queue))
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    self.logger.info("Media stream disconnected call_sid=%s", session.call_sid)
                    break
                frame = message.get("text")
                if frame is None:
                    frame = message.get("bytes")
                if frame is not None:
                    self._enqueue(session, queue, frame)
        finally:
            await queue.put(None)
            await worker
            self.close(session)

    def _enqueue(self, session: StreamSession, queue: asyncio.Queue[str | bytes | None], frame: str | bytes) -> None:
        queue.put_nowait(frame)
        threshold = self.settings.stream_backlog_warning_frames
        if queue.qsize() == threshold:
            self.logger.warning(
                "Media stream backlog reached %s frames call_sid=%s, transcription is falling behind",
                threshold,
                session.call_sid,
            )

    async def _consume(self, session: StreamSession, queue: asyncio.Queue[str | bytes | None]) -> None:
        while True:
            raw = await queue.get()
            if raw is None:
                return
            await self.handle_message(session, raw)

    async def handle_message(self, session: StreamSession, raw: str | bytes) -> None:
        try:
            event = parse_stream_event(raw)
        except ValueError as exc:
            self.logger.warning("Ignoring malformed stream frame: %s", exc)
            return
        if event is None:
            return
        if session.state is SessionState.STOPPED:
            self.logger.debug("Stream already stopped, ignoring %s event", event.event)
            return

        try:
            if isinstance(event, StartEvent):
                await self.on_start(session, event)
            elif isinstance(event, MediaEvent):
                await self.on_media(session, event)
            elif isinstance(event, StopEvent):
                await self.on_stop(session, event)
            else:
                self.logger.info("Stream protocol connected protocol=%s version=%s", event.protocol, event.version)
        except Exception:
            self.logger.exception("Error processing %s event call_sid=%s", event.event, session.call_sid)

    async def on_start(self, session: StreamSession, event: StartEvent) -> None:
        if session.state is not SessionState.CREATED:
            self.logger.warning("Duplicate start event for call_sid=%s", session.call_sid)
            return
        session.call_sid = event.start.call_sid
        session.stream_sid = event.stream_sid or event.start.stream_sid
        session.state = SessionState.STARTED
        self.logger.info("Media stream started call_sid=%s stream_sid=%s", session.call_sid, session.stream_sid)

        media_format = event.start.media_format
        if media_format is not None:
            try:
                session.batcher.audio_format = AudioFormat.from_media_format(
                    media_format.encoding, media_format.sample_rate, media_format.channels
                )
            except ValueError as exc:
                self.logger.warning("Keeping configured audio format: %s", exc)

        try:
            meeting = self.repository.create_meeting(
                call_sid=session.call_sid,
                title=f"Call {session.call_sid[-6:]}",
            )
            session.meeting_id = meeting.id
            self.logger.info("Meeting created meeting_id=%s", meeting.id)
        except RepositoryError as exc:
            self.logger.error("Meeting creation failed for call_sid=%s, continuing without persistence: %s", session.call_sid, exc)

        session.agent_timer = RecurringTask(
            self.settings.agent_interval_seconds,
            lambda: self.run_periodic_analysis(session),
            name=f"agents-{session.call_sid}",
        )
        session.agent_timer.start()

    async def on_media(self, session: StreamSession, event: MediaEvent) -> None:
        if session.state is SessionState.STARTED:
            session.state = SessionState.ACTIVE
        try:
            audio = event.media.audio_bytes()
        except ValueError as exc:
            self.logger.warning("Dropping media frame with invalid payload: %s", exc)
            return
        batch = session.batcher.ingest(audio, event.media.track)
        if batch is not None:
            await self._transcribe_and_store(session, batch)

    async def on_stop(self, session: StreamSession, event: StopEvent) -> None:
        session.state = SessionState.STOPPED
        self.logger.info("Media stream stopped call_sid=%s", session.call_sid)

        batch = session.batcher.flush()
        if batch is not None:
            await self._transcribe_and_store(session, batch)

        if session.meeting_id and session.transcript_buffer:
            await self.orchestrator.run_all(session.meeting_id, session.transcript_text())
        else:
            self.logger.warning(
                "Skipping final analysis call_sid=%s meeting_id=%s segments=%s",
                session.call_sid,
                session.meeting_id,
                len(session.transcript_buffer),
            )

        if session.meeting_id:
            try:
                self.repository.complete_meeting(session.meeting_id)
            except (RepositoryError, KeyError) as exc:
                self.logger.error("Could not mark meeting %s completed: %s", session.meeting_id, exc)

        self.close(session)

    async def run_periodic_analysis(self, session: StreamSession) -> None:
        if not session.meeting_id or not session.transcript_buffer:
            return
        await self.orchestrator.run_all(session.meeting_id, session.transcript_text())

    async def _transcribe_and_store(self, session: StreamSession, batch: AudioBatch) -> None:
        segment = await self.transcriber.transcribe(batch)
        if segment is None or not session.meeting_id:
            return
        session.transcript_buffer.append(segment.content)
        try:
            self.repository.insert_segment(session.meeting_id, segment)
        except RepositoryError as exc:
            self.logger.error("Could not store transcript segment for meeting %s: %s", session.meeting_id, exc)

    async def aclose(self) -> None:
        await self.transcriber.aclose()

    def close(self, session: StreamSession) -> None:
        if session.agent_timer is not None:
            session.agent_timer.cancel()
            session.agent_timer = None
