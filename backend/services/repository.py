from __future__ import annotations

import json
import threading
import uuid
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel

from backend.config import get_settings
from backend.models.meeting_model import (
    Meeting,
    MeetingGap,
    MeetingNote,
    MeetingTask,
    StoredSegment,
    TranscriptSegment,
)
from backend.utils.time_utils import now_iso

ROW_MODELS: dict[str, type[BaseModel]] = {
    "transcript_segments": StoredSegment,
    "notes": MeetingNote,
    "tasks": MeetingTask,
    "gaps": MeetingGap,
}


class RepositoryError(RuntimeError):
    """Raised when the backing files cannot be read or written."""


class MeetingRepository:
    """JSON-file backed store for meetings, transcript segments and artifacts.

    Each table lives in ``<data_dir>/<table>.json`` as a list of rows. All reads
    and writes go through one lock, so a ``replace_rows`` call is observed by
    other callers either entirely before or entirely after it happened.
    """

    def __init__(self, storage_dir: Path | None = None):
        self.storage_dir = Path(storage_dir or get_settings().data_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _path(self, table: str) -> Path:
        return self.storage_dir / f"{table}.json"

    def _read_raw(self, table: str) -> list[dict]:
        path = self._path(table)
        if not path.exists():
            return []
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return []
        except OSError as exc:
            raise RepositoryError(f"could not read {table}: {exc}") from exc

    def _write_raw(self, table: str, payload: list[dict]) -> None:
        path = self._path(table)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(path)
        except OSError as exc:
            raise RepositoryError(f"could not write {table}: {exc}") from exc

    def _new_row(self, table: str, meeting_id: str, values: dict[str, Any]) -> dict:
        model = ROW_MODELS[table]
        row = model(**{**values, "id": uuid.uuid4().hex, "meeting_id": meeting_id, "created_at": now_iso()})
        return row.model_dump()

    # meetings

    def create_meeting(self, call_sid: str | None, title: str, user_id: str | None = None) -> Meeting:
        now = now_iso()
        meeting = Meeting(
            id=uuid.uuid4().hex,
            user_id=user_id or get_settings().default_user_id,
            title=title,
            call_sid=call_sid,
            status="in_progress",
            start_time=now,
            created_at=now,
        )
        with self._lock:
            data = self._read_raw("meetings")
            data.append(meeting.model_dump())
            self._write_raw("meetings", data)
        return meeting

    def list_meetings(self, user_id: str | None = None) -> list[Meeting]:
        with self._lock:
            payload = self._read_raw("meetings")
        meetings = [Meeting(**item) for item in payload if user_id is None or item.get("user_id") == user_id]
        return sorted(meetings, key=lambda meeting: meeting.created_at, reverse=True)

    def get_meeting(self, meeting_id: str) -> Meeting | None:
        with self._lock:
            for item in self._read_raw("meetings"):
                if item.get("id") == meeting_id:
                    return Meeting(**item)
        return None

    def update_meeting(self, meeting_id: str, **updates) -> Meeting:
        with self._lock:
            data = self._read_raw("meetings")
            for idx, item in enumerate(data):
                if item.get("id") == meeting_id:
                    updated = Meeting(**item).model_copy(update=updates)
                    data[idx] = updated.model_dump()
                    self._write_raw("meetings", data)
                    return updated
        raise KeyError(f"Meeting {meeting_id} not found")

    def complete_meeting(self, meeting_id: str) -> Meeting:
        return self.update_meeting(meeting_id, status="completed", end_time=now_iso())

    # transcript segments and artifacts

    def insert_segment(self, meeting_id: str, segment: TranscriptSegment) -> dict:
        return self.insert_rows("transcript_segments", meeting_id, [segment.model_dump()])[0]

    def list_rows(self, table: str, meeting_id: str) -> list[dict]:
        with self._lock:
            return [row for row in self._read_raw(table) if row.get("meeting_id") == meeting_id]

    def delete_rows(self, table: str, meeting_id: str) -> int:
        with self._lock:
            data = self._read_raw(table)
            kept = [row for row in data if row.get("meeting_id") != meeting_id]
            self._write_raw(table, kept)
        return len(data) - len(kept)

    def insert_rows(self, table: str, meeting_id: str, rows: Iterable[dict[str, Any]]) -> list[dict]:
        new_rows = [self._new_row(table, meeting_id, row) for row in rows]
        if not new_rows:
            return []
        with self._lock:
            data = self._read_raw(table)
            data.extend(new_rows)
            self._write_raw(table, data)
        return new_rows

    def replace_rows(self, table: str, meeting_id: str, rows: Iterable[dict[str, Any]]) -> list[dict]:
        """Delete every ``table`` row of the meeting and insert ``rows`` in one write."""
        new_rows = [self._new_row(table, meeting_id, row) for row in rows]
        with self._lock:
            data = [row for row in self._read_raw(table) if row.get("meeting_id") != meeting_id]
            data.extend(new_rows)
            self._write_raw(table, data)
        return new_rows
