from typing import Any, Literal

from pydantic import BaseModel, Field

Priority = Literal["low", "medium", "high"]


class Meeting(BaseModel):
    id: str
    user_id: str
    title: str
    call_sid: str | None = None
    status: Literal["in_progress", "completed", "cancelled"] = "in_progress"
    start_time: str | None = None
    end_time: str | None = None
    participants: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str


class TranscriptSegment(BaseModel):
    """One transcribed utterance. Persisted once and never updated."""

    speaker: str | None = None
    content: str
    start_time: float | None = None
    end_time: float | None = None
    confidence: float | None = None


class StoredRow(BaseModel):
    id: str
    meeting_id: str
    created_at: str


class StoredSegment(StoredRow, TranscriptSegment):
    pass


class MeetingNote(StoredRow):
    section: Literal["summary", "key_points", "decisions"]
    content: str


class MeetingTask(StoredRow):
    title: str
    description: str | None = None
    assigned_to: str | None = None
    priority: Priority = "medium"
    due_date: str | None = None
    source_text: str | None = None
    status: Literal["pending", "in_progress", "completed", "cancelled"] = "pending"


class MeetingGap(StoredRow):
    topic: str
    description: str | None = None
    suggested_questions: list[str] = Field(default_factory=list)
    priority: Priority = "medium"
