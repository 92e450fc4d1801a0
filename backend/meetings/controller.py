from backend.models.meeting_model import Meeting
from backend.services.repository import MeetingRepository


class MeetingsController:
    def __init__(self, repository: MeetingRepository | None = None):
        self.repository = repository or MeetingRepository()

    def list_meetings(self, user_id: str | None = None) -> list[Meeting]:
        return self.repository.list_meetings(user_id=user_id)

    def create_meeting(self, payload: dict) -> Meeting:
        title = payload.get("title")
        if not title:
            raise ValueError("title is required")
        return self.repository.create_meeting(
            call_sid=payload.get("call_sid"),
            title=title,
            user_id=payload.get("user_id"),
        )

    def get_meeting_detail(self, meeting_id: str) -> dict:
        """Meeting record together with its transcript and current artifacts."""
        meeting = self.repository.get_meeting(meeting_id)
        if not meeting:
            raise KeyError(meeting_id)
        return {
            "meeting": meeting,
            "transcript": self.repository.list_rows("transcript_segments", meeting_id),
            "notes": self.repository.list_rows("notes", meeting_id),
            "tasks": self.repository.list_rows("tasks", meeting_id),
            "gaps": self.repository.list_rows("gaps", meeting_id),
        }

    def end_meeting(self, meeting_id: str) -> Meeting:
        return self.repository.complete_meeting(meeting_id)
