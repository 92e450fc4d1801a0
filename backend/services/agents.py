"""Structured-extraction agents that turn a transcript into meeting artifacts.

Every agent follows the same steps: ask the model for JSON, find the list of
items in the answer, then replace that artifact kind's rows for the meeting.
The three concrete agents only differ in their :class:`ExtractionConfig`.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from backend.services import bedrock_utils
from backend.services.repository import MeetingRepository, RepositoryError

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")
NOTE_SECTIONS = ("summary", "key_points", "decisions")

RowMapper = Callable[[dict[str, Any]], "dict[str, Any] | None"]


@dataclass(frozen=True)
class ExtractionConfig:
    name: str
    table: str
    instruction: str
    output_keys: Sequence[str]
    row_mapper: RowMapper
    temperature: float = 0.3


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _priority(value: Any) -> str:
    value = (_text(value) or "").lower()
    return value if value in PRIORITIES else "medium"


def map_note(item: dict[str, Any]) -> dict[str, Any] | None:
    section = (_text(item.get("section")) or "").lower()
    content = item.get("content")
    if isinstance(content, list):
        content = "\n".join(f"- {entry}" for entry in content if _text(entry))
    content = _text(content)
    if section not in NOTE_SECTIONS or not content:
        return None
    return {"section": section, "content": content}


def map_task(item: dict[str, Any]) -> dict[str, Any] | None:
    title = _text(item.get("title"))
    if not title:
        return None
    return {
        "title": title,
        "description": _text(item.get("description")),
        "assigned_to": _text(item.get("assigned_to") or item.get("assignee")),
        "priority": _priority(item.get("priority")),
        "due_date": _text(item.get("due_date")),
        "source_text": _text(item.get("source_text") or item.get("source_quote")),
        "status": "pending",
    }


def map_gap(item: dict[str, Any]) -> dict[str, Any] | None:
    topic = _text(item.get("topic"))
    if not topic:
        return None
    questions = item.get("suggested_questions") or []
    if isinstance(questions, str):
        questions = [questions]
    return {
        "topic": topic,
        "description": _text(item.get("description")),
        "suggested_questions": [q for q in (_text(entry) for entry in questions) if q][:3],
        "priority": _priority(item.get("priority")),
    }


NOTE_AGENT = ExtractionConfig(
    name="note_agent",
    table="notes",
    instruction="""You are a meeting note-taking assistant.
Given the transcript of a meeting, produce structured notes in JSON format.
Return a JSON array of objects, each with:
  - "section": one of "summary", "key_points", "decisions"
  - "content": the text for that section

Rules:
- The summary should be 2-4 sentences.
- key_points should be a bulleted list (use "- " prefixes).
- decisions should list any explicit decisions or agreements.
- If there are no decisions yet, omit that section.
- Only return the JSON array, nothing else.""",
    output_keys=("notes", "sections", "note_sections", "meeting_notes"),
    row_mapper=map_note,
)

TASK_AGENT = ExtractionConfig(
    name="task_agent",
    table="tasks",
    instruction="""You are a task extraction assistant.
Given a meeting transcript, identify actionable tasks that were discussed or assigned.

Return a JSON array of task objects with these fields:
  - "title": short description of the task
  - "description": fuller context (1-2 sentences)
  - "assigned_to": name of the person responsible (or null if unclear)
  - "priority": "low", "medium", or "high"
  - "due_date": ISO date string if mentioned, or null
  - "source_text": the exact quote from the transcript that led to this task

Rules:
- Only include concrete, actionable tasks, not vague suggestions.
- If no tasks are found, return an empty array [].
- Only return the JSON array, nothing else.""",
    output_keys=("tasks", "action_items", "items"),
    row_mapper=map_task,
    temperature=0.2,
)

GAP_AGENT = ExtractionConfig(
    name="gap_agent",
    table="gaps",
    instruction="""You are a meeting analysis assistant that finds gaps.
Given a meeting transcript, identify topics that were:
  - Raised but not resolved
  - Mentioned briefly without enough detail
  - Promised for follow-up but no clear next step
  - Questions that were asked but not answered

Return a JSON array of gap objects with:
  - "topic": short name for the gap
  - "description": 1-2 sentence explanation of the gap
  - "suggested_questions": array of 1-3 questions to address in the next meeting
  - "priority": "low", "medium", or "high"

Rules:
- Focus on substantive gaps, not minor details.
- If no meaningful gaps are found, return an empty array [].
- Only return the JSON array, nothing else.""",
    output_keys=("gaps", "unresolved_topics", "items"),
    row_mapper=map_gap,
)

AGENT_CONFIGS = (NOTE_AGENT, TASK_AGENT, GAP_AGENT)


def extract_items(parsed: Any, output_keys: Sequence[str]) -> list[Any]:
    """Find the item list in a parsed model answer.

    Tries a top-level array, then each of ``output_keys``, then the first
    array-valued field of the object. Anything else counts as no items.
    """
    if isinstance(parsed, list):
        return parsed
    if not isinstance(parsed, dict):
        return []
    for key in output_keys:
        value = parsed.get(key)
        if isinstance(value, list):
            return value
    for value in parsed.values():
        if isinstance(value, list):
            return value
    return []


class StructuredExtractionAgent:
    def __init__(self, config: ExtractionConfig, repository: MeetingRepository, client: Any | None = None):
        self.config = config
        self.repository = repository
        self.client = client
        self.logger = logging.getLogger(f"{__name__}.{config.name}")

    @property
    def name(self) -> str:
        return self.config.name

    async def run(self, meeting_id: str, transcript: str) -> bool:
        """Replace this agent's artifact rows from ``transcript``.

        Never raises. Returns ``False`` when the run was abandoned, in which
        case stored rows are left as they were.
        """
        try:
            raw = await asyncio.to_thread(
                bedrock_utils.complete_json,
                self.config.instruction,
                f"Transcript:\n\n{transcript}",
                self.config.temperature,
                self.client,
            )
        except (BotoCoreError, ClientError) as exc:
            self.logger.error("Model call failed for meeting %s: %s", meeting_id, exc)
            return False

        if not raw:
            self.logger.warning("No content returned for meeting %s", meeting_id)
            return False

        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            self.logger.error("Failed to parse model response: %s", raw[:500])
            return False

        items = extract_items(parsed, self.config.output_keys)
        rows = [row for row in (self.config.row_mapper(item) for item in items if isinstance(item, dict)) if row]

        try:
            self.repository.replace_rows(self.config.table, meeting_id, rows)
        except (RepositoryError, ValueError) as exc:
            self.logger.error("Could not store %s for meeting %s: %s", self.config.table, meeting_id, exc)
            return False

        self.logger.info("Stored %s %s rows for meeting %s", len(rows), self.config.table, meeting_id)
        return True


def build_agents(repository: MeetingRepository, client: Any | None = None) -> list[StructuredExtractionAgent]:
    return [StructuredExtractionAgent(config, repository, client) for config in AGENT_CONFIGS]
