from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from backend.services.agents import StructuredExtractionAgent, build_agents
from backend.services.repository import MeetingRepository

SUCCEEDED = "succeeded"
SKIPPED = "skipped"
FAILED = "failed"


class AgentOrchestrator:
    """Runs the note, task and gap agents concurrently on one transcript snapshot."""

    def __init__(
        self,
        repository: MeetingRepository | None = None,
        agents: Sequence[StructuredExtractionAgent] | None = None,
        client: Any | None = None,
    ):
        self.repository = repository or MeetingRepository()
        self.agents = list(agents) if agents is not None else build_agents(self.repository, client)
        self.last_outcomes: dict[str, str] = {}
        self.logger = logging.getLogger(__name__)

    async def run_all(self, meeting_id: str, transcript: str) -> dict[str, str]:
        if not transcript or not transcript.strip():
            return {}

        self.logger.info("Running agents for meeting %s (%s chars)", meeting_id, len(transcript))
        results = await asyncio.gather(
            *(agent.run(meeting_id, transcript) for agent in self.agents),
            return_exceptions=True,
        )

        outcomes: dict[str, str] = {}
        for agent, result in zip(self.agents, results):
            if isinstance(result, BaseException):
                self.logger.error("%s failed: %r", agent.name, result)
                outcomes[agent.name] = FAILED
            elif result:
                outcomes[agent.name] = SUCCEEDED
            else:
                outcomes[agent.name] = SKIPPED
        self.logger.info("Agent outcomes for meeting %s: %s", meeting_id, outcomes)
        self.last_outcomes = outcomes
        return outcomes
