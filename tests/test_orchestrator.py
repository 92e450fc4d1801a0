import asyncio

import pytest

from backend.services.orchestrator import FAILED, SKIPPED, SUCCEEDED, AgentOrchestrator


class FakeAgent:
    def __init__(self, name, result=True, delay=0.0):
        self.name = name
        self.result = result
        self.delay = delay
        self.calls = []

    async def run(self, meeting_id, transcript):
        self.calls.append((meeting_id, transcript))
        await asyncio.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TableWriter:
    """Agent stand-in that replaces rows tagged with its run label."""

    name = "note_agent"

    def __init__(self, repository, label, delay):
        self.repository = repository
        self.label = label
        self.delay = delay

    async def run(self, meeting_id, transcript):
        await asyncio.sleep(self.delay)
        rows = [{"section": "summary", "content": f"{self.label}-1"}, {"section": "key_points", "content": f"{self.label}-2"}]
        self.repository.replace_rows("notes", meeting_id, rows)
        return True


@pytest.mark.asyncio
async def test_run_all_runs_every_agent_on_same_snapshot(repository):
    agents = [FakeAgent("note_agent"), FakeAgent("task_agent"), FakeAgent("gap_agent")]
    orchestrator = AgentOrchestrator(repository, agents=agents)

    outcomes = await orchestrator.run_all("m1", "full transcript")

    assert outcomes == {"note_agent": SUCCEEDED, "task_agent": SUCCEEDED, "gap_agent": SUCCEEDED}
    assert all(agent.calls == [("m1", "full transcript")] for agent in agents)


@pytest.mark.asyncio
async def test_run_all_isolates_failures(repository):
    agents = [FakeAgent("note_agent", RuntimeError("boom")), FakeAgent("task_agent", False), FakeAgent("gap_agent")]
    orchestrator = AgentOrchestrator(repository, agents=agents)

    outcomes = await orchestrator.run_all("m1", "text")

    assert outcomes == {"note_agent": FAILED, "task_agent": SKIPPED, "gap_agent": SUCCEEDED}
    assert orchestrator.last_outcomes == outcomes


@pytest.mark.asyncio
async def test_run_all_skips_blank_transcript(repository):
    agent = FakeAgent("note_agent")
    orchestrator = AgentOrchestrator(repository, agents=[agent])

    assert await orchestrator.run_all("m1", "   \n") == {}
    assert agent.calls == []


@pytest.mark.asyncio
async def test_agents_run_concurrently(repository):
    agents = [FakeAgent(name, delay=0.2) for name in ("note_agent", "task_agent", "gap_agent")]
    orchestrator = AgentOrchestrator(repository, agents=agents)

    loop = asyncio.get_running_loop()
    started = loop.time()
    await orchestrator.run_all("m1", "text")
    assert loop.time() - started < 0.5


@pytest.mark.asyncio
async def test_overlapping_runs_leave_rows_from_exactly_one_run(repository):
    meeting_id = repository.create_meeting(call_sid="CA1", title="Call").id
    timer_run = AgentOrchestrator(repository, agents=[TableWriter(repository, "timer", 0.05)])
    stop_run = AgentOrchestrator(repository, agents=[TableWriter(repository, "stop", 0.0)])

    await asyncio.gather(timer_run.run_all(meeting_id, "text"), stop_run.run_all(meeting_id, "text"))

    contents = [row["content"] for row in repository.list_rows("notes", meeting_id)]
    assert contents in (["timer-1", "timer-2"], ["stop-1", "stop-2"])
