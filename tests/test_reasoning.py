import asyncio
from collections.abc import AsyncIterator
from typing import Any

import pytest

from agentloop.backends.base import AgentBackend, BackendExecutionError
from agentloop.errors import ExpansionFailure, PlanningFailure, PlanningFailureKind
from agentloop.reasoning import (
    Analysis,
    BackendReasoningClient,
    FollowUpContext,
    extract_task_list,
    parse_analysis,
)


class FakeBackend(AgentBackend):
    def __init__(self, replies: list[str] | None = None, error: Exception | None = None) -> None:
        self.replies = list(replies or [])
        self.error = error
        self.prompts: list[tuple[str, str]] = []
        self.contexts: list[dict[str, Any]] = []

    async def execute(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> AsyncIterator[str]:
        self.prompts.append((system_prompt, user_prompt))
        self.contexts.append(context)
        if self.error is not None:
            raise self.error
        yield self.replies.pop(0) if self.replies else ""


def test_extract_task_list_prefers_json_array() -> None:
    content = 'Here is the plan:\n["Book flights", "Book hotel", "Book flights", ""]'

    assert extract_task_list(content) == ["Book flights", "Book hotel"]


def test_extract_task_list_falls_back_to_list_lines() -> None:
    content = "1. Book flights\n2) Book hotel\n- Draft itinerary\nsome chatter"

    assert extract_task_list(content) == ["Book flights", "Book hotel", "Draft itinerary"]


def test_extract_task_list_drops_no_task_markers() -> None:
    assert extract_task_list('["No new tasks needed"]') == []
    assert extract_task_list("Nothing left to do.") == []


def test_extract_task_list_sentence_fallback_for_plans() -> None:
    tasks = extract_task_list("Book flights. Book hotel.", sentence_fallback=True)

    assert tasks == ["Book flights", "Book hotel"]


def test_parse_analysis_reads_json_object() -> None:
    analysis = parse_analysis(
        'Sure: {"action": "search", "arg": "paris hotels", "reasoning": "need prices"}',
        "Book hotel",
    )

    assert analysis == Analysis(action="search", arg="paris hotels", reasoning="need prices")


def test_parse_analysis_defaults_to_reasoning_on_the_task() -> None:
    analysis = parse_analysis('{"action": "dance"}', "Book hotel")

    assert analysis.action == "reason"
    assert analysis.arg == "Book hotel"


def test_client_runs_the_full_cycle_against_a_backend() -> None:
    backend = FakeBackend(
        [
            '["Book flights", "Book hotel"]',
            '{"action": "reason", "arg": "flights", "reasoning": "known"}',
            "Booked AF123.",
            '["Compare airlines", "Book hotel"]',
        ]
    )
    client = BackendReasoningClient(backend, "Plan a trip to Paris", language="French", model="m1")

    async def _run() -> tuple[list[str], Analysis, str, list[str]]:
        tasks = await client.decompose_goal("Plan a trip to Paris")
        analysis = await client.analyze_task(tasks[0])
        result = await client.execute_task(tasks[0], analysis)
        follow_ups = await client.generate_follow_ups(
            FollowUpContext(
                current="Book flights",
                remaining=["Book hotel"],
                completed=["Book flights"],
            ),
            result,
        )
        return tasks, analysis, result, follow_ups

    tasks, analysis, result, follow_ups = asyncio.run(_run())

    assert tasks == ["Book flights", "Book hotel"]
    assert analysis.arg == "flights"
    assert result == "Booked AF123."
    assert follow_ups == ["Compare airlines"]
    assert all("French" in system_prompt for system_prompt, _ in backend.prompts)
    assert all(context["model"] == "m1" for context in backend.contexts)
    assert backend.contexts[2]["analysis"]["action"] == "reason"
    assert backend.contexts[3]["remaining"] == ["Book hotel"]


def test_decompose_failure_is_classified() -> None:
    backend = FakeBackend(error=BackendExecutionError("quota", status_code=429))
    client = BackendReasoningClient(backend, "Plan a trip to Paris")

    with pytest.raises(PlanningFailure) as exc_info:
        asyncio.run(client.decompose_goal("Plan a trip to Paris"))

    assert exc_info.value.kind == PlanningFailureKind.QUOTA_EXCEEDED


def test_follow_up_backend_failure_becomes_expansion_failure() -> None:
    backend = FakeBackend(error=BackendExecutionError("down", status_code=503))
    client = BackendReasoningClient(backend, "Plan a trip to Paris")

    with pytest.raises(ExpansionFailure):
        asyncio.run(
            client.generate_follow_ups(FollowUpContext(current="Book flights"), "Booked")
        )
