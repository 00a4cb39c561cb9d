from __future__ import annotations

import json
import logging
import re
from typing import Any

from agentloop.backends.base import AgentBackend, BackendExecutionError
from agentloop.errors import ExpansionFailure, PlanningFailure, classify_planning_error
from agentloop.reasoning.base import (
    ANALYSIS_ACTIONS,
    Analysis,
    FollowUpContext,
    ReasoningClient,
)
from agentloop.reasoning.roles import (
    AnalyzeTaskAgent,
    CreateTasksAgent,
    ExecuteTaskAgent,
    StartGoalAgent,
)

logger = logging.getLogger(__name__)

LIST_ITEM_PATTERN = re.compile(r"^(?:[-*]|\d+[.)])\s+(.+)$")
MAX_TASKS = 24
NO_TASK_MARKERS = ("task complete", "no new task", "no further task", "no additional task")


def _json_fragment(content: str, opener: str, closer: str) -> Any | None:
    start = content.find(opener)
    end = content.rfind(closer)
    if start < 0 or end <= start:
        return None
    try:
        return json.loads(content[start : end + 1])
    except json.JSONDecodeError:
        return None


def extract_task_list(content: str, *, sentence_fallback: bool = False) -> list[str]:
    """Pull task descriptions out of a model reply.

    A JSON array is preferred; bullet or numbered lines are the fallback.
    """
    items: list[str] = []
    parsed = _json_fragment(content, "[", "]")
    if isinstance(parsed, list):
        items = [str(item).strip() for item in parsed if isinstance(item, (str, int, float))]
    else:
        for raw_line in content.splitlines():
            match = LIST_ITEM_PATTERN.match(raw_line.strip())
            if match:
                items.append(match.group(1).strip())
        if not items and sentence_fallback and content.strip():
            items = [part.strip() for part in re.split(r"[\n.]", content) if part.strip()][:6]

    tasks: list[str] = []
    for item in items:
        lowered = item.lower()
        if not item or any(marker in lowered for marker in NO_TASK_MARKERS):
            continue
        if item not in tasks:
            tasks.append(item)
    return tasks[:MAX_TASKS]


def parse_analysis(content: str, description: str) -> Analysis:
    parsed = _json_fragment(content, "{", "}")
    if isinstance(parsed, dict):
        action = str(parsed.get("action", "")).strip().lower()
        arg = str(parsed.get("arg", "")).strip()
        if action in ANALYSIS_ACTIONS:
            return Analysis(
                action=action,
                arg=arg or description,
                reasoning=str(parsed.get("reasoning", "")).strip(),
            )
    return Analysis(action="reason", arg=description, reasoning=content.strip())


class BackendReasoningClient(ReasoningClient):
    """ReasoningClient that prompts an AgentBackend once per operation."""

    def __init__(
        self,
        backend: AgentBackend,
        goal: str,
        *,
        language: str = "English",
        model: str | None = None,
    ) -> None:
        self.goal = goal
        self.start_agent = StartGoalAgent(backend, language=language, model=model)
        self.analyze_agent = AnalyzeTaskAgent(backend, language=language, model=model)
        self.execute_agent = ExecuteTaskAgent(backend, language=language, model=model)
        self.create_agent = CreateTasksAgent(backend, language=language, model=model)

    async def decompose_goal(self, goal: str) -> list[str]:
        try:
            response = await self.start_agent.run(
                instruction=f"Objective: {goal}\nCreate the initial list of tasks.",
                context={"goal": goal},
            )
        except PlanningFailure:
            raise
        except BackendExecutionError as exc:
            raise classify_planning_error(exc) from exc
        tasks = extract_task_list(response.content, sentence_fallback=True)
        logger.debug("Goal decomposed into %d task(s)", len(tasks))
        return tasks

    async def analyze_task(self, description: str) -> Analysis:
        response = await self.analyze_agent.run(
            instruction=f"Objective: {self.goal}\nTask: {description}",
            context={"goal": self.goal, "task": description},
        )
        return parse_analysis(response.content, description)

    async def execute_task(self, description: str, analysis: Analysis) -> str:
        response = await self.execute_agent.run(
            instruction=f"Objective: {self.goal}\nTask: {description}",
            context={"goal": self.goal, "task": description, "analysis": analysis.to_dict()},
        )
        return response.content

    async def generate_follow_ups(
        self,
        context: FollowUpContext,
        prior_result: str,
    ) -> list[str]:
        try:
            response = await self.create_agent.run(
                instruction=(
                    f"Objective: {self.goal}\n"
                    f"Last task: {context.current}\n"
                    f"Result: {prior_result}"
                ),
                context={"goal": self.goal, **context.to_dict()},
            )
        except BackendExecutionError as exc:
            raise ExpansionFailure(f"Could not create follow-up tasks: {exc}") from exc
        known = {context.current, *context.remaining, *context.completed}
        return [task for task in extract_task_list(response.content) if task not in known]
