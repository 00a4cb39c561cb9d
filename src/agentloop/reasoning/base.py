from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

ANALYSIS_ACTIONS = {"reason", "search"}


@dataclass(slots=True, frozen=True)
class Analysis:
    action: str = "reason"
    arg: str = ""
    reasoning: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"action": self.action, "arg": self.arg, "reasoning": self.reasoning}


@dataclass(slots=True)
class FollowUpContext:
    current: str
    remaining: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "remaining": list(self.remaining),
            "completed": list(self.completed),
        }


class ReasoningClient(ABC):
    @abstractmethod
    async def decompose_goal(self, goal: str) -> list[str]:
        """Split a goal into initial task descriptions. Raises PlanningFailure."""

    @abstractmethod
    async def analyze_task(self, description: str) -> Analysis:
        """Decide how a task should be carried out."""

    @abstractmethod
    async def execute_task(self, description: str, analysis: Analysis) -> str:
        """Carry out a task and return its result text."""

    @abstractmethod
    async def generate_follow_ups(
        self,
        context: FollowUpContext,
        prior_result: str,
    ) -> list[str]:
        """Propose new tasks after one completed. Raises ExpansionFailure."""
