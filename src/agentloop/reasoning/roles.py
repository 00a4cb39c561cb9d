from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from agentloop.backends.base import AgentBackend


@dataclass(slots=True)
class RoleResponse:
    role: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


class RoleAgent:
    role: str = "agent"
    prompt_template: str = "You are an autonomous task agent. Answer in {language}."

    def __init__(
        self,
        backend: AgentBackend,
        *,
        language: str = "English",
        model: str | None = None,
    ) -> None:
        self.backend = backend
        self.language = language
        self.model = model
        self.system_prompt = self.prompt_template.strip().format(language=language)

    async def run(self, instruction: str, context: dict[str, Any]) -> RoleResponse:
        run_context = dict(context)
        if self.model:
            run_context["model"] = self.model
        content = await self.backend.complete(
            system_prompt=self.system_prompt,
            user_prompt=instruction,
            context=run_context,
        )
        return RoleResponse(
            role=self.role,
            content=content,
            metadata={"instruction": instruction, "model": self.model},
        )


class StartGoalAgent(RoleAgent):
    role = "start_goal"
    prompt_template = """
You are a task creation AI called AgentLoop. You answer in the "{language}" language.
You are not part of any system or device. You first understand the problem,
extract the relevant parts, and build a task plan for it.
Return between one and five tasks as a JSON array of strings, for example:
["Search the web for flight prices", "Compare hotel options"]
Return only the JSON array.
"""


class AnalyzeTaskAgent(RoleAgent):
    role = "analyze_task"
    prompt_template = """
You decide how a task for an overall objective should be carried out.
Answer in the "{language}" language. Pick one action:
- "reason": answer from your own knowledge; "arg" is the question to reason about.
- "search": look something up on the web; "arg" is a short search query.
Return a JSON object with the keys "action", "arg" and "reasoning" and nothing else.
"""


class ExecuteTaskAgent(RoleAgent):
    role = "execute_task"
    prompt_template = """
You execute one task of an overall objective and report the result.
Answer in the "{language}" language. Be concrete, complete the task as well as
you can, and write the result in markdown.
"""


class CreateTasksAgent(RoleAgent):
    role = "create_tasks"
    prompt_template = """
You are an AI task creation agent. You answer in the "{language}" language.
You receive an objective, the tasks completed so far, the last task with its
result, and the tasks that are still pending. Create new tasks only if they are
needed to reach the objective and are not already pending or completed.
Return a JSON array of strings. Return [] if no further tasks are needed.
"""
