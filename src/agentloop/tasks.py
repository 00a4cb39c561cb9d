from __future__ import annotations

from collections.abc import Iterator
from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any
from uuid import uuid1

from agentloop.errors import AgentLoopError


class TaskStatus(StrEnum):
    STARTED = "started"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FINAL = "final"


_STATUS_RANK = {
    TaskStatus.STARTED: 0,
    TaskStatus.EXECUTING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.FINAL: 3,
}


class DuplicateTaskError(AgentLoopError):
    """Raised when a task id is appended twice."""


class InvalidTaskTransition(AgentLoopError):
    """Raised when a status update would move a task backwards."""


def _new_task_id() -> str:
    return uuid1().hex


@dataclass(slots=True)
class Task:
    value: str
    id: str = ""
    status: TaskStatus = TaskStatus.STARTED
    info: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            self.id = _new_task_id()

    def copy(self) -> Task:
        return Task(value=self.value, id=self.id, status=self.status, info=self.info)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = str(self.status)
        return payload


class TaskStore:
    """Insertion-ordered tasks of a single run.

    Only the orchestrator that owns the store mutates it. Readers get
    snapshot copies so a display layer never observes a half-applied update.
    """

    def __init__(self) -> None:
        self._tasks: list[Task] = []
        self._by_id: dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter([task.copy() for task in self._tasks])

    def append(self, task: Task) -> Task:
        if task.id in self._by_id:
            raise DuplicateTaskError(f"Task id already present: {task.id}")
        stored = task.copy()
        self._tasks.append(stored)
        self._by_id[stored.id] = stored
        return stored.copy()

    def get(self, task_id: str) -> Task:
        return self._by_id[task_id].copy()

    def update_status(
        self,
        task_id: str,
        status: TaskStatus,
        info: str | None = None,
    ) -> Task:
        task = self._by_id[task_id]
        if _STATUS_RANK[status] < _STATUS_RANK[task.status]:
            raise InvalidTaskTransition(
                f"Task {task_id} cannot move from {task.status} back to {status}"
            )
        task.status = status
        if info is not None:
            task.info = info
        return task.copy()

    def remaining_tasks(self) -> list[Task]:
        return [task.copy() for task in self._tasks if task.status == TaskStatus.STARTED]

    def executing_count(self) -> int:
        return sum(1 for task in self._tasks if task.status == TaskStatus.EXECUTING)

    def to_list(self) -> list[dict[str, Any]]:
        return [task.to_dict() for task in self._tasks]
