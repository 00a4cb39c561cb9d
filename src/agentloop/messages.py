from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, assert_never

from agentloop.reasoning.base import Analysis
from agentloop.tasks import Task, TaskStatus

logger = logging.getLogger(__name__)


class MessageKind(StrEnum):
    GOAL = "goal"
    THINKING = "thinking"
    TASK = "task"
    ANALYSIS = "analysis"
    ERROR = "error"
    COMPLETED = "completed"
    LOOP_LIMIT = "loop-limit"
    MANUAL_SHUTDOWN = "manual-shutdown"


@dataclass(slots=True, frozen=True)
class GoalMessage:
    kind: ClassVar[MessageKind] = MessageKind.GOAL
    goal: str


@dataclass(slots=True, frozen=True)
class ThinkingMessage:
    kind: ClassVar[MessageKind] = MessageKind.THINKING


@dataclass(slots=True, frozen=True)
class TaskMessage:
    kind: ClassVar[MessageKind] = MessageKind.TASK
    task: Task
    previous_status: TaskStatus | None = None

    @property
    def status(self) -> TaskStatus:
        return self.task.status


@dataclass(slots=True, frozen=True)
class AnalysisMessage:
    kind: ClassVar[MessageKind] = MessageKind.ANALYSIS
    task_id: str
    analysis: Analysis


@dataclass(slots=True, frozen=True)
class ErrorMessage:
    kind: ClassVar[MessageKind] = MessageKind.ERROR
    text: str
    key: str = ""
    fatal: bool = True


@dataclass(slots=True, frozen=True)
class CompletedMessage:
    kind: ClassVar[MessageKind] = MessageKind.COMPLETED


@dataclass(slots=True, frozen=True)
class LoopLimitMessage:
    kind: ClassVar[MessageKind] = MessageKind.LOOP_LIMIT
    loop_budget: int


@dataclass(slots=True, frozen=True)
class ManualShutdownMessage:
    kind: ClassVar[MessageKind] = MessageKind.MANUAL_SHUTDOWN


Message = (
    GoalMessage
    | ThinkingMessage
    | TaskMessage
    | AnalysisMessage
    | ErrorMessage
    | CompletedMessage
    | LoopLimitMessage
    | ManualShutdownMessage
)


def describe_message(message: Message) -> str:
    match message:
        case GoalMessage(goal=goal):
            return f"Embarking on a new goal: {goal}"
        case ThinkingMessage():
            return "Thinking..."
        case TaskMessage(task=task):
            if task.status == TaskStatus.STARTED:
                return f"Added task: {task.value}"
            if task.status == TaskStatus.EXECUTING:
                return f"Executing: {task.value}"
            if task.status == TaskStatus.COMPLETED:
                return f"Completed: {task.value}\n{task.info or ''}".rstrip()
            return f"Finished: {task.value}"
        case AnalysisMessage(analysis=analysis):
            if analysis.action == "search":
                return f"Searching the web for '{analysis.arg}'..."
            return "Generating response..."
        case ErrorMessage(text=text, fatal=fatal):
            return f"Error: {text}" if fatal else f"Warning: {text}"
        case CompletedMessage():
            return "All tasks completed. Shutting down."
        case LoopLimitMessage(loop_budget=loop_budget):
            return f"This agent has maxed out on loops ({loop_budget}). Shutting down."
        case ManualShutdownMessage():
            return "The agent has been manually shut down."
        case _:
            assert_never(message)


def message_to_dict(message: Message) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": str(message.kind)}
    match message:
        case GoalMessage(goal=goal):
            payload["value"] = goal
        case TaskMessage(task=task, previous_status=previous_status):
            payload.update(task.to_dict())
            payload["previous_status"] = str(previous_status) if previous_status else None
        case AnalysisMessage(task_id=task_id, analysis=analysis):
            payload["task_id"] = task_id
            payload.update(analysis.to_dict())
        case ErrorMessage(text=text, key=key, fatal=fatal):
            payload.update({"value": text, "key": key, "fatal": fatal})
        case LoopLimitMessage(loop_budget=loop_budget):
            payload["loop_budget"] = loop_budget
        case ThinkingMessage() | CompletedMessage() | ManualShutdownMessage():
            pass
        case _:
            assert_never(message)
    return payload


class EventSink(ABC):
    @abstractmethod
    def emit(self, message: Message) -> None:
        """Deliver a message. Must not block and must preserve call order."""


class ListSink(EventSink):
    def __init__(self) -> None:
        self.messages: list[Message] = []

    def emit(self, message: Message) -> None:
        self.messages.append(message)

    def of_kind(self, kind: MessageKind) -> list[Message]:
        return [message for message in self.messages if message.kind == kind]


class LoggingSink(EventSink):
    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def emit(self, message: Message) -> None:
        logger.log(self.level, "[%s] %s", message.kind, describe_message(message))
