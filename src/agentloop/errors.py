from __future__ import annotations

from enum import StrEnum

ERROR_MESSAGES = {
    "ERROR_API_KEY_QUOTA": (
        "You have exceeded the maximum number of requests allowed for your API key."
    ),
    "ERROR_OPENAI_API_KEY_NO_GPT4": (
        "Your API key does not have access to the requested model. "
        "Select another model or check your account."
    ),
    "ERROR_ACCESSING_OPENAI_API_KEY": (
        "Error accessing the reasoning API. Check your API key and try again."
    ),
    "ERROR_ADDING_ADDITIONAL_TASKS": (
        "Error adding additional tasks. The agent will continue with the remaining tasks."
    ),
    "ERROR_EXECUTING_TASK": "The agent failed while working on a task and was shut down.",
}


def error_message(key: str) -> str:
    return ERROR_MESSAGES.get(key, key)


class AgentLoopError(RuntimeError):
    """Base class for agentloop failures."""


class ConfigError(AgentLoopError):
    """Raised when agentloop.toml holds values the loop cannot run with."""


class PlanningFailureKind(StrEnum):
    QUOTA_EXCEEDED = "quota_exceeded"
    ACCESS_DENIED = "access_denied"
    GENERIC_ACCESS_ERROR = "generic_access_error"

    @property
    def message_key(self) -> str:
        if self is PlanningFailureKind.QUOTA_EXCEEDED:
            return "ERROR_API_KEY_QUOTA"
        if self is PlanningFailureKind.ACCESS_DENIED:
            return "ERROR_OPENAI_API_KEY_NO_GPT4"
        return "ERROR_ACCESSING_OPENAI_API_KEY"


class PlanningFailure(AgentLoopError):
    """Raised when a goal could not be decomposed into initial tasks."""

    def __init__(self, kind: PlanningFailureKind, detail: str = "") -> None:
        super().__init__(error_message(kind.message_key))
        self.kind = kind
        self.detail = detail

    @property
    def message_key(self) -> str:
        return self.kind.message_key


class ExpansionFailure(AgentLoopError):
    """Raised when follow-up tasks could not be generated."""


def _status_code(exc: BaseException) -> int | None:
    current: BaseException | None = exc
    while current is not None:
        code = getattr(current, "status_code", None)
        if isinstance(code, int):
            return code
        current = current.__cause__
    return None


def classify_planning_error(exc: BaseException) -> PlanningFailure:
    if isinstance(exc, PlanningFailure):
        return exc
    status_code = _status_code(exc)
    if status_code == 429:
        kind = PlanningFailureKind.QUOTA_EXCEEDED
    elif status_code == 404:
        kind = PlanningFailureKind.ACCESS_DENIED
    else:
        kind = PlanningFailureKind.GENERIC_ACCESS_ERROR
    return PlanningFailure(kind, detail=str(exc))
