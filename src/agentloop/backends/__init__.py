from agentloop.backends.base import (
    AgentBackend,
    BackendExecutionError,
    BackendProcessError,
    BackendTimeoutError,
)
from agentloop.backends.claude_cli import ClaudeCLIBackend
from agentloop.backends.openai_sdk import OpenAIBackend
from agentloop.backends.resilient import FailedAttempt, ResilientBackend, RetryPolicy

__all__ = [
    "AgentBackend",
    "BackendExecutionError",
    "BackendProcessError",
    "BackendTimeoutError",
    "ClaudeCLIBackend",
    "FailedAttempt",
    "OpenAIBackend",
    "ResilientBackend",
    "RetryPolicy",
]
