from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any


class BackendExecutionError(RuntimeError):
    """Raised when a backend request fails."""

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        exit_code: int | None = None,
        status_code: int | None = None,
        retriable: bool = True,
    ) -> None:
        super().__init__(message)
        self.backend = backend
        self.exit_code = exit_code
        self.status_code = status_code
        self.retriable = retriable


class BackendTimeoutError(BackendExecutionError):
    """Raised when a backend request exceeds the configured timeout."""


class BackendProcessError(BackendExecutionError):
    """Raised when a backend process cannot be started or read."""


class AgentBackend(ABC):
    @abstractmethod
    async def execute(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> AsyncIterator[str]:
        """Send one prompt and stream textual chunks of the reply."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any] | None = None,
    ) -> str:
        chunks: list[str] = []
        async for chunk in self.execute(system_prompt, user_prompt, context or {}):
            chunks.append(chunk)
        return "".join(chunks).strip()
