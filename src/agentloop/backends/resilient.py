from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from typing import Any

from agentloop.backends.base import AgentBackend, BackendExecutionError, BackendTimeoutError

logger = logging.getLogger(__name__)

BackendEventHook = Callable[[dict[str, Any]], None]


@dataclass(slots=True)
class RetryPolicy:
    max_retries: int = 1
    backoff_seconds: float = 0.5
    timeout_seconds: float = 90.0

    def delay_for(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        return self.backoff_seconds * (2 ** (attempt - 1))


@dataclass(slots=True, frozen=True)
class FailedAttempt:
    backend: str
    attempt: int
    error: str
    status_code: int | None
    retriable: bool

    def summary(self) -> str:
        return f"{self.backend}[{self.attempt}]: {self.error}"


class ResilientBackend(AgentBackend):
    """Primary/fallback backend pair with per-request timeout and retries.

    Each backend gets ``max_retries + 1`` attempts with exponential backoff.
    A non-retriable failure skips straight to the fallback. When every
    attempt fails the raised error carries the last HTTP status seen, so
    callers can still classify quota and access failures.
    """

    def __init__(
        self,
        primary_name: str,
        primary_backend: AgentBackend,
        fallback_name: str,
        fallback_backend: AgentBackend,
        retry_policy: RetryPolicy,
        event_hook: BackendEventHook | None = None,
    ) -> None:
        self.primary_name = primary_name
        self.primary_backend = primary_backend
        self.fallback_name = fallback_name
        self.fallback_backend = fallback_backend
        self.retry_policy = retry_policy
        self.event_hook = event_hook
        self.failed_attempts: list[FailedAttempt] = []

    def _emit(self, event: str, backend: str, **fields: Any) -> None:
        if self.event_hook:
            self.event_hook({"event": event, "backend": backend, **fields})

    def _backends(self) -> Iterator[tuple[str, AgentBackend]]:
        yield self.primary_name, self.primary_backend
        if self.fallback_name != self.primary_name:
            yield self.fallback_name, self.fallback_backend

    async def _request(
        self,
        backend: AgentBackend,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> list[str]:
        async def _drain() -> list[str]:
            return [chunk async for chunk in backend.execute(system_prompt, user_prompt, context)]

        timeout = self.retry_policy.timeout_seconds
        try:
            return await asyncio.wait_for(_drain(), timeout=timeout)
        except TimeoutError as exc:
            raise BackendTimeoutError(
                f"Backend request timed out after {timeout:.1f}s", retriable=True
            ) from exc

    async def _try_backend(
        self,
        name: str,
        backend: AgentBackend,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> list[str] | None:
        for attempt in range(self.retry_policy.max_retries + 1):
            if attempt:
                delay = self.retry_policy.delay_for(attempt)
                logger.info("Retrying %s backend (attempt %d) in %.2fs", name, attempt, delay)
                self._emit("backend_retry", name, attempt=attempt, delay_seconds=delay)
                await asyncio.sleep(delay)
            try:
                return await self._request(backend, system_prompt, user_prompt, context)
            except BackendExecutionError as exc:
                failure = FailedAttempt(
                    backend=name,
                    attempt=attempt,
                    error=str(exc),
                    status_code=exc.status_code,
                    retriable=exc.retriable,
                )
                self.failed_attempts.append(failure)
                logger.warning("%s backend attempt %d failed: %s", name, attempt, exc)
                self._emit(
                    "backend_attempt_failed",
                    name,
                    attempt=attempt,
                    error=failure.error,
                    retriable=failure.retriable,
                )
                if not exc.retriable:
                    return None
        return None

    def _exhausted(self) -> BackendExecutionError:
        status_codes = [
            failure.status_code
            for failure in self.failed_attempts
            if failure.status_code is not None
        ]
        summary = "; ".join(failure.summary() for failure in self.failed_attempts[-6:])
        return BackendExecutionError(
            f"All backend attempts failed. {summary}",
            status_code=status_codes[-1] if status_codes else None,
            retriable=False,
        )

    async def execute(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> AsyncIterator[str]:
        self.failed_attempts = []
        chunks: list[str] | None = None
        for index, (name, backend) in enumerate(self._backends()):
            if index:
                logger.warning("Failing over to %s backend", name)
                self._emit("backend_failover_start", name)
            chunks = await self._try_backend(name, backend, system_prompt, user_prompt, context)
            if chunks is None:
                continue
            if index:
                self._emit("backend_fallback_success", name)
            break

        if chunks is None:
            raise self._exhausted()
        for chunk in chunks:
            yield chunk
