from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import openai
from openai import AsyncOpenAI

from agentloop.backends.base import AgentBackend, BackendExecutionError

logger = logging.getLogger(__name__)


class OpenAIBackend(AgentBackend):
    """Chat completion backend on the official OpenAI SDK."""

    def __init__(
        self,
        *,
        model: str = "gpt-4o-mini",
        temperature: float = 0.9,
        max_tokens: int = 500,
        client: Any | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = AsyncOpenAI()
            except openai.OpenAIError as exc:
                raise BackendExecutionError(
                    f"OpenAI client could not be created: {exc}",
                    backend="openai",
                    retriable=False,
                ) from exc
        return self._client

    @staticmethod
    def _build_user_input(user_prompt: str, context: dict[str, Any]) -> str:
        visible = {key: value for key, value in context.items() if key != "model"}
        if not visible:
            return user_prompt
        return "\n\n".join(
            [user_prompt, "Context JSON:", json.dumps(visible, ensure_ascii=False, indent=2)]
        )

    @staticmethod
    def _extract_text(payload: Any) -> str:
        choices = getattr(payload, "choices", None)
        if choices is None and isinstance(payload, dict):
            choices = payload.get("choices")
        if not choices:
            return ""
        first = choices[0]
        message = getattr(first, "message", None)
        if message is None and isinstance(first, dict):
            message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
        else:
            content = getattr(message, "content", None)
        return content if isinstance(content, str) else ""

    async def execute(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> AsyncIterator[str]:
        requested_model = context.get("model")
        model_name = (
            requested_model.strip()
            if isinstance(requested_model, str) and requested_model.strip()
            else self.model
        )
        client = self._get_client()
        logger.debug("OpenAI request (model=%s)", model_name)
        try:
            payload = await client.chat.completions.create(
                model=model_name,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": self._build_user_input(user_prompt, context)},
                ],
            )
        except openai.APIStatusError as exc:
            raise BackendExecutionError(
                f"OpenAI request failed with status {exc.status_code}: {exc.message}",
                backend="openai",
                status_code=exc.status_code,
                retriable=exc.status_code == 429 or exc.status_code >= 500,
            ) from exc
        except openai.APIError as exc:
            raise BackendExecutionError(
                f"OpenAI request failed: {exc}",
                backend="openai",
                retriable=True,
            ) from exc

        content = self._extract_text(payload).strip()
        if content:
            yield content
