from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from agentloop.backends.base import AgentBackend, BackendExecutionError, BackendProcessError

logger = logging.getLogger(__name__)


def assistant_text(event: dict[str, Any]) -> str:
    """Pull the text out of one ``stream-json`` event."""
    if event.get("type") == "result":
        # repeats the assistant text already streamed
        return ""
    body = event.get("message")
    if not isinstance(body, dict):
        body = event
    content = body.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            block["text"]
            for block in content
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        )
    delta = body.get("delta")
    return delta if isinstance(delta, str) else ""


class StreamJsonDecoder:
    """Line decoder that tolerates JSON events split across several lines.

    Lines that are neither JSON nor the start of an unfinished JSON value are
    passed through as plain text.
    """

    def __init__(self) -> None:
        self._pending = ""

    @staticmethod
    def _unbalanced(raw: str) -> bool:
        return raw.count("{") > raw.count("}") or raw.count("[") > raw.count("]")

    def feed(self, line: str) -> str:
        candidate = self._pending + line
        try:
            event = json.loads(candidate)
        except json.JSONDecodeError:
            if self._unbalanced(candidate):
                self._pending = candidate
                return ""
            self._pending = ""
            return line
        self._pending = ""
        return assistant_text(event) if isinstance(event, dict) else ""

    def flush(self) -> str:
        leftover, self._pending = self._pending, ""
        return leftover


class ClaudeCLIBackend(AgentBackend):
    """Runs prompts through the ``claude`` CLI in print mode."""

    def __init__(
        self,
        binary: str = "claude",
        working_directory: Path | None = None,
        model: str | None = None,
    ) -> None:
        self.binary = binary
        self.working_directory = working_directory
        self.model = model

    def build_command(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> list[str]:
        visible = {key: value for key, value in context.items() if key != "model"}
        prompt = user_prompt
        if visible:
            prompt += "\n\nContext JSON:\n" + json.dumps(visible, ensure_ascii=False, indent=2)

        command = [self.binary, "-p", prompt, "--output-format", "stream-json", "--verbose"]
        if system_prompt:
            command += ["--system-prompt", system_prompt]
        model = context.get("model") or self.model
        if isinstance(model, str) and model.strip():
            command += ["--model", model.strip()]
        return command

    async def _spawn(self, command: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *command,
                cwd=str(self.working_directory) if self.working_directory else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise BackendProcessError(
                f"Claude binary not found: {self.binary}",
                backend="claude",
                retriable=False,
            ) from exc

    @staticmethod
    async def _read_stderr(process: asyncio.subprocess.Process) -> bytes:
        if process.stderr is None:
            return b""
        return await process.stderr.read()

    async def _reap(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.debug("Killing unfinished %s process", self.binary)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()

    async def execute(
        self,
        system_prompt: str,
        user_prompt: str,
        context: dict[str, Any],
    ) -> AsyncIterator[str]:
        command = self.build_command(system_prompt, user_prompt, context)
        logger.debug("Starting %s (model=%s)", self.binary, context.get("model") or self.model)
        process = await self._spawn(command)
        # stderr is read concurrently with stdout
        stderr_reader = asyncio.create_task(self._read_stderr(process))
        try:
            if process.stdout is None:
                raise BackendProcessError(
                    "Claude backend did not expose stdout.", backend="claude", retriable=False
                )
            decoder = StreamJsonDecoder()
            async for raw_line in process.stdout:
                line = raw_line.decode("utf-8", errors="replace").strip()
                if not line:
                    continue
                text = decoder.feed(line)
                if text:
                    yield text
            leftover = decoder.flush()
            if leftover:
                yield leftover

            return_code = await process.wait()
            stderr = await stderr_reader
        finally:
            stderr_reader.cancel()
            await self._reap(process)

        if return_code != 0:
            raise BackendExecutionError(
                f"Claude backend failed with exit code {return_code}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}",
                backend="claude",
                exit_code=return_code,
                retriable=True,
            )
