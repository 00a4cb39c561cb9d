from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from agentloop.backends import (
    AgentBackend,
    ClaudeCLIBackend,
    OpenAIBackend,
    ResilientBackend,
    RetryPolicy,
)
from agentloop.config import (
    BACKEND_NAMES,
    AgentLoopConfig,
    BackendName,
    load_config,
    save_config,
)
from agentloop.errors import ConfigError
from agentloop.logging_config import setup_logging
from agentloop.messages import (
    ErrorMessage,
    EventSink,
    Message,
    MessageKind,
    describe_message,
    message_to_dict,
)
from agentloop.orchestrator import Orchestrator, RunResult, RunStatus
from agentloop.playback import AgentMode, PlaybackControl
from agentloop.reasoning import BackendReasoningClient

logger = logging.getLogger(__name__)

MESSAGE_COLORS = {
    MessageKind.GOAL: "cyan",
    MessageKind.THINKING: None,
    MessageKind.TASK: "blue",
    MessageKind.ANALYSIS: "magenta",
    MessageKind.ERROR: "red",
    MessageKind.COMPLETED: "green",
    MessageKind.LOOP_LIMIT: "yellow",
    MessageKind.MANUAL_SHUTDOWN: "yellow",
}


class ConsoleSink(EventSink):
    def __init__(self, *, as_json: bool = False) -> None:
        self.as_json = as_json

    def emit(self, message: Message) -> None:
        if self.as_json:
            click.echo(json.dumps(message_to_dict(message), ensure_ascii=False))
            return
        if isinstance(message, ErrorMessage) and not message.fatal:
            click.secho(describe_message(message), fg="yellow", err=True)
            return
        click.secho(
            describe_message(message),
            fg=MESSAGE_COLORS[message.kind],
            err=message.kind == MessageKind.ERROR,
        )


def _resolve_config_path(config_value: str) -> Path:
    config_path = Path(config_value)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    return config_path.resolve()


def _load(config_value: str) -> tuple[Path, AgentLoopConfig]:
    config_path = _resolve_config_path(config_value)
    try:
        return config_path, load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_single_backend(backend_name: BackendName, config: AgentLoopConfig) -> AgentBackend:
    if backend_name == "claude":
        return ClaudeCLIBackend(
            working_directory=Path.cwd(),
            model=config.agent.claude_model or None,
        )
    return OpenAIBackend(
        model=config.agent.model,
        temperature=config.agent.temperature,
        max_tokens=config.agent.max_tokens,
    )


def _log_backend_event(event: dict[str, Any]) -> None:
    logger.debug("backend event: %s", event)


def _build_backend(config: AgentLoopConfig) -> AgentBackend:
    policy = RetryPolicy(
        max_retries=max(0, int(config.backend.max_retries)),
        backoff_seconds=max(0.0, float(config.backend.retry_backoff_seconds)),
        timeout_seconds=max(5.0, float(config.backend.timeout_seconds)),
    )
    return ResilientBackend(
        primary_name=config.backend.primary,
        primary_backend=_build_single_backend(config.backend.primary, config),
        fallback_name=config.backend.fallback,
        fallback_backend=_build_single_backend(config.backend.fallback, config),
        retry_policy=policy,
        event_hook=_log_backend_event,
    )


async def _drive(orchestrator: Orchestrator, confirm: Callable[[], bool]) -> RunResult:
    result = await orchestrator.run()
    while result.status == RunStatus.PAUSED:
        if not await asyncio.to_thread(confirm):
            orchestrator.stop_agent()
            return orchestrator.result()
        orchestrator.update_playback_control(PlaybackControl.PLAY)
        result = await orchestrator.run()
    return result


def _confirm_next_task(*, err: bool = False) -> bool:
    return click.confirm("Run the next task?", default=True, err=err)


@click.group()
def cli() -> None:
    """Autonomous goal decomposition and task execution."""


@cli.command("init")
@click.option("--backend", type=click.Choice(BACKEND_NAMES), default=None)
@click.option("--config", "config_value", default="agentloop.toml", show_default=True)
def init_command(backend: str | None, config_value: str) -> None:
    config_path, config = _load(config_value)
    if backend:
        config.backend.primary = backend  # type: ignore[assignment]
    save_config(config_path, config)
    click.echo(f"Config: {config_path}")
    click.echo(f"Backend: {config.backend.primary}")
    click.echo(f"Max loops: {config.loop.max_loops}")


@cli.command("run")
@click.argument("goal")
@click.option(
    "--mode",
    type=click.Choice([mode.value for mode in AgentMode]),
    default=None,
    help="automatic runs to the end; pause asks before every task.",
)
@click.option("--max-loops", type=click.IntRange(min=1), default=None)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit messages as JSON.")
@click.option("--log-level", default=None)
@click.option("--config", "config_value", default="agentloop.toml", show_default=True)
def run_command(
    goal: str,
    mode: str | None,
    max_loops: int | None,
    as_json: bool,
    log_level: str | None,
    config_value: str,
) -> None:
    _config_path, config = _load(config_value)
    if mode:
        config.loop.mode = mode
    if max_loops:
        config.loop.max_loops = max_loops
    setup_logging(log_level or config.logging.level, config.logging.file or None)

    backend = _build_backend(config)
    reasoning = BackendReasoningClient(
        backend,
        goal,
        language=config.agent.language,
    )
    orchestrator = Orchestrator.from_config(goal, reasoning, ConsoleSink(as_json=as_json), config)

    try:
        # JSON output owns stdout, so the prompt goes to stderr
        result = asyncio.run(_drive(orchestrator, lambda: _confirm_next_task(err=as_json)))
    except Exception as exc:
        raise click.ClickException(f"Agent failed: {exc}") from exc

    if result.status == RunStatus.FAILED_PLANNING:
        raise click.ClickException(result.error or "Goal decomposition failed.")

    if as_json:
        click.echo(json.dumps(orchestrator.snapshot(), ensure_ascii=False))
        return
    click.echo(f"Status: {result.status}")
    click.echo(f"Loops: {result.loop_count}/{config.loop.max_loops}")
    click.echo(f"Completed tasks: {len(result.completed_task_values)}")


@cli.command("backend")
@click.argument("backend_name", type=click.Choice(BACKEND_NAMES))
@click.option("--config", "config_value", default="agentloop.toml", show_default=True)
def backend_command(backend_name: str, config_value: str) -> None:
    config_path, config = _load(config_value)
    config.backend.primary = backend_name  # type: ignore[assignment]
    save_config(config_path, config)
    click.echo(f"Primary backend set to {backend_name}")
