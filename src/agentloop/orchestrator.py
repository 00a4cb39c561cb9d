from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from agentloop.config import (
    DEFAULT_MAX_LOOPS_FREE,
    TIMEOUT_LONG,
    TIMEOUT_SHORT,
    AgentLoopConfig,
)
from agentloop.errors import classify_planning_error, error_message
from agentloop.messages import (
    AnalysisMessage,
    CompletedMessage,
    ErrorMessage,
    EventSink,
    GoalMessage,
    LoopLimitMessage,
    ManualShutdownMessage,
    Message,
    TaskMessage,
    ThinkingMessage,
)
from agentloop.playback import AgentMode, PlaybackControl, PlaybackController
from agentloop.reasoning.base import FollowUpContext, ReasoningClient
from agentloop.tasks import Task, TaskStatus, TaskStore

logger = logging.getLogger(__name__)

ShutdownHook = Callable[[], None]
SleepFn = Callable[[float], Awaitable[Any]]


class RunStatus(StrEnum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    STOPPED_MANUALLY = "stopped_manually"
    FAILED_PLANNING = "failed_planning"
    FAILED_LOOP_LIMIT = "failed_loop_limit"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.STOPPED_MANUALLY,
        RunStatus.FAILED_PLANNING,
        RunStatus.FAILED_LOOP_LIMIT,
        RunStatus.FAILED,
    }
)


@dataclass(slots=True)
class RunState:
    loop_budget: int
    mode: AgentMode
    playback: PlaybackControl
    completed_task_values: list[str] = field(default_factory=list)
    loop_count: int = 0
    is_running: bool = False
    status: RunStatus = RunStatus.IDLE


@dataclass(slots=True, frozen=True)
class RunResult:
    status: RunStatus
    loop_count: int
    completed_task_values: tuple[str, ...]
    error: str | None = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class Orchestrator:
    """Drives one goal from decomposition to completion.

    ``run`` decomposes the goal on first call, then executes started tasks
    in enqueue order until the queue drains, the loop budget is spent, the
    agent is stopped, or (in pause mode) the playback flag asks for a pause.
    A paused run is continued by calling ``run`` again.
    """

    def __init__(
        self,
        goal: str,
        reasoning: ReasoningClient,
        sink: EventSink,
        *,
        mode: AgentMode = AgentMode.AUTOMATIC,
        loop_budget: int = DEFAULT_MAX_LOOPS_FREE,
        short_delay: float = TIMEOUT_SHORT,
        long_delay: float = TIMEOUT_LONG,
        playback: PlaybackControl | None = None,
        on_shutdown: ShutdownHook | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.goal = goal
        self.reasoning = reasoning
        self.sink = sink
        self.short_delay = short_delay
        self.long_delay = long_delay
        self.on_shutdown = on_shutdown
        self._sleep = sleep
        self.tasks = TaskStore()
        self.playback = PlaybackController(mode, playback)
        self.state = RunState(
            loop_budget=loop_budget,
            mode=self.playback.mode,
            playback=self.playback.playback,
        )
        self._started = False
        self._in_run = False
        self._stop_requested = False
        self._error: str | None = None
        self._finished = asyncio.Event()

    @classmethod
    def from_config(
        cls,
        goal: str,
        reasoning: ReasoningClient,
        sink: EventSink,
        config: AgentLoopConfig,
        **kwargs: Any,
    ) -> Orchestrator:
        return cls(
            goal,
            reasoning,
            sink,
            mode=config.loop.agent_mode,
            loop_budget=config.loop.max_loops,
            short_delay=config.loop.short_delay_seconds,
            long_delay=config.loop.long_delay_seconds,
            **kwargs,
        )

    @property
    def is_running(self) -> bool:
        return self.state.is_running

    @property
    def status(self) -> RunStatus:
        return self.state.status

    def result(self) -> RunResult:
        return RunResult(
            status=self.state.status,
            loop_count=self.state.loop_count,
            completed_task_values=tuple(self.state.completed_task_values),
            error=self._error,
        )

    async def wait(self) -> RunResult:
        await self._finished.wait()
        return self.result()

    def snapshot(self) -> dict[str, Any]:
        return {
            "goal": self.goal,
            "status": str(self.state.status),
            "mode": str(self.state.mode),
            "playback": str(self.playback.playback),
            "is_running": self.state.is_running,
            "loop_count": self.state.loop_count,
            "loop_budget": self.state.loop_budget,
            "completed_task_values": list(self.state.completed_task_values),
            "tasks": self.tasks.to_list(),
        }

    async def run(self) -> RunResult:
        if self.state.status in TERMINAL_STATUSES:
            return self.result()
        if self._in_run:
            raise RuntimeError("Orchestrator is already running.")

        self._in_run = True
        try:
            self._set_running(True)
            if not self._started and not await self._start_goal():
                return self.result()
            return await self._loop()
        except asyncio.CancelledError:
            self._abort_cancelled()
            raise
        finally:
            self._in_run = False

    def stop_agent(self) -> None:
        if not self._stop_requested and self.state.status not in TERMINAL_STATUSES:
            self._stop_requested = True
            logger.info("Manual shutdown requested for goal %r", self.goal)
            self._emit(ManualShutdownMessage())
            self.state.is_running = False
            if not self._in_run:
                self._finish(RunStatus.STOPPED_MANUALLY)
        self._invoke_shutdown_hook()

    def update_playback_control(self, value: PlaybackControl) -> None:
        self.playback.set_playback(value)
        self.state.playback = self.playback.playback

    def _set_running(self, is_running: bool) -> None:
        self.state.is_running = is_running
        if is_running:
            self.state.status = RunStatus.RUNNING

    def _emit(self, message: Message) -> None:
        self.sink.emit(message)

    def _invoke_shutdown_hook(self) -> None:
        if self.on_shutdown is not None:
            self.on_shutdown()

    def _finish(self, status: RunStatus, *, error: str | None = None) -> RunResult:
        self.state.status = status
        self.state.is_running = False
        if error is not None:
            self._error = error
        self._finished.set()
        logger.info(
            "Run finished with status %s after %d loop(s)", status, self.state.loop_count
        )
        return self.result()

    def _abort_cancelled(self) -> None:
        if self.state.status in TERMINAL_STATUSES:
            return
        logger.warning("Run for goal %r was cancelled mid-cycle", self.goal)
        self._emit(
            ErrorMessage(
                text=error_message("ERROR_EXECUTING_TASK"),
                key="ERROR_EXECUTING_TASK",
                fatal=True,
            )
        )
        self._invoke_shutdown_hook()
        self._finish(RunStatus.FAILED, error="Run was cancelled.")

    def _transition(self, task_id: str, status: TaskStatus, info: str | None = None) -> Task:
        previous = self.tasks.get(task_id).status
        task = self.tasks.update_status(task_id, status, info)
        self._emit(TaskMessage(task=task, previous_status=previous))
        return task

    async def _enqueue(self, value: str) -> Task:
        await self._sleep(self.short_delay)
        task = self.tasks.append(Task(value=value))
        self._emit(TaskMessage(task=task))
        logger.debug("Enqueued task %s: %s", task.id, value)
        return task

    async def _start_goal(self) -> bool:
        self._emit(GoalMessage(goal=self.goal))
        self._emit(ThinkingMessage())
        try:
            values = await self.reasoning.decompose_goal(self.goal)
        except Exception as exc:
            failure = classify_planning_error(exc)
            logger.warning("Goal decomposition failed (%s): %s", failure.kind, exc)
            self._emit(ErrorMessage(text=str(failure), key=failure.message_key, fatal=True))
            self._invoke_shutdown_hook()
            self._finish(RunStatus.FAILED_PLANNING, error=str(failure))
            return False

        self._started = True
        logger.info("Goal decomposed into %d task(s)", len(values))
        for value in values:
            await self._enqueue(value)
        return True

    async def _loop(self) -> RunResult:
        while True:
            if self._stop_requested:
                return self._finish(RunStatus.STOPPED_MANUALLY)

            suspend = self.playback.should_suspend()
            self.state.playback = self.playback.playback
            if suspend:
                self.state.is_running = False
                self.state.status = RunStatus.PAUSED
                logger.info("Paused after %d loop(s)", self.state.loop_count)
                return self.result()

            if not self.tasks.remaining_tasks():
                self._emit(CompletedMessage())
                self._invoke_shutdown_hook()
                return self._finish(RunStatus.COMPLETED)

            self.state.loop_count += 1
            if self.state.loop_count > self.state.loop_budget:
                logger.info("Loop budget of %d exhausted", self.state.loop_budget)
                self._emit(LoopLimitMessage(loop_budget=self.state.loop_budget))
                self._invoke_shutdown_hook()
                return self._finish(RunStatus.FAILED_LOOP_LIMIT)

            await self._run_cycle()

    async def _run_cycle(self) -> None:
        await self._sleep(self.long_delay)
        current = self.tasks.remaining_tasks()[0]
        logger.debug("Loop %d executing task %s", self.state.loop_count, current.id)
        self._transition(current.id, TaskStatus.EXECUTING)
        self._emit(ThinkingMessage())

        try:
            analysis = await self.reasoning.analyze_task(current.value)
            self._emit(AnalysisMessage(task_id=current.id, analysis=analysis))
            result = await self.reasoning.execute_task(current.value, analysis)
        except Exception as exc:
            logger.exception("Task %s failed; shutting the agent down", current.id)
            self._emit(
                ErrorMessage(
                    text=error_message("ERROR_EXECUTING_TASK"),
                    key="ERROR_EXECUTING_TASK",
                    fatal=True,
                )
            )
            self._invoke_shutdown_hook()
            self._finish(RunStatus.FAILED, error=str(exc))
            raise

        self._transition(current.id, TaskStatus.COMPLETED, info=result)
        self.state.completed_task_values.append(current.value)

        await self._sleep(self.long_delay)
        self._emit(ThinkingMessage())
        context = FollowUpContext(
            current=current.value,
            remaining=[task.value for task in self.tasks.remaining_tasks()],
            completed=list(self.state.completed_task_values),
        )
        try:
            follow_ups = await self.reasoning.generate_follow_ups(context, result)
        except Exception as exc:
            logger.warning("Could not add follow-up tasks for %s: %s", current.id, exc)
            self._emit(
                ErrorMessage(
                    text=error_message("ERROR_ADDING_ADDITIONAL_TASKS"),
                    key="ERROR_ADDING_ADDITIONAL_TASKS",
                    fatal=False,
                )
            )
            self._transition(current.id, TaskStatus.FINAL)
            return

        for value in follow_ups:
            await self._enqueue(value)
        if not follow_ups:
            self._transition(current.id, TaskStatus.FINAL)
