import json
import logging

import pytest

from agentloop.messages import (
    AnalysisMessage,
    CompletedMessage,
    ErrorMessage,
    GoalMessage,
    ListSink,
    LoggingSink,
    LoopLimitMessage,
    ManualShutdownMessage,
    MessageKind,
    TaskMessage,
    ThinkingMessage,
    describe_message,
    message_to_dict,
)
from agentloop.reasoning.base import Analysis
from agentloop.tasks import Task, TaskStatus

ALL_MESSAGES = [
    GoalMessage(goal="Plan a trip to Paris"),
    ThinkingMessage(),
    TaskMessage(task=Task(value="Book flights")),
    AnalysisMessage(task_id="t1", analysis=Analysis(action="search", arg="cheap flights")),
    ErrorMessage(text="boom", key="ERROR_ADDING_ADDITIONAL_TASKS", fatal=False),
    CompletedMessage(),
    LoopLimitMessage(loop_budget=25),
    ManualShutdownMessage(),
]


def test_every_kind_has_a_message_class() -> None:
    assert {message.kind for message in ALL_MESSAGES} == set(MessageKind)


@pytest.mark.parametrize("message", ALL_MESSAGES, ids=lambda message: str(message.kind))
def test_messages_render_and_serialize(message) -> None:
    assert describe_message(message)
    payload = message_to_dict(message)
    assert payload["type"] == str(message.kind)
    json.dumps(payload)


def test_task_message_serializes_transition() -> None:
    task = Task(value="Book flights", status=TaskStatus.COMPLETED, info="Booked")
    payload = message_to_dict(TaskMessage(task=task, previous_status=TaskStatus.EXECUTING))

    assert payload["value"] == "Book flights"
    assert payload["status"] == "completed"
    assert payload["previous_status"] == "executing"
    assert payload["info"] == "Booked"


def test_describe_search_analysis_mentions_query() -> None:
    message = AnalysisMessage(task_id="t1", analysis=Analysis(action="search", arg="louvre hours"))

    assert "louvre hours" in describe_message(message)


def test_list_sink_filters_by_kind() -> None:
    sink = ListSink()
    for message in ALL_MESSAGES:
        sink.emit(message)

    assert sink.of_kind(MessageKind.LOOP_LIMIT) == [LoopLimitMessage(loop_budget=25)]


def test_logging_sink_logs_description(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("agentloop")
    propagate = logger.propagate
    logger.propagate = True
    try:
        with caplog.at_level(logging.INFO, logger="agentloop.messages"):
            LoggingSink().emit(GoalMessage(goal="Plan a trip to Paris"))
    finally:
        logger.propagate = propagate

    assert "Plan a trip to Paris" in caplog.text
