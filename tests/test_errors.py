from agentloop.backends.base import BackendExecutionError
from agentloop.errors import (
    ERROR_MESSAGES,
    PlanningFailure,
    PlanningFailureKind,
    classify_planning_error,
    error_message,
)


def test_status_codes_map_to_failure_kinds() -> None:
    assert (
        classify_planning_error(BackendExecutionError("x", status_code=429)).kind
        == PlanningFailureKind.QUOTA_EXCEEDED
    )
    assert (
        classify_planning_error(BackendExecutionError("x", status_code=404)).kind
        == PlanningFailureKind.ACCESS_DENIED
    )
    assert (
        classify_planning_error(BackendExecutionError("x", status_code=401)).kind
        == PlanningFailureKind.GENERIC_ACCESS_ERROR
    )
    assert (
        classify_planning_error(ValueError("no status")).kind
        == PlanningFailureKind.GENERIC_ACCESS_ERROR
    )


def test_status_code_is_found_on_the_cause_chain() -> None:
    try:
        try:
            raise BackendExecutionError("rate limited", status_code=429)
        except BackendExecutionError as exc:
            raise RuntimeError("wrapped") from exc
    except RuntimeError as wrapped:
        failure = classify_planning_error(wrapped)

    assert failure.kind == PlanningFailureKind.QUOTA_EXCEEDED
    assert failure.detail == "wrapped"


def test_planning_failure_passes_through_unchanged() -> None:
    original = PlanningFailure(PlanningFailureKind.ACCESS_DENIED)

    assert classify_planning_error(original) is original


def test_every_failure_kind_has_a_user_message() -> None:
    for kind in PlanningFailureKind:
        assert kind.message_key in ERROR_MESSAGES
        assert str(PlanningFailure(kind)) == ERROR_MESSAGES[kind.message_key]


def test_unknown_message_keys_fall_back_to_the_key() -> None:
    assert error_message("ERROR_SOMETHING_NEW") == "ERROR_SOMETHING_NEW"


def test_every_user_message_has_a_producer() -> None:
    planning_keys = {kind.message_key for kind in PlanningFailureKind}
    loop_keys = {"ERROR_ADDING_ADDITIONAL_TASKS", "ERROR_EXECUTING_TASK"}

    assert set(ERROR_MESSAGES) == planning_keys | loop_keys
