"""Workflow state machine."""

import pytest

from dotnet_diagnose.runner.state import InvalidTransition, State, StateMachine


def _full_run(sm: StateMachine, kinds=("trace", "dump", "stack", "counters")):
    sm.transition(State.LOCATE_PROCESS)
    sm.transition(State.READ_ENVIRONMENT, {"pid": 4242})
    for kind in kinds:
        sm.transition(State.COLLECT, {"kind": kind})
        sm.transition(State.UPLOAD, {"kind": kind})
    sm.transition(State.COMPLETE)


def test_happy_path():
    sm = StateMachine()
    _full_run(sm)

    assert sm.state is State.COMPLETE
    assert sm.is_terminal()
    assert sm.path() == [
        "LOCATE_PROCESS", "READ_ENVIRONMENT",
        "COLLECT(trace)", "UPLOAD(trace)",
        "COLLECT(dump)", "UPLOAD(dump)",
        "COLLECT(stack)", "UPLOAD(stack)",
        "COLLECT(counters)", "UPLOAD(counters)",
        "COMPLETE",
    ]


def test_no_stages_selected():
    sm = StateMachine()
    _full_run(sm, kinds=())
    assert sm.path() == ["LOCATE_PROCESS", "READ_ENVIRONMENT", "COMPLETE"]


def test_discovery_can_abort():
    sm = StateMachine()
    sm.transition(State.LOCATE_PROCESS)
    sm.transition(State.ABORTED, {"error": "Could not find any running .NET process"})
    assert sm.is_terminal()


@pytest.mark.parametrize("setup, target", [
    ([], State.COLLECT),
    ([State.LOCATE_PROCESS], State.UPLOAD),
    ([State.LOCATE_PROCESS, State.READ_ENVIRONMENT, State.COLLECT], State.ABORTED),
    ([State.LOCATE_PROCESS, State.READ_ENVIRONMENT, State.COLLECT], State.COMPLETE),
])
def test_invalid_transitions(setup, target):
    sm = StateMachine()
    for state in setup:
        sm.transition(state)
    with pytest.raises(InvalidTransition):
        sm.transition(target)


def test_cancel_from_any_running_state():
    for steps in ([], [State.LOCATE_PROCESS], [State.LOCATE_PROCESS, State.READ_ENVIRONMENT, State.COLLECT]):
        sm = StateMachine()
        for state in steps:
            sm.transition(state)
        assert sm.can_transition(State.CANCELLED)


def test_terminal_states_are_final():
    sm = StateMachine()
    _full_run(sm)
    assert not sm.can_transition(State.CANCELLED)
    assert not sm.can_transition(State.LOCATE_PROCESS)


def test_history_records_metadata():
    sm = StateMachine()
    event = sm.transition(State.LOCATE_PROCESS, {"attempt": 1})
    assert event.from_state is State.INIT
    assert sm.history[0].metadata == {"attempt": 1}
    assert "INIT → LOCATE_PROCESS" in sm.format_history()
