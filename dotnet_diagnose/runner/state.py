"""
StateMachine - Tracks the collection workflow.

INIT → LOCATE_PROCESS → READ_ENVIRONMENT → (COLLECT → UPLOAD) × kinds → COMPLETE
              ↓                 ↓
           ABORTED           ABORTED

Any non-terminal state can move to CANCELLED when teardown is requested.
COLLECT/UPLOAD failures never leave the loop; only discovery aborts.
"""

from enum import Enum, auto
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from datetime import datetime


class State(Enum):
    """Collection workflow states."""
    INIT = auto()
    LOCATE_PROCESS = auto()
    READ_ENVIRONMENT = auto()
    COLLECT = auto()
    UPLOAD = auto()
    COMPLETE = auto()
    ABORTED = auto()
    CANCELLED = auto()


# state -> states reachable from it
TRANSITIONS: Dict[State, List[State]] = {
    State.INIT: [State.LOCATE_PROCESS, State.CANCELLED],
    State.LOCATE_PROCESS: [State.READ_ENVIRONMENT, State.ABORTED, State.CANCELLED],
    State.READ_ENVIRONMENT: [State.COLLECT, State.COMPLETE, State.ABORTED, State.CANCELLED],
    State.COLLECT: [State.UPLOAD, State.CANCELLED],
    State.UPLOAD: [State.COLLECT, State.COMPLETE, State.CANCELLED],
    State.COMPLETE: [],
    State.ABORTED: [],
    State.CANCELLED: [],
}

TERMINAL_STATES = (State.COMPLETE, State.ABORTED, State.CANCELLED)


@dataclass
class StateEvent:
    """One entry of the workflow history."""
    from_state: State
    to_state: State
    timestamp: datetime
    duration_ms: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def describe(self) -> str:
        label = self.to_state.name
        if "kind" in self.metadata:
            label = f"{label}({self.metadata['kind']})"
        return label


class InvalidTransition(ValueError):
    """Raised for a move the workflow does not allow."""


class StateMachine:
    """
    Current workflow state plus the ordered list of transitions taken.

    Only moves listed in TRANSITIONS are accepted.
    """

    def __init__(self, initial_state: State = State.INIT):
        self._state = initial_state
        self._history: List[StateEvent] = []
        self._entered_at = datetime.now()

    @property
    def state(self) -> State:
        return self._state

    @property
    def history(self) -> List[StateEvent]:
        """Copy of the transitions taken so far."""
        return list(self._history)

    def can_transition(self, to_state: State) -> bool:
        """True if to_state is reachable from the current state."""
        return to_state in TRANSITIONS[self._state]

    def transition(self, to_state: State, metadata: Optional[Dict[str, Any]] = None) -> StateEvent:
        """
        Move to to_state and record the step.

        Raises:
            InvalidTransition: to_state is not reachable from the current state
        """
        if not self.can_transition(to_state):
            raise InvalidTransition(
                f"Cannot go from {self._state.name} to {to_state.name} "
                f"(allowed: {', '.join(s.name for s in TRANSITIONS[self._state]) or 'none'})"
            )

        now = datetime.now()
        duration_ms = int((now - self._entered_at).total_seconds() * 1000)

        event = StateEvent(
            from_state=self._state,
            to_state=to_state,
            timestamp=now,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )
        self._history.append(event)

        self._state = to_state
        self._entered_at = now

        return event

    def is_terminal(self) -> bool:
        """COMPLETE, ABORTED or CANCELLED."""
        return self._state in TERMINAL_STATES

    def path(self) -> List[str]:
        """States visited so far, e.g. ['LOCATE_PROCESS', 'COLLECT(trace)', ...]."""
        return [event.describe() for event in self._history]

    def format_history(self) -> str:
        """One line per transition with the time spent in the previous state."""
        return '\n'.join(
            f"{event.from_state.name} → {event.describe()} ({event.duration_ms}ms)"
            for event in self._history
        )
