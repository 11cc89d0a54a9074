"""
Runner module - Orchestrates the collection workflow.

The Runner:
- Executes state machine transitions
- Runs each collect → upload stage in fixed order
- Tears down spawned tools on SIGINT/SIGTERM
"""

from .engine import DiagnosticEngine
from .state import StateMachine, State, InvalidTransition
from .teardown import Teardown

__all__ = [
    "DiagnosticEngine",
    "StateMachine",
    "State",
    "InvalidTransition",
    "Teardown",
]
