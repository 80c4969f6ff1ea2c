"""Task lifecycle states and the transitions allowed between them.

Pure logic: nothing here touches storage. The store consults
:func:`validate_transition` before every write, and the state column is
never trusted to reject bad values on its own.
"""

from __future__ import annotations

from enum import Enum

from .errors import InvalidTransitionError, UnknownStateError


class TaskState(str, Enum):
    SUBMITTED = "submitted"
    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


INITIAL_STATE = TaskState.SUBMITTED

TERMINAL_STATES: frozenset[TaskState] = frozenset(
    {TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELED}
)

_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.SUBMITTED: frozenset({TaskState.SUBMITTED, TaskState.WORKING, *TERMINAL_STATES}),
    TaskState.WORKING: frozenset({TaskState.WORKING, *TERMINAL_STATES}),
    TaskState.COMPLETED: frozenset({TaskState.COMPLETED}),
    TaskState.FAILED: frozenset({TaskState.FAILED}),
    TaskState.CANCELED: frozenset({TaskState.CANCELED}),
}


def parse_state(value: TaskState | str) -> TaskState:
    """Return the enum member for ``value`` or raise :class:`UnknownStateError`."""
    if isinstance(value, TaskState):
        return value
    try:
        return TaskState(value)
    except ValueError as exc:
        raise UnknownStateError(value) from exc


def is_terminal(state: TaskState | str) -> bool:
    return parse_state(state) in TERMINAL_STATES


def allowed_targets(current: TaskState | str) -> frozenset[TaskState]:
    """States reachable from ``current`` in one step, including itself."""
    return _TRANSITIONS[parse_state(current)]


def validate_transition(current: TaskState | str, target: TaskState | str) -> TaskState:
    """Check a single lifecycle step and return the parsed target state.

    Re-entering the current state is always accepted so that a transition
    request delivered twice does not fail the second time.
    """
    current_state = parse_state(current)
    target_state = parse_state(target)
    if target_state not in _TRANSITIONS[current_state]:
        raise InvalidTransitionError(current_state, target_state)
    return target_state


def validate_initial_state(target: TaskState | str) -> TaskState:
    """Check the state a brand new record may start in.

    New tasks start as ``submitted``; finished tasks may be imported directly
    in a terminal state.
    """
    target_state = parse_state(target)
    if target_state is not INITIAL_STATE and target_state not in TERMINAL_STATES:
        raise InvalidTransitionError(None, target_state)
    return target_state
