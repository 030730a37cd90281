"""
Call lifecycle state machine.

Providers deliver status callbacks out of order and more than once. Status
only ever moves forward by lifecycle rank, and terminal statuses never change.
"""

from enum import Enum

from wakecall.telephony.interface import CallStatus

__all__ = [
    "CallOutcome",
    "CallStatus",
    "TERMINAL_STATUSES",
    "advance",
    "can_transition",
    "is_terminal",
    "outcome",
]


class CallOutcome(str, Enum):
    ANSWERED = "answered"
    MISSED = "missed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[CallStatus] = frozenset(
    {
        CallStatus.COMPLETED,
        CallStatus.BUSY,
        CallStatus.NO_ANSWER,
        CallStatus.FAILED,
        CallStatus.CANCELED,
    }
)

_RANK: dict[CallStatus, int] = {
    CallStatus.PENDING: 0,
    CallStatus.QUEUED: 1,
    CallStatus.INITIATED: 2,
    CallStatus.RINGING: 3,
    CallStatus.IN_PROGRESS: 4,
    CallStatus.ANSWERED: 4,
    CallStatus.COMPLETED: 5,
    CallStatus.BUSY: 5,
    CallStatus.NO_ANSWER: 5,
    CallStatus.FAILED: 5,
    CallStatus.CANCELED: 5,
}

_OUTCOMES: dict[CallStatus, CallOutcome] = {
    CallStatus.ANSWERED: CallOutcome.ANSWERED,
    CallStatus.IN_PROGRESS: CallOutcome.ANSWERED,
    CallStatus.COMPLETED: CallOutcome.ANSWERED,
    CallStatus.BUSY: CallOutcome.MISSED,
    CallStatus.NO_ANSWER: CallOutcome.MISSED,
    CallStatus.CANCELED: CallOutcome.MISSED,
    CallStatus.FAILED: CallOutcome.FAILED,
}


def _coerce(status: CallStatus | str) -> CallStatus:
    return status if isinstance(status, CallStatus) else CallStatus(status)


def is_terminal(status: CallStatus | str) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def can_transition(current: CallStatus | str, new: CallStatus | str) -> bool:
    """True when ``new`` is a strict step forward from ``current``."""
    current, new = _coerce(current), _coerce(new)
    if current in TERMINAL_STATUSES:
        return False
    if current == new:
        return False
    # answered and in-progress are the same stage reported two ways
    return _RANK[new] > _RANK[current] or (
        _RANK[new] == _RANK[current] and new is CallStatus.IN_PROGRESS
    )


def advance(current: CallStatus | str, new: CallStatus | str) -> CallStatus:
    """Status after applying ``new``; stale or repeated updates are ignored."""
    if can_transition(current, new):
        return _coerce(new)
    return _coerce(current)


def outcome(status: CallStatus | str | None) -> CallOutcome | None:
    """User-facing result of a call, or None while it is still in flight."""
    if status is None:
        return None
    return _OUTCOMES.get(_coerce(status))
