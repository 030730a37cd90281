"""
Tests for the call lifecycle state machine and the retry policy.
"""

from datetime import datetime, timedelta, timezone

import pytest

from wakecall.calls.retry import RetryPolicy
from wakecall.calls.state import (
    CallOutcome,
    CallStatus,
    advance,
    can_transition,
    is_terminal,
    outcome,
)
from wakecall.config import Settings

OCCURRENCE = datetime(2025, 6, 2, 7, 0, tzinfo=timezone.utc)


class TestTransitions:
    def test_forward_path(self) -> None:
        status = CallStatus.PENDING
        for step in (
            CallStatus.QUEUED,
            CallStatus.INITIATED,
            CallStatus.RINGING,
            CallStatus.IN_PROGRESS,
            CallStatus.COMPLETED,
        ):
            assert can_transition(status, step)
            status = advance(status, step)
        assert status is CallStatus.COMPLETED

    def test_out_of_order_never_regresses(self) -> None:
        assert advance(CallStatus.IN_PROGRESS, CallStatus.RINGING) is CallStatus.IN_PROGRESS
        assert advance(CallStatus.RINGING, CallStatus.QUEUED) is CallStatus.RINGING

    def test_stages_may_be_skipped(self) -> None:
        assert advance(CallStatus.QUEUED, CallStatus.NO_ANSWER) is CallStatus.NO_ANSWER
        assert advance(CallStatus.PENDING, CallStatus.COMPLETED) is CallStatus.COMPLETED

    @pytest.mark.parametrize(
        "terminal",
        [
            CallStatus.COMPLETED,
            CallStatus.BUSY,
            CallStatus.NO_ANSWER,
            CallStatus.FAILED,
            CallStatus.CANCELED,
        ],
    )
    def test_terminal_is_absorbing(self, terminal: CallStatus) -> None:
        assert is_terminal(terminal)
        for other in CallStatus:
            assert not can_transition(terminal, other)
            assert advance(terminal, other) is terminal

    def test_repeat_is_not_a_transition(self) -> None:
        assert not can_transition(CallStatus.RINGING, CallStatus.RINGING)

    def test_answered_reported_as_in_progress(self) -> None:
        assert advance(CallStatus.ANSWERED, CallStatus.IN_PROGRESS) is CallStatus.IN_PROGRESS
        assert advance(CallStatus.IN_PROGRESS, CallStatus.ANSWERED) is CallStatus.IN_PROGRESS

    def test_accepts_raw_strings(self) -> None:
        assert advance("ringing", "completed") is CallStatus.COMPLETED
        assert is_terminal("no-answer")


class TestOutcome:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (CallStatus.ANSWERED, CallOutcome.ANSWERED),
            (CallStatus.COMPLETED, CallOutcome.ANSWERED),
            (CallStatus.BUSY, CallOutcome.MISSED),
            (CallStatus.NO_ANSWER, CallOutcome.MISSED),
            (CallStatus.CANCELED, CallOutcome.MISSED),
            (CallStatus.FAILED, CallOutcome.FAILED),
            (CallStatus.RINGING, None),
            (CallStatus.QUEUED, None),
        ],
    )
    def test_outcome(self, status: CallStatus, expected: CallOutcome | None) -> None:
        assert outcome(status) == expected

    def test_none_status(self) -> None:
        assert outcome(None) is None


class TestRetryPolicy:
    def test_exponential_backoff(self) -> None:
        policy = RetryPolicy()
        first_end = OCCURRENCE + timedelta(minutes=1)
        assert policy.next_retry_at(1, first_end, OCCURRENCE) == first_end + timedelta(minutes=5)

        second_end = OCCURRENCE + timedelta(minutes=8)
        assert policy.next_retry_at(2, second_end, OCCURRENCE) == second_end + timedelta(minutes=10)

    def test_attempts_exhausted(self) -> None:
        assert RetryPolicy().next_retry_at(3, OCCURRENCE, OCCURRENCE) is None

    def test_window_bound(self) -> None:
        policy = RetryPolicy()
        late_end = OCCURRENCE + timedelta(minutes=55)
        assert policy.next_retry_at(2, late_end, OCCURRENCE) is None

    @pytest.mark.parametrize("status", ["busy", "no-answer", "failed"])
    def test_retryable(self, status: str) -> None:
        assert RetryPolicy().should_retry(status)

    @pytest.mark.parametrize("status", ["completed", "canceled", "ringing"])
    def test_not_retryable(self, status: str) -> None:
        assert not RetryPolicy().should_retry(status)

    def test_plan_honours_schedule_flag(self) -> None:
        policy = RetryPolicy()
        assert policy.plan("busy", 1, OCCURRENCE, OCCURRENCE, enabled=False) is None
        assert policy.plan("completed", 1, OCCURRENCE, OCCURRENCE) is None
        assert policy.plan("busy", 1, OCCURRENCE, OCCURRENCE) == OCCURRENCE + timedelta(minutes=5)

    def test_from_settings(self) -> None:
        policy = RetryPolicy.from_settings(
            Settings(
                call_retry_max_attempts=2,
                call_retry_base_delay_minutes=3,
                call_retry_backoff_factor=3.0,
                call_retry_window_minutes=30,
            )
        )
        assert policy.max_attempts == 2
        assert policy.delay_after(2) == timedelta(minutes=9)
        assert policy.window == timedelta(minutes=30)
