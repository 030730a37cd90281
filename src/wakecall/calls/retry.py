"""
Retry policy for unanswered wake-up calls.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from wakecall.config import Settings
from wakecall.telephony.interface import CallStatus

RETRYABLE_STATUSES: frozenset[CallStatus] = frozenset(
    {CallStatus.BUSY, CallStatus.NO_ANSWER, CallStatus.FAILED}
)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff bounded by attempt count and a window after the occurrence.

    Attempt ``n`` (1-based) that ends at ``t`` is retried at
    ``t + base_delay * factor ** (n - 1)``, provided that another attempt is
    allowed and the retry still falls within ``window`` of the occurrence.
    """

    max_attempts: int = 3
    base_delay: timedelta = timedelta(minutes=5)
    factor: float = 2.0
    window: timedelta = timedelta(minutes=60)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.call_retry_max_attempts,
            base_delay=timedelta(minutes=settings.call_retry_base_delay_minutes),
            factor=settings.call_retry_backoff_factor,
            window=timedelta(minutes=settings.call_retry_window_minutes),
        )

    def should_retry(self, status: CallStatus | str) -> bool:
        return CallStatus(status) in RETRYABLE_STATUSES

    def delay_after(self, attempt_number: int) -> timedelta:
        return self.base_delay * (self.factor ** (attempt_number - 1))

    def next_retry_at(
        self,
        attempt_number: int,
        ended_at: datetime,
        occurrence_at: datetime | None = None,
    ) -> datetime | None:
        if attempt_number >= self.max_attempts:
            return None
        at = ended_at + self.delay_after(attempt_number)
        if occurrence_at is not None and at > occurrence_at + self.window:
            return None
        return at

    def plan(
        self,
        status: CallStatus | str,
        attempt_number: int,
        ended_at: datetime,
        occurrence_at: datetime,
        enabled: bool = True,
    ) -> datetime | None:
        """When to place the next attempt after one that ended in ``status``."""
        if not enabled or not self.should_retry(status):
            return None
        return self.next_retry_at(attempt_number, ended_at, occurrence_at)
