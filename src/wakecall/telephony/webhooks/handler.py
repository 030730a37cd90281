"""
Webhook event handler for processing telephony events.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.calls.models import CallHistory
from wakecall.calls.repository import CallHistoryRepository
from wakecall.calls.retry import RetryPolicy
from wakecall.calls.state import CallStatus, advance, is_terminal
from wakecall.config import get_settings
from wakecall.schedules.models import Schedule
from wakecall.shared.logging import get_logger
from wakecall.telephony.interface import WebhookEvent

logger = get_logger(__name__)


class WebhookHandler:
    """Applies provider callbacks to call history.

    Callbacks may repeat or arrive out of order; status moves forward only,
    so replaying any event is harmless.
    """

    def __init__(
        self,
        session: AsyncSession,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize webhook handler.

        Args:
            session: Async database session.
            retry_policy: Backoff used when a scheduled call ends unanswered.
        """
        self._session = session
        self._repo = CallHistoryRepository(session)
        self._retry_policy = retry_policy or RetryPolicy.from_settings(get_settings())

    async def handle_event(self, event: WebhookEvent) -> bool:
        """Handle a telephony call event.

        Args:
            event: Parsed WebhookEvent from the provider.

        Returns:
            True if anything changed, False for unknown calls and stale or
            duplicate events.
        """
        history = await self._get_history(event)
        if history is None:
            logger.warning(
                "Call history not found for event",
                extra={
                    "provider_call_id": event.provider_call_id,
                    "history_id": event.history_id,
                    "raw_status": event.raw_status,
                },
            )
            return False

        changed = False
        status_changed = False
        if history.call_sid is None:
            history.call_sid = event.provider_call_id
            changed = True

        if event.status is not None:
            status_changed = self._apply_status(history, event.status, event)
            changed = changed or status_changed

        if event.duration_seconds is not None and history.duration != event.duration_seconds:
            history.duration = event.duration_seconds
            changed = True

        if event.recording_url and history.recording_url != event.recording_url:
            history.recording_url = event.recording_url
            changed = True

        if not changed:
            logger.info(
                "Duplicate or stale event skipped",
                extra={
                    "history_id": history.id,
                    "current_status": history.status,
                    "raw_status": event.raw_status,
                },
            )
            return False

        if history.schedule_id is not None:
            await self._update_schedule(history, event, status_changed)

        await self._session.commit()
        return True

    async def _get_history(self, event: WebhookEvent) -> CallHistory | None:
        if event.history_id is not None:
            history = await self._repo.get_by_id(event.history_id)
            if history is not None and history.call_sid in (None, event.provider_call_id):
                return history
        return await self._repo.get_by_call_sid(event.provider_call_id)

    def _apply_status(self, history: CallHistory, status: CallStatus, event: WebhookEvent) -> bool:
        new = advance(history.status, status)
        if new.value == history.status:
            return False

        logger.info(
            "Call status advanced",
            extra={
                "history_id": history.id,
                "from_status": history.status,
                "to_status": new.value,
                "provider_call_id": event.provider_call_id,
            },
        )
        history.status = new.value

        if is_terminal(new):
            if new is CallStatus.FAILED and event.error_code:
                history.error_code = str(event.error_code)
            history.next_retry_at = None
        return True

    async def _update_schedule(
        self,
        history: CallHistory,
        event: WebhookEvent,
        status_changed: bool,
    ) -> None:
        schedule = await self._session.get(Schedule, history.schedule_id)
        if schedule is None:
            return

        if schedule.last_call_sid in (None, history.call_sid):
            schedule.last_call_sid = history.call_sid
            schedule.last_call_status = history.status

        if status_changed and is_terminal(history.status) and not history.is_sample:
            ended_at = event.timestamp if event.timestamp.tzinfo else datetime.now(timezone.utc)
            history.next_retry_at = self._retry_policy.plan(
                history.status,
                history.attempt_number,
                ended_at,
                history.occurrence_at,
                enabled=schedule.call_retry,
            )
            if history.next_retry_at is not None:
                logger.info(
                    "Retry planned",
                    extra={
                        "history_id": history.id,
                        "attempt_number": history.attempt_number,
                        "next_retry_at": history.next_retry_at.isoformat(),
                    },
                )
