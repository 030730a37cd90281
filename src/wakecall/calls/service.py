"""
Call history queries and on-demand sample calls.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.models import User
from wakecall.calls.dialer import CallDialer
from wakecall.calls.models import CallHistory
from wakecall.calls.repository import CallHistoryRepository
from wakecall.calls.schemas import CallHistoryOut, RecordingOut, SampleCallOut
from wakecall.calls.state import CallStatus
from wakecall.personalization.repository import PersonalizationRepository
from wakecall.shared.exceptions import AppException, NotFoundError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)


class CallService:
    def __init__(self, session: AsyncSession, dialer: CallDialer | None = None) -> None:
        self._session = session
        self._repo = CallHistoryRepository(session)
        self._personalizations = PersonalizationRepository(session)
        self._dialer = dialer

    async def history(self, user: User, limit: int = 50) -> list[CallHistoryOut]:
        rows = await self._repo.list_for_user(user.id, limit=limit)
        return [CallHistoryOut.model_validate(r) for r in rows]

    async def recording(self, user: User, history_id: int) -> RecordingOut:
        row = await self._repo.get_for_user(user.id, history_id)
        if row is None:
            raise NotFoundError("Call not found", "CALL_NOT_FOUND")
        if not row.recording_url:
            raise NotFoundError("No recording available for this call", "RECORDING_NOT_FOUND")
        return RecordingOut(recording_url=row.recording_url)

    async def sample_call(self, user: User, now: datetime | None = None) -> SampleCallOut:
        """Call the user's verified phone right away. Sample calls are never charged."""
        if self._dialer is None:
            raise RuntimeError("CallService needs a dialer to place calls")
        now = now or datetime.now(timezone.utc)

        personalization = await self._personalizations.get_for_user(user.id)
        if personalization is None:
            raise AppException(
                "Please personalize your wake-up calls first",
                "PERSONALIZATION_REQUIRED",
            )

        history = CallHistory(
            user_id=user.id,
            schedule_id=None,
            occurrence_at=now,
            attempt_number=1,
            call_time=now.isoformat(),
            timezone="UTC",
            voice=personalization.voice,
            status=CallStatus.PENDING.value,
            is_sample=True,
        )
        await self._repo.add(history)
        await self._session.commit()

        placed = await self._dialer.dial(history, user, personalization)
        await self._session.commit()

        logger.info(
            "Sample call requested",
            extra={"user_id": user.id, "history_id": history.id, "placed": placed},
        )
        if not placed:
            raise AppException(
                "We couldn't place the sample call. Please try again later.",
                "CALL_FAILED",
                {"history_id": history.id, "error_code": history.error_code},
            )
        return SampleCallOut(
            success=True,
            message="Sample call initiated successfully.",
            call=CallHistoryOut.model_validate(history),
        )
