"""
Repository for call history database operations.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from wakecall.calls.models import CallHistory


class CallHistoryRepository:
    """Repository for call history database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def claim(self, history: CallHistory) -> bool:
        """Insert an attempt row; False when another worker already holds it.

        Runs in a savepoint so a conflict leaves the outer transaction usable.
        """
        try:
            async with self._session.begin_nested():
                self._session.add(history)
                await self._session.flush()
        except IntegrityError:
            return False
        return True

    async def add(self, history: CallHistory) -> CallHistory:
        self._session.add(history)
        await self._session.flush()
        return history

    async def get_by_id(self, history_id: int) -> CallHistory | None:
        return await self._session.get(CallHistory, history_id)

    async def get_for_user(self, user_id: int, history_id: int) -> CallHistory | None:
        stmt = select(CallHistory).where(
            CallHistory.id == history_id,
            CallHistory.user_id == user_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_call_sid(self, call_sid: str) -> CallHistory | None:
        stmt = select(CallHistory).where(CallHistory.call_sid == call_sid)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def list_for_user(self, user_id: int, limit: int = 50) -> Sequence[CallHistory]:
        stmt = (
            select(CallHistory)
            .where(CallHistory.user_id == user_id)
            .order_by(CallHistory.occurrence_at.desc(), CallHistory.attempt_number.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count_for_user(self, user_id: int, include_samples: bool = False) -> int:
        stmt = select(func.count()).select_from(CallHistory).where(CallHistory.user_id == user_id)
        if not include_samples:
            stmt = stmt.where(CallHistory.is_sample.is_(False))
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def has_scheduled_call(self, user_id: int) -> bool:
        """Whether the user ever had a scheduled call actually placed."""
        stmt = select(
            exists().where(
                CallHistory.user_id == user_id,
                CallHistory.is_sample.is_(False),
                CallHistory.call_sid.is_not(None),
            )
        )
        result = await self._session.execute(stmt)
        return bool(result.scalar())

    async def list_due_retries(self, now: datetime) -> Sequence[CallHistory]:
        """Attempts whose retry is due and that have no successor attempt yet."""
        successor = aliased(CallHistory)
        has_successor = exists().where(
            and_(
                successor.schedule_id == CallHistory.schedule_id,
                successor.occurrence_at == CallHistory.occurrence_at,
                successor.attempt_number == CallHistory.attempt_number + 1,
            )
        )
        stmt = (
            select(CallHistory)
            .where(
                CallHistory.next_retry_at.is_not(None),
                CallHistory.next_retry_at <= now,
                CallHistory.schedule_id.is_not(None),
                ~has_successor,
            )
            .order_by(CallHistory.next_retry_at)
        )
        result = await self._session.execute(stmt)
        return result.scalars().all()
