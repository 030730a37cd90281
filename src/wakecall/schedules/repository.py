"""
Repository for schedule database operations.
"""

from typing import Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.schedules.models import Schedule


class ScheduleRepository:
    """Repository for schedule database operations."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, schedule: Schedule) -> Schedule:
        self._session.add(schedule)
        await self._session.flush()
        return schedule

    async def get_for_user(self, user_id: int, schedule_id: int) -> Schedule | None:
        stmt = select(Schedule).where(Schedule.id == schedule_id, Schedule.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_user(self, user_id: int) -> Sequence[Schedule]:
        stmt = select(Schedule).where(Schedule.user_id == user_id).order_by(Schedule.id)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def count_for_user(self, user_id: int) -> int:
        stmt = select(func.count()).select_from(Schedule).where(Schedule.user_id == user_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def list_active(self) -> Sequence[Schedule]:
        stmt = select(Schedule).where(Schedule.is_active.is_(True)).order_by(Schedule.id)
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def delete(self, schedule: Schedule) -> None:
        await self._session.delete(schedule)
        await self._session.flush()
