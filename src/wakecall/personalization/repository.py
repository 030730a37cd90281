"""
Repository for personalization rows.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.personalization.models import Personalization
from wakecall.personalization.schemas import PersonalizationIn


class PersonalizationRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_user(self, user_id: int) -> Personalization | None:
        stmt = select(Personalization).where(Personalization.user_id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, user_id: int, data: PersonalizationIn) -> Personalization:
        """Create or replace the user's personalization."""
        row = await self.get_for_user(user_id)
        if row is None:
            row = Personalization(user_id=user_id)
            self._session.add(row)

        row.goals = [g.value for g in data.goals]
        row.other_goal = data.other_goal
        row.goal_description = data.goal_description
        row.struggles = [s.value for s in data.struggles]
        row.other_struggle = data.other_struggle
        row.voice = data.voice
        row.custom_voice = data.custom_voice
        await self._session.flush()
        return row
