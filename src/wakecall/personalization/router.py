"""
FastAPI router for personalization endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.middleware import CurrentUserDep
from wakecall.personalization.repository import PersonalizationRepository
from wakecall.personalization.schemas import PersonalizationIn, PersonalizationOut
from wakecall.shared.database import get_db_session
from wakecall.shared.exceptions import NotFoundError
from wakecall.shared.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/user/personalization", tags=["personalization"])


@router.get("", response_model=PersonalizationOut)
async def get_personalization(
    user: CurrentUserDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> PersonalizationOut:
    row = await PersonalizationRepository(session).get_for_user(user.id)
    if row is None:
        raise NotFoundError("Personalization not set up yet", "PERSONALIZATION_NOT_FOUND")
    return PersonalizationOut.model_validate(row)


@router.post("", response_model=PersonalizationOut)
async def save_personalization(
    data: PersonalizationIn,
    user: CurrentUserDep,
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> PersonalizationOut:
    row = await PersonalizationRepository(session).upsert(user.id, data)
    user.is_personalized = True
    await session.commit()
    await session.refresh(row)
    logger.info(
        "Personalization saved",
        extra={"user_id": user.id, "goals": row.goals, "voice": row.voice},
    )
    return PersonalizationOut.model_validate(row)
