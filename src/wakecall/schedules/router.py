"""
FastAPI router for schedule endpoints.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.middleware import CurrentUserDep, VerifiedUserDep
from wakecall.notifications.email import EmailSender, get_email_sender
from wakecall.schedules.schemas import ScheduleIn, ScheduleOut
from wakecall.schedules.service import ScheduleService
from wakecall.shared.database import get_db_session

router = APIRouter(prefix="/api/schedules", tags=["schedules"])


def get_schedule_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    email_sender: Annotated[EmailSender, Depends(get_email_sender)],
) -> ScheduleService:
    return ScheduleService(session, email_sender=email_sender)


ScheduleServiceDep = Annotated[ScheduleService, Depends(get_schedule_service)]


@router.post("", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    data: ScheduleIn,
    user: VerifiedUserDep,
    service: ScheduleServiceDep,
) -> ScheduleOut:
    return await service.create(user, data)


@router.get("", response_model=list[ScheduleOut])
async def list_schedules(user: CurrentUserDep, service: ScheduleServiceDep) -> list[ScheduleOut]:
    return await service.list_for_user(user)


@router.get("/{schedule_id}", response_model=ScheduleOut)
async def get_schedule(
    schedule_id: int,
    user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> ScheduleOut:
    return await service.get(user, schedule_id)


@router.put("/{schedule_id}", response_model=ScheduleOut)
async def update_schedule(
    schedule_id: int,
    data: ScheduleIn,
    user: VerifiedUserDep,
    service: ScheduleServiceDep,
) -> ScheduleOut:
    return await service.update(user, schedule_id, data)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: int,
    user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> Response:
    await service.delete(user, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{schedule_id}/toggle", response_model=ScheduleOut)
async def toggle_schedule(
    schedule_id: int,
    user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> ScheduleOut:
    return await service.toggle(user, schedule_id)


@router.post("/{schedule_id}/skip-next", response_model=ScheduleOut)
async def skip_next_call(
    schedule_id: int,
    user: CurrentUserDep,
    service: ScheduleServiceDep,
) -> ScheduleOut:
    return await service.skip_next(user, schedule_id)
