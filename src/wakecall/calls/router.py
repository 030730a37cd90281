"""
FastAPI router for call history and sample calls.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wakecall.auth.middleware import CurrentUserDep, VerifiedUserDep
from wakecall.calls.dialer import CallDialer
from wakecall.calls.schemas import CallHistoryOut, RecordingOut, SampleCallOut
from wakecall.calls.service import CallService
from wakecall.shared.database import get_db_session
from wakecall.telephony.factory import get_telephony_config, get_telephony_provider
from wakecall.telephony.interface import TelephonyProvider
from wakecall.voice.script import ScriptGenerator, get_script_generator
from wakecall.voice.tts import SpeechSynthesizer, get_speech_synthesizer

router = APIRouter(prefix="/api/calls", tags=["calls"])


def get_call_dialer(
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
    script_generator: Annotated[ScriptGenerator, Depends(get_script_generator)],
    synthesizer: Annotated[SpeechSynthesizer, Depends(get_speech_synthesizer)],
) -> CallDialer:
    return CallDialer(provider, get_telephony_config(), script_generator, synthesizer)


def get_call_service(
    session: Annotated[AsyncSession, Depends(get_db_session)],
    dialer: Annotated[CallDialer, Depends(get_call_dialer)],
) -> CallService:
    return CallService(session, dialer=dialer)


CallServiceDep = Annotated[CallService, Depends(get_call_service)]


@router.get("/history", response_model=list[CallHistoryOut])
async def call_history(
    user: CurrentUserDep,
    service: CallServiceDep,
    limit: int = Query(default=50, ge=1, le=200),
) -> list[CallHistoryOut]:
    return await service.history(user, limit=limit)


@router.post("/sample", response_model=SampleCallOut)
async def sample_call(user: VerifiedUserDep, service: CallServiceDep) -> SampleCallOut:
    return await service.sample_call(user)


@router.get("/{history_id}/recording", response_model=RecordingOut)
async def call_recording(
    history_id: int,
    user: CurrentUserDep,
    service: CallServiceDep,
) -> RecordingOut:
    return await service.recording(user, history_id)
