"""
FastAPI router for the voice catalog and previews.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from wakecall.auth.middleware import CurrentUserDep
from wakecall.shared.exceptions import AppException, NotFoundError
from wakecall.shared.logging import get_logger
from wakecall.voice.tts import SpeechSynthesisError, SpeechSynthesizer, get_speech_synthesizer
from wakecall.voices.catalog import VOICES

logger = get_logger(__name__)

router = APIRouter(prefix="/api/voices", tags=["voices"])

PREVIEW_TEXT = (
    "Good morning! This is your wake-up call. Up you get, the day is waiting for you."
)


class VoiceOut(BaseModel):
    id: str
    name: str
    description: str


class VoicePreviewRequest(BaseModel):
    voice: str


class VoicePreviewResponse(BaseModel):
    voice: str
    audio_url: str


@router.get("", response_model=list[VoiceOut])
async def list_voices() -> list[VoiceOut]:
    return [VoiceOut(id=v.id, name=v.name, description=v.description) for v in VOICES.values()]


@router.post("/preview", response_model=VoicePreviewResponse)
async def preview_voice(
    data: VoicePreviewRequest,
    user: CurrentUserDep,
    synthesizer: Annotated[SpeechSynthesizer, Depends(get_speech_synthesizer)],
) -> VoicePreviewResponse:
    if data.voice not in VOICES:
        raise NotFoundError(f"Unknown voice: {data.voice}", "VOICE_NOT_FOUND")
    try:
        url = await synthesizer.synthesize(PREVIEW_TEXT, data.voice)
    except SpeechSynthesisError as e:
        logger.warning("Voice preview unavailable", extra={"voice": data.voice, "error": str(e)})
        raise AppException(
            "Voice preview is unavailable right now",
            "PREVIEW_UNAVAILABLE",
        ) from e
    return VoicePreviewResponse(voice=data.voice, audio_url=url)
