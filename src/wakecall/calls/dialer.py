"""
Places a single wake-up call for a call history row.

Script text comes from the script generator (never fails), audio from the
speech synthesizer (optional; the provider speaks the text when it is not
available), and the call itself from the telephony provider.
"""

from wakecall.auth.models import User
from wakecall.calls.models import CallHistory
from wakecall.calls.state import CallStatus, advance
from wakecall.personalization.models import Personalization
from wakecall.shared.logging import get_logger
from wakecall.telephony.config import TelephonyConfig
from wakecall.telephony.interface import (
    CallInitiationRequest,
    TelephonyProvider,
    TelephonyProviderError,
)
from wakecall.voice.script import ScriptContext, ScriptGenerator
from wakecall.voice.tts import SpeechSynthesisError, SpeechSynthesizer

logger = get_logger(__name__)


class CallDialer:
    def __init__(
        self,
        telephony_provider: TelephonyProvider,
        telephony_config: TelephonyConfig,
        script_generator: ScriptGenerator,
        synthesizer: SpeechSynthesizer,
    ) -> None:
        self._provider = telephony_provider
        self._config = telephony_config
        self._script_generator = script_generator
        self._synthesizer = synthesizer

    async def render(self, user: User, personalization: Personalization | None, voice: str) -> tuple[str, str | None]:
        """Return ``(message, audio_url)``; ``audio_url`` is None without synthesized audio."""
        if personalization is not None:
            ctx = ScriptContext.from_personalization(user.name, personalization)
        else:
            ctx = ScriptContext(name=user.name)
        message = await self._script_generator.generate(ctx)

        audio_url: str | None = None
        if self._synthesizer.enabled:
            try:
                audio_url = await self._synthesizer.synthesize(message, voice)
            except SpeechSynthesisError as e:
                logger.warning(
                    "Speech synthesis failed; provider voice will read the script",
                    extra={"voice": voice, "error": str(e)},
                )
        return message, audio_url

    async def dial(
        self,
        history: CallHistory,
        user: User,
        personalization: Personalization | None,
    ) -> bool:
        """Place the call and record the result on ``history``.

        Returns:
            True when the provider accepted the call.
        """
        message, audio_url = await self.render(user, personalization, history.voice)

        request = CallInitiationRequest(
            to=user.phone or "",
            from_number=self._config.twilio_from_number,
            callback_url=self._config.get_webhook_url(),
            history_id=history.id,
            message=message,
            audio_url=audio_url,
            record=self._config.record_calls,
        )

        try:
            response = await self._provider.initiate_call(request)
        except TelephonyProviderError as e:
            history.status = CallStatus.FAILED.value
            history.error_code = e.error_code or "CALL_INITIATION_FAILED"
            logger.error(
                "Call initiation failed",
                extra={
                    "history_id": history.id,
                    "user_id": user.id,
                    "error_code": history.error_code,
                    "error": str(e),
                },
            )
            return False

        history.call_sid = response.provider_call_id
        history.status = advance(history.status, response.status).value
        logger.info(
            "Call placed",
            extra={
                "history_id": history.id,
                "user_id": user.id,
                "call_sid": response.provider_call_id,
                "attempt_number": history.attempt_number,
                "audio": audio_url is not None,
            },
        )
        return True
