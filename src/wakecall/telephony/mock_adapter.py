"""
Mock telephony provider for development and tests.
"""

from datetime import datetime, timezone
from typing import Any

from wakecall.shared.logging import get_logger
from wakecall.telephony.interface import (
    CallInitiationError,
    CallInitiationRequest,
    CallInitiationResponse,
    CallStatus,
    SmsDeliveryError,
    SmsRequest,
    SmsResponse,
    TelephonyProvider,
    WebhookEvent,
    WebhookParseError,
)

logger = get_logger(__name__)


class MockTelephonyProvider(TelephonyProvider):
    """Records calls and messages instead of placing them."""

    def __init__(self) -> None:
        self._calls: list[CallInitiationRequest] = []
        self._messages: list[SmsRequest] = []
        self._next_call_id: int = 1
        self._should_fail: bool = False
        self._fail_error: str = "Mock failure"
        self._fail_code: str = "MOCK_ERROR"
        self._default_status: CallStatus = CallStatus.QUEUED

    def reset(self) -> None:
        self._calls.clear()
        self._messages.clear()
        self._next_call_id = 1
        self._should_fail = False
        self._default_status = CallStatus.QUEUED

    def configure_failure(
        self,
        should_fail: bool = True,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
    ) -> None:
        self._should_fail = should_fail
        self._fail_error = error_message
        self._fail_code = error_code

    def configure_status(self, status: CallStatus) -> None:
        self._default_status = status

    @property
    def calls(self) -> list[CallInitiationRequest]:
        return self._calls.copy()

    @property
    def messages(self) -> list[SmsRequest]:
        return self._messages.copy()

    def get_last_call(self) -> CallInitiationRequest | None:
        return self._calls[-1] if self._calls else None

    def initiate_call_sync(
        self,
        request: CallInitiationRequest,
    ) -> CallInitiationResponse:
        logger.info(
            "Mock: Initiating call",
            extra={"to": request.to, "history_id": request.history_id},
        )

        if self._should_fail:
            raise CallInitiationError(
                message=self._fail_error,
                error_code=self._fail_code,
            )

        self._calls.append(request)

        provider_call_id = f"MOCK_CALL_{self._next_call_id:06d}"
        self._next_call_id += 1

        return CallInitiationResponse(
            provider_call_id=provider_call_id,
            status=self._default_status,
            created_at=datetime.now(timezone.utc),
            raw_response={"mock": True, "sid": provider_call_id},
        )

    def send_sms_sync(self, request: SmsRequest) -> SmsResponse:
        logger.info("Mock: Sending SMS", extra={"to": request.to, "body": request.body})
        if self._should_fail:
            raise SmsDeliveryError(self._fail_error, error_code=self._fail_code)
        self._messages.append(request)
        return SmsResponse(
            provider_message_id=f"MOCK_SMS_{len(self._messages):06d}",
            status="delivered",
        )

    def parse_webhook_event(self, payload: dict[str, Any]) -> WebhookEvent:
        """Accept the same form fields Twilio sends."""
        call_sid = payload.get("CallSid")
        if not call_sid:
            raise WebhookParseError(
                message="Missing CallSid in payload",
                error_code="MISSING_CALL_SID",
                provider_response=payload,
            )

        raw_status = str(payload.get("CallStatus") or "").lower()
        try:
            status = CallStatus(raw_status) if raw_status else None
        except ValueError:
            status = CallStatus.FAILED

        history_id = payload.get("history_id")
        return WebhookEvent(
            provider_call_id=call_sid,
            history_id=int(history_id) if history_id else None,
            status=status,
            raw_status=raw_status,
            timestamp=datetime.now(timezone.utc),
            duration_seconds=int(payload["CallDuration"]) if payload.get("CallDuration") else None,
            recording_url=payload.get("RecordingUrl"),
            error_code=payload.get("ErrorCode"),
            raw_payload=payload,
        )

    def validate_webhook_signature(self, payload: bytes, signature: str, url: str) -> bool:
        return True
