"""
Twilio telephony provider adapter.

Calls are placed through the REST API with inline TwiML, status callbacks
carry the internal ``history_id`` in the query string so the webhook can
resolve the call history row without a lookup by CallSid.
"""

import hashlib
import hmac
from base64 import b64encode
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any
from urllib.parse import parse_qs, urlencode
from xml.sax.saxutils import escape

import httpx

from wakecall.shared.logging import get_logger
from wakecall.telephony.config import TelephonyConfig, get_telephony_config
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

TWILIO_STATUS_MAP: dict[str, CallStatus] = {
    "queued": CallStatus.QUEUED,
    "initiated": CallStatus.INITIATED,
    "ringing": CallStatus.RINGING,
    "in-progress": CallStatus.IN_PROGRESS,
    "answered": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.BUSY,
    "no-answer": CallStatus.NO_ANSWER,
    "failed": CallStatus.FAILED,
    "canceled": CallStatus.CANCELED,
}


def build_twiml(message: str, audio_url: str | None, voice: str) -> str:
    """Render the TwiML played once the callee picks up."""
    if audio_url:
        body = f"<Play>{escape(audio_url)}</Play>"
    else:
        body = f'<Say voice="{escape(voice)}">{escape(message)}</Say>'
    return f'<?xml version="1.0" encoding="UTF-8"?><Response>{body}</Response>'


def map_twilio_status(raw_status: str) -> CallStatus:
    """Translate a Twilio CallStatus; anything unrecognized counts as failed."""
    return TWILIO_STATUS_MAP.get(raw_status.lower(), CallStatus.FAILED)


class TwilioAdapter(TelephonyProvider):
    """Twilio telephony provider adapter.

    Uses a sync httpx client; inject one for tests.
    """

    def __init__(
        self,
        config: TelephonyConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or get_telephony_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=httpx.Timeout(30.0))
        return self._http_client

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _get_auth(self) -> tuple[str, str]:
        return (self._config.twilio_account_sid, self._config.twilio_auth_token)

    def _get_api_url(self, endpoint: str) -> str:
        account_sid = self._config.twilio_account_sid
        return f"https://api.twilio.com/2010-04-01/Accounts/{account_sid}{endpoint}"

    def _post(self, endpoint: str, payload: dict[str, Any]) -> tuple[int, dict[str, Any]]:
        response = self._get_client().post(
            self._get_api_url(endpoint),
            data=payload,
            auth=self._get_auth(),
        )
        try:
            data = response.json() if response.content else {}
        except ValueError:
            # Gateway error pages are HTML.
            data = {"body": response.text[:500]}
        if not isinstance(data, dict):
            data = {"body": data}
        return response.status_code, data

    def initiate_call_sync(
        self,
        request: CallInitiationRequest,
    ) -> CallInitiationResponse:
        """Place a wake-up call via Twilio."""
        metadata = {"history_id": str(request.history_id), **request.metadata}
        status_callback = f"{request.callback_url}?{urlencode(metadata)}"

        payload: dict[str, Any] = {
            "To": request.to,
            "From": request.from_number,
            "Twiml": build_twiml(request.message, request.audio_url, self._config.fallback_voice),
            "StatusCallback": status_callback,
            "StatusCallbackEvent": ["initiated", "ringing", "answered", "completed"],
            "StatusCallbackMethod": "POST",
            "Timeout": str(self._config.call_timeout_seconds),
        }
        if request.record and self._config.record_calls:
            payload["Record"] = "true"
            payload["RecordingStatusCallback"] = status_callback
            payload["RecordingStatusCallbackMethod"] = "POST"

        logger.info(
            "Initiating Twilio call",
            extra={"to": request.to, "history_id": request.history_id},
        )

        try:
            status_code, data = self._post("/Calls.json", payload)
        except httpx.HTTPError as e:
            logger.exception(
                "HTTP error during Twilio call initiation",
                extra={"history_id": request.history_id},
            )
            raise CallInitiationError(
                message=f"HTTP error: {e!s}",
                error_code="HTTP_ERROR",
            ) from e

        if status_code >= 400:
            logger.error(
                "Twilio call initiation failed",
                extra={
                    "status_code": status_code,
                    "error": data,
                    "history_id": request.history_id,
                },
            )
            raise CallInitiationError(
                message=data.get("message", "Call initiation failed"),
                error_code=str(data.get("code", status_code)),
                provider_response=data,
            )

        if not data.get("sid"):
            raise CallInitiationError(
                message="Twilio response carries no call sid",
                error_code="INVALID_RESPONSE",
                provider_response=data,
            )

        return CallInitiationResponse(
            provider_call_id=data["sid"],
            status=TWILIO_STATUS_MAP.get(data.get("status", ""), CallStatus.QUEUED),
            created_at=_parse_twilio_date(data.get("date_created")),
            raw_response=data,
        )

    def send_sms_sync(self, request: SmsRequest) -> SmsResponse:
        payload = {"To": request.to, "From": request.from_number, "Body": request.body}

        try:
            status_code, data = self._post("/Messages.json", payload)
        except httpx.HTTPError as e:
            logger.exception("HTTP error during Twilio SMS send")
            raise SmsDeliveryError(f"HTTP error: {e!s}", error_code="HTTP_ERROR") from e

        if status_code >= 400:
            logger.error(
                "Twilio SMS send failed",
                extra={"status_code": status_code, "error": data},
            )
            raise SmsDeliveryError(
                data.get("message", "SMS delivery failed"),
                error_code=str(data.get("code", status_code)),
                provider_response=data,
            )

        if not data.get("sid"):
            raise SmsDeliveryError(
                "Twilio response carries no message sid",
                error_code="INVALID_RESPONSE",
                provider_response=data,
            )

        return SmsResponse(
            provider_message_id=data["sid"],
            status=data.get("status", "queued"),
            raw_response=data,
        )

    def parse_webhook_event(self, payload: dict[str, Any]) -> WebhookEvent:
        call_sid = payload.get("CallSid")
        if not call_sid:
            raise WebhookParseError(
                message="Missing CallSid in webhook payload",
                error_code="MISSING_CALL_SID",
                provider_response=payload,
            )

        raw_status = str(payload.get("CallStatus") or "").lower()
        recording_url = payload.get("RecordingUrl") or None
        if not raw_status and not recording_url:
            raise WebhookParseError(
                message="Missing CallStatus in webhook payload",
                error_code="MISSING_CALL_STATUS",
                provider_response=payload,
            )

        history_id: int | None = None
        if payload.get("history_id"):
            try:
                history_id = int(payload["history_id"])
            except (TypeError, ValueError):
                logger.warning(
                    "Twilio webhook carries a malformed history_id",
                    extra={"provider_call_id": call_sid, "history_id": payload["history_id"]},
                )

        duration_seconds = None
        if payload.get("CallDuration"):
            try:
                duration_seconds = int(payload["CallDuration"])
            except (TypeError, ValueError):
                duration_seconds = None

        if recording_url and not recording_url.endswith(".mp3"):
            recording_url = f"{recording_url}.mp3"

        return WebhookEvent(
            provider_call_id=call_sid,
            history_id=history_id,
            status=map_twilio_status(raw_status) if raw_status else None,
            raw_status=raw_status,
            timestamp=_parse_twilio_date(payload.get("Timestamp")),
            duration_seconds=duration_seconds,
            recording_url=recording_url,
            error_code=payload.get("ErrorCode") or payload.get("SipResponseCode"),
            error_message=payload.get("ErrorMessage"),
            raw_payload=payload,
        )

    def validate_webhook_signature(self, payload: bytes, signature: str, url: str) -> bool:
        """Check X-Twilio-Signature: base64(HMAC-SHA1(url + sorted params))."""
        if not self._config.twilio_auth_token:
            logger.warning("No auth token configured, skipping signature validation")
            return True

        params = parse_qs(payload.decode("utf-8"), keep_blank_values=True)
        data_str = url
        for key in sorted(params.keys()):
            for value in params[key]:
                data_str += key + value

        computed = hmac.new(
            self._config.twilio_auth_token.encode("utf-8"),
            data_str.encode("utf-8"),
            hashlib.sha1,
        ).digest()
        return hmac.compare_digest(b64encode(computed).decode("utf-8"), signature or "")


def _parse_twilio_date(value: str | None) -> datetime:
    """Twilio uses RFC 2822 dates in REST bodies and ISO 8601 in callbacks."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
