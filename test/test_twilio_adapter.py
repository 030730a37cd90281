"""Tests for the Twilio telephony adapter (sync, no network, no DB)."""

import hashlib
import hmac
from base64 import b64encode
from datetime import datetime, timezone
from unittest.mock import MagicMock
from urllib.parse import urlencode

import httpx
import pytest

from wakecall.telephony.config import ProviderType, TelephonyConfig
from wakecall.telephony.interface import (
    CallInitiationError,
    CallInitiationRequest,
    CallStatus,
    SmsDeliveryError,
    SmsRequest,
    WebhookParseError,
)
from wakecall.telephony.twilio_adapter import TwilioAdapter, build_twiml, map_twilio_status

AUTH_TOKEN = "test_auth_token_12345"


@pytest.fixture
def twilio_config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.TWILIO,
        twilio_account_sid="AC_TEST_ACCOUNT_SID",
        twilio_auth_token=AUTH_TOKEN,
        twilio_from_number="+14155550000",
        webhook_base_url="https://example.com",
        call_timeout_seconds=45,
    )


@pytest.fixture
def call_request() -> CallInitiationRequest:
    return CallInitiationRequest(
        to="+14155551234",
        from_number="+14155550000",
        callback_url="https://example.com/webhooks/telephony/status",
        history_id=7,
        message="Good morning, Sam! Time to rise & shine.",
    )


def _client(response: httpx.Response) -> MagicMock:
    client = MagicMock(spec=httpx.Client)
    client.post.return_value = response
    return client


def _sign(url: str, params: dict[str, str]) -> str:
    data = url + "".join(k + params[k] for k in sorted(params))
    digest = hmac.new(AUTH_TOKEN.encode(), data.encode(), hashlib.sha1).digest()
    return b64encode(digest).decode()


class TestTwiml:
    def test_plays_audio_when_available(self) -> None:
        twiml = build_twiml("ignored", "https://cdn.example.com/a.mp3?x=1&y=2", "Polly.Matthew")
        assert "<Play>https://cdn.example.com/a.mp3?x=1&amp;y=2</Play>" in twiml
        assert "<Say" not in twiml

    def test_says_message_otherwise(self) -> None:
        twiml = build_twiml("Rise & shine <now>", None, "Polly.Matthew")
        assert '<Say voice="Polly.Matthew">Rise &amp; shine &lt;now&gt;</Say>' in twiml
        assert twiml.startswith('<?xml version="1.0" encoding="UTF-8"?><Response>')


class TestInitiateCallSync:
    def test_success(self, twilio_config: TelephonyConfig, call_request: CallInitiationRequest) -> None:
        client = _client(
            httpx.Response(
                status_code=201,
                json={"sid": "CA_TEST_SID", "status": "queued", "date_created": "Mon, 02 Jun 2025 07:00:00 +0000"},
            )
        )
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        response = adapter.initiate_call_sync(call_request)

        assert response.provider_call_id == "CA_TEST_SID"
        assert response.status is CallStatus.QUEUED
        assert response.created_at == datetime(2025, 6, 2, 7, 0, tzinfo=timezone.utc)

        client.post.assert_called_once()
        args, kwargs = client.post.call_args
        assert args[0] == "https://api.twilio.com/2010-04-01/Accounts/AC_TEST_ACCOUNT_SID/Calls.json"
        assert kwargs["auth"] == ("AC_TEST_ACCOUNT_SID", AUTH_TOKEN)
        data = kwargs["data"]
        assert data["To"] == "+14155551234"
        assert data["From"] == "+14155550000"
        assert data["StatusCallback"] == "https://example.com/webhooks/telephony/status?history_id=7"
        assert data["Timeout"] == "45"
        assert data["Record"] == "true"
        assert data["RecordingStatusCallback"] == data["StatusCallback"]
        assert "rise &amp; shine" in data["Twiml"]

    def test_recording_disabled(self, twilio_config: TelephonyConfig) -> None:
        client = _client(httpx.Response(status_code=201, json={"sid": "CA1", "status": "queued"}))
        adapter = TwilioAdapter(config=twilio_config, http_client=client)
        request = CallInitiationRequest(
            to="+14155551234",
            from_number="+14155550000",
            callback_url="https://example.com/cb",
            history_id=1,
            message="hi",
            record=False,
        )

        adapter.initiate_call_sync(request)

        assert "Record" not in client.post.call_args.kwargs["data"]

    def test_api_error(self, twilio_config: TelephonyConfig, call_request: CallInitiationRequest) -> None:
        client = _client(
            httpx.Response(status_code=400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})
        )
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        with pytest.raises(CallInitiationError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert exc_info.value.error_code == "21211"
        assert "Invalid 'To'" in str(exc_info.value)

    def test_transport_error(self, twilio_config: TelephonyConfig, call_request: CallInitiationRequest) -> None:
        client = MagicMock(spec=httpx.Client)
        client.post.side_effect = httpx.ConnectError("connection refused")
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        with pytest.raises(CallInitiationError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert exc_info.value.error_code == "HTTP_ERROR"

    def test_gateway_error_page(self, twilio_config: TelephonyConfig, call_request: CallInitiationRequest) -> None:
        client = _client(httpx.Response(status_code=502, text="<html><body>Bad Gateway</body></html>"))
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        with pytest.raises(CallInitiationError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert exc_info.value.error_code == "502"
        assert "Bad Gateway" in exc_info.value.provider_response["body"]

    def test_success_without_sid(self, twilio_config: TelephonyConfig, call_request: CallInitiationRequest) -> None:
        adapter = TwilioAdapter(config=twilio_config, http_client=_client(httpx.Response(201, text="OK")))

        with pytest.raises(CallInitiationError) as exc_info:
            adapter.initiate_call_sync(call_request)

        assert exc_info.value.error_code == "INVALID_RESPONSE"


class TestSendSmsSync:
    def test_success(self, twilio_config: TelephonyConfig) -> None:
        client = _client(httpx.Response(status_code=201, json={"sid": "SM1", "status": "queued"}))
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        response = adapter.send_sms_sync(SmsRequest(to="+14155551234", from_number="+14155550000", body="hi"))

        assert response.provider_message_id == "SM1"
        args, kwargs = client.post.call_args
        assert args[0].endswith("/Messages.json")
        assert kwargs["data"] == {"To": "+14155551234", "From": "+14155550000", "Body": "hi"}

    def test_error(self, twilio_config: TelephonyConfig) -> None:
        client = _client(httpx.Response(status_code=400, json={"code": 21610, "message": "Unsubscribed"}))
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        with pytest.raises(SmsDeliveryError) as exc_info:
            adapter.send_sms_sync(SmsRequest(to="+14155551234", from_number="+14155550000", body="hi"))

        assert exc_info.value.error_code == "21610"

    def test_gateway_error_page(self, twilio_config: TelephonyConfig) -> None:
        adapter = TwilioAdapter(
            config=twilio_config,
            http_client=_client(httpx.Response(status_code=503, text="<html>Service Unavailable</html>")),
        )

        with pytest.raises(SmsDeliveryError) as exc_info:
            adapter.send_sms_sync(SmsRequest(to="+14155551234", from_number="+14155550000", body="hi"))

        assert exc_info.value.error_code == "503"


class TestParseWebhookEvent:
    @pytest.fixture
    def adapter(self, twilio_config: TelephonyConfig) -> TwilioAdapter:
        return TwilioAdapter(config=twilio_config, http_client=MagicMock(spec=httpx.Client))

    def test_status_callback(self, adapter: TwilioAdapter) -> None:
        event = adapter.parse_webhook_event(
            {
                "CallSid": "CA1",
                "CallStatus": "completed",
                "history_id": "7",
                "CallDuration": "31",
                "Timestamp": "Mon, 02 Jun 2025 07:01:00 +0000",
            }
        )

        assert event.provider_call_id == "CA1"
        assert event.history_id == 7
        assert event.status is CallStatus.COMPLETED
        assert event.duration_seconds == 31
        assert event.timestamp == datetime(2025, 6, 2, 7, 1, tzinfo=timezone.utc)

    def test_answered_maps_to_in_progress(self, adapter: TwilioAdapter) -> None:
        event = adapter.parse_webhook_event({"CallSid": "CA1", "CallStatus": "answered"})
        assert event.status is CallStatus.IN_PROGRESS

    def test_recording_callback(self, adapter: TwilioAdapter) -> None:
        event = adapter.parse_webhook_event(
            {"CallSid": "CA1", "RecordingUrl": "https://api.twilio.com/Recordings/RE1"}
        )

        assert event.status is None
        assert event.recording_url == "https://api.twilio.com/Recordings/RE1.mp3"

    def test_malformed_history_id_ignored(self, adapter: TwilioAdapter) -> None:
        event = adapter.parse_webhook_event({"CallSid": "CA1", "CallStatus": "ringing", "history_id": "abc"})
        assert event.history_id is None

    def test_missing_call_sid(self, adapter: TwilioAdapter) -> None:
        with pytest.raises(WebhookParseError) as exc_info:
            adapter.parse_webhook_event({"CallStatus": "ringing"})
        assert exc_info.value.error_code == "MISSING_CALL_SID"

    def test_missing_status_and_recording(self, adapter: TwilioAdapter) -> None:
        with pytest.raises(WebhookParseError) as exc_info:
            adapter.parse_webhook_event({"CallSid": "CA1"})
        assert exc_info.value.error_code == "MISSING_CALL_STATUS"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("queued", CallStatus.QUEUED),
            ("Ringing", CallStatus.RINGING),
            ("no-answer", CallStatus.NO_ANSWER),
            ("busy", CallStatus.BUSY),
            ("something-new", CallStatus.FAILED),
        ],
    )
    def test_status_map(self, raw: str, expected: CallStatus) -> None:
        assert map_twilio_status(raw) is expected


class TestSignature:
    URL = "https://example.com/webhooks/telephony/status?history_id=7"
    PARAMS = {"CallSid": "CA1", "CallStatus": "completed", "From": "+14155550000"}

    def test_valid(self, twilio_config: TelephonyConfig) -> None:
        adapter = TwilioAdapter(config=twilio_config)
        body = urlencode(self.PARAMS).encode()

        assert adapter.validate_webhook_signature(body, _sign(self.URL, self.PARAMS), self.URL)

    def test_tampered(self, twilio_config: TelephonyConfig) -> None:
        adapter = TwilioAdapter(config=twilio_config)
        signature = _sign(self.URL, self.PARAMS)
        body = urlencode({**self.PARAMS, "CallStatus": "no-answer"}).encode()

        assert not adapter.validate_webhook_signature(body, signature, self.URL)
        assert not adapter.validate_webhook_signature(urlencode(self.PARAMS).encode(), "", self.URL)

    def test_skipped_without_token(self) -> None:
        adapter = TwilioAdapter(config=TelephonyConfig(provider_type=ProviderType.TWILIO, twilio_auth_token=""))
        assert adapter.validate_webhook_signature(b"CallSid=CA1", "anything", "https://x")
