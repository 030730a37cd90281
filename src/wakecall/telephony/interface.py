"""
Telephony provider interface definition.

Providers place outbound calls, send SMS, and translate status callbacks
into ``WebhookEvent`` objects.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import anyio


class CallStatus(str, Enum):
    """Call status values, spelled the way the provider reports them."""

    PENDING = "pending"
    QUEUED = "queued"
    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in-progress"
    ANSWERED = "answered"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no-answer"
    FAILED = "failed"
    CANCELED = "canceled"


@dataclass(frozen=True)
class CallInitiationRequest:
    """Request to place an outbound wake-up call.

    ``audio_url`` is played when present; otherwise ``message`` is spoken by
    the provider's own text-to-speech.
    """

    to: str
    from_number: str
    callback_url: str
    history_id: int
    message: str
    audio_url: str | None = None
    record: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CallInitiationResponse:
    """Response from call initiation."""

    provider_call_id: str
    status: CallStatus
    created_at: datetime
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SmsRequest:
    to: str
    from_number: str
    body: str


@dataclass(frozen=True)
class SmsResponse:
    provider_message_id: str
    status: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class WebhookEvent:
    """Parsed status or recording callback.

    ``status`` is None for recording-only callbacks.
    """

    provider_call_id: str
    history_id: int | None
    status: CallStatus | None
    raw_status: str
    timestamp: datetime
    duration_seconds: int | None = None
    recording_url: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)


class TelephonyProviderError(Exception):
    """Base exception for telephony provider errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.provider_response = provider_response or {}


class CallInitiationError(TelephonyProviderError):
    """Error during call initiation."""


class SmsDeliveryError(TelephonyProviderError):
    """Error sending an SMS."""


class WebhookParseError(TelephonyProviderError):
    """Error parsing webhook event."""


class TelephonyProvider(ABC):
    """Abstract interface for telephony providers.

    The async entrypoints delegate to the sync implementations in a worker
    thread; tests drive the sync methods directly.
    """

    async def initiate_call(
        self,
        request: CallInitiationRequest,
    ) -> CallInitiationResponse:
        return await anyio.to_thread.run_sync(self.initiate_call_sync, request)

    async def send_sms(self, request: SmsRequest) -> SmsResponse:
        return await anyio.to_thread.run_sync(self.send_sms_sync, request)

    @abstractmethod
    def initiate_call_sync(
        self,
        request: CallInitiationRequest,
    ) -> CallInitiationResponse:
        """Place an outbound call."""
        ...

    @abstractmethod
    def send_sms_sync(self, request: SmsRequest) -> SmsResponse:
        """Send a text message."""
        ...

    @abstractmethod
    def parse_webhook_event(
        self,
        payload: dict[str, Any],
    ) -> WebhookEvent:
        """Parse a webhook event from the provider."""
        ...

    @abstractmethod
    def validate_webhook_signature(
        self,
        payload: bytes,
        signature: str,
        url: str,
    ) -> bool:
        """Validate webhook signature for authenticity."""
        ...
