"""
Telephony provider configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported telephony provider types."""

    TWILIO = "twilio"
    MOCK = "mock"


class TelephonyConfig(BaseSettings):
    """Telephony provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TELEPHONY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider_type: ProviderType = Field(default=ProviderType.TWILIO)

    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_from_number: str = Field(default="")

    # Public base URL Twilio calls back into
    webhook_base_url: str = Field(default="http://localhost:8000")

    max_concurrent_calls: int = Field(default=10, ge=1, le=100)
    call_timeout_seconds: int = Field(
        default=45,
        ge=10,
        le=300,
        description="How long the call rings before it counts as unanswered.",
    )
    record_calls: bool = Field(default=True)
    fallback_voice: str = Field(
        default="Polly.Matthew",
        description="Provider voice used when no synthesized audio is available.",
    )

    def get_webhook_url(self, path: str = "/webhooks/telephony/status") -> str:
        base = self.webhook_base_url.rstrip("/")
        return f"{base}{path}"


def get_telephony_config() -> TelephonyConfig:
    return TelephonyConfig()
