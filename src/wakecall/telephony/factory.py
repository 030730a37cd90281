"""
Telephony provider factory.

TelephonyConfig (pydantic-settings) is the single source of configuration;
never read raw TWILIO_* variables here.
"""

from functools import lru_cache

from wakecall.shared.logging import get_logger
from wakecall.telephony.config import ProviderType, TelephonyConfig
from wakecall.telephony.config import get_telephony_config as _load_telephony_config
from wakecall.telephony.interface import TelephonyProvider
from wakecall.telephony.mock_adapter import MockTelephonyProvider
from wakecall.telephony.twilio_adapter import TwilioAdapter

logger = get_logger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


@lru_cache(maxsize=1)
def get_telephony_config() -> TelephonyConfig:
    """Return cached TelephonyConfig loaded from OS env + .env."""
    return _load_telephony_config()


@lru_cache(maxsize=1)
def get_telephony_provider() -> TelephonyProvider:
    """Create and cache the telephony provider using TelephonyConfig."""
    cfg = get_telephony_config()

    logger.info(
        "Telephony config resolved",
        extra={
            "provider_type": cfg.provider_type.value,
            "twilio_account_sid": _mask(cfg.twilio_account_sid),
            "twilio_from_number": cfg.twilio_from_number,
            "webhook_base_url": cfg.webhook_base_url,
        },
    )

    if cfg.provider_type == ProviderType.TWILIO:
        return TwilioAdapter(cfg)

    if cfg.provider_type == ProviderType.MOCK:
        return MockTelephonyProvider()

    raise ValueError(f"Unsupported telephony provider_type: {cfg.provider_type}")
