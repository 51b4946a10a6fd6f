"""
Telephony provider factory.

Single source of truth for configuration:
- use TelephonyConfig (Pydantic Settings) which loads from OS env + .env
- never read raw os.getenv("TWILIO_*") here
"""

from callrelay.config import get_settings
from callrelay.shared.logging import get_logger
from callrelay.telephony.config import ProviderType, TelephonyConfig, get_telephony_config
from callrelay.telephony.interface import TelephonyProvider
from callrelay.telephony.mock_adapter import MockTelephonyAdapter
from callrelay.telephony.twilio_adapter import TwilioAdapter

logger = get_logger(__name__)


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep:
        return "*" * len(s)
    return f"{s[:keep]}***"


def build_telephony_provider(cfg: TelephonyConfig | None = None) -> TelephonyProvider:
    """Create the telephony provider selected by ``provider_type``."""
    cfg = cfg or get_telephony_config()

    logger.info(
        "Telephony config resolved",
        extra={
            "provider_type": cfg.provider_type.value,
            "twilio_account_sid": _mask(cfg.twilio_account_sid),
            "twilio_from_number": cfg.twilio_from_number,
            "webhook_base_url": cfg.webhook_base_url or "<ngrok>",
        },
    )

    if cfg.provider_type == ProviderType.TWILIO:
        return TwilioAdapter(cfg, timeout_seconds=get_settings().http_timeout_seconds)

    if cfg.provider_type == ProviderType.MOCK:
        return MockTelephonyAdapter()

    raise ValueError(f"Unsupported telephony provider_type: {cfg.provider_type}")
