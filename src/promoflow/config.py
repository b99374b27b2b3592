"""Service configuration loaded from environment variables."""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

REDEMPTION_POLICY_ONCE = "once_per_campaign"
REDEMPTION_POLICY_UNLIMITED = "unlimited"
REDEMPTION_POLICIES = (REDEMPTION_POLICY_ONCE, REDEMPTION_POLICY_UNLIMITED)


def _db_config_from_env() -> Dict[str, Any]:
    return {
        "host": os.getenv("DB_HOST", "localhost"),
        "port": os.getenv("DB_PORT", "5432"),
        "database": os.getenv("DB_NAME", "promoflow"),
        "user": os.getenv("DB_USER", "admin"),
        "password": os.getenv("DB_PASSWORD", "admin123"),
    }


@dataclass
class Settings:
    """Runtime settings for the PromoFlow service."""
    store_backend: str = "memory"
    db_config: Dict[str, Any] = field(default_factory=_db_config_from_env)
    redemption_policy: str = REDEMPTION_POLICY_ONCE
    low_stock_threshold: int = 10
    ai_provider: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    notification_from_email: str = "rewards@promoflow.local"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    def __post_init__(self):
        if self.redemption_policy not in REDEMPTION_POLICIES:
            raise ValueError(
                f"Unknown REDEMPTION_POLICY '{self.redemption_policy}', "
                f"expected one of {', '.join(REDEMPTION_POLICIES)}"
            )
        if self.store_backend not in ("memory", "postgres"):
            raise ValueError(f"Unknown STORE_BACKEND '{self.store_backend}'")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment."""
        return cls(
            store_backend=os.getenv("STORE_BACKEND", "memory").lower(),
            db_config=_db_config_from_env(),
            redemption_policy=os.getenv("REDEMPTION_POLICY", REDEMPTION_POLICY_ONCE).lower(),
            low_stock_threshold=int(os.getenv("LOW_STOCK_THRESHOLD", "10")),
            ai_provider=os.getenv("AI_PROVIDER") or None,
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            sendgrid_api_key=os.getenv("SENDGRID_API_KEY") or None,
            notification_from_email=os.getenv("NOTIFICATION_FROM_EMAIL", "rewards@promoflow.local"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
        )
