"""
Configuration for the trading assistant bot.

Security features:
- Tokens and secrets loaded from environment only (never hardcoded)
- No key exposure in logs or messages (use ``mask_key``)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Load .env file from tg_bot directory
_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

DEFAULT_BACKEND_URL = "http://localhost:8080"


def _get_telegram_token() -> str:
    """TELEGRAM_BOT_TOKEN, falling back to the older BOT_TOKEN name."""
    return (os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN") or "").strip()


def _get_backend_url() -> str:
    url = os.getenv("BACKEND_API_BASE_URL") or os.getenv("GO_API_BASE_URL") or DEFAULT_BACKEND_URL
    return url.strip().rstrip("/")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass
class BotConfig:
    """Bot configuration read from the environment."""

    # === REQUIRED ===
    telegram_token: str = field(default_factory=_get_telegram_token)

    # === TRADING BACKEND ===
    backend_url: str = field(default_factory=_get_backend_url)
    backend_bot_token: str = field(default_factory=lambda: os.getenv("BOT_API_TOKEN", ""))
    backend_secret: str = field(default_factory=lambda: os.getenv("BOT_API_SECRET", ""))
    # None leaves the transport default in place
    backend_timeout_seconds: Optional[float] = field(
        default_factory=lambda: _env_float("BACKEND_TIMEOUT_SECONDS", None)
    )

    # === SESSIONS ===
    session_timeout_minutes: int = field(default_factory=lambda: _env_int("SESSION_TIMEOUT_MINUTES", 30))
    # 0 disables the housekeeping sweep
    session_sweep_interval_seconds: int = field(
        default_factory=lambda: _env_int("SESSION_SWEEP_INTERVAL_SECONDS", 300)
    )

    # === WEBHOOK (polling when unset) ===
    webhook_url: str = field(default_factory=lambda: os.getenv("WEBHOOK_URL", "").strip())
    webhook_secret: str = field(default_factory=lambda: os.getenv("WEBHOOK_SECRET", ""))
    port: int = field(default_factory=lambda: _env_int("PORT", 3000))

    # === LOGGING ===
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_dir: Optional[str] = field(default_factory=lambda: os.getenv("LOG_DIR") or None)

    @property
    def session_timeout_seconds(self) -> int:
        return self.session_timeout_minutes * 60

    @property
    def use_webhook(self) -> bool:
        return bool(self.webhook_url)

    def is_valid(self) -> bool:
        """Check if minimum required config is set."""
        return not self.get_missing()

    def get_missing(self) -> List[str]:
        """Get list of missing required config."""
        missing = []
        if not self.telegram_token:
            missing.append("TELEGRAM_BOT_TOKEN")
        if not self.backend_bot_token:
            missing.append("BOT_API_TOKEN")
        if not self.backend_secret:
            missing.append("BOT_API_SECRET")
        return missing

    def mask_key(self, key: str) -> str:
        """Mask API key for safe logging."""
        if not key or len(key) < 8:
            return "***"
        return f"{key[:4]}...{key[-4:]}"


_config: Optional[BotConfig] = None


def get_config() -> BotConfig:
    """Get singleton config instance."""
    global _config
    if _config is None:
        _config = BotConfig()
    return _config


def reload_config() -> BotConfig:
    """Re-read the environment and reset the singleton."""
    global _config
    _config = BotConfig()
    return _config
