"""
Logging setup for the trading assistant bot.

Provides:
- Colored console output
- Optional rotating JSON-lines file (10MB max, keep 5)
- Structured records for backend calls and flow transitions

Usage:
    from tg_bot.logging_utils import setup_logging, log_flow_event

    setup_logging(level="INFO", log_dir="/var/log/tradebot")
    log_flow_event(logger, user_id=42, flow="trader", step="enter_trader_name", outcome="started")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

ROOT_LOGGER_NAME = "tg_bot"

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",      # Reset
}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with any structured ``extra_data`` merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "extra_data"):
            log_entry.update(record.extra_data)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def __init__(self):
        super().__init__(self.FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        color = COLORS.get(record.levelname, COLORS["RESET"])
        reset = COLORS["RESET"]

        original_levelname = record.levelname
        record.levelname = f"{color}{record.levelname}{reset}"
        result = super().format(record)
        record.levelname = original_levelname

        return result


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``tg_bot`` logger tree.

    Args:
        level: Logging level name or number
        log_dir: Directory for ``tg_bot.log`` (JSON lines). Console only if unset.

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter())
    logger.addHandler(console_handler)

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path / f"{ROOT_LOGGER_NAME}.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("telegram").setLevel(logging.WARNING)

    return logger


def _create_log_record(
    logger: logging.Logger,
    level: int,
    message: str,
    extra_data: Dict[str, Any],
) -> None:
    """Emit a record carrying structured extra data."""
    if not logger.isEnabledFor(level):
        return
    record = logger.makeRecord(logger.name, level, "(logging_utils)", 0, message, (), None)
    record.extra_data = extra_data
    logger.handle(record)


def log_api_call(
    logger: logging.Logger,
    api: str,
    method: str,
    latency: float,
    success: bool,
    error: Optional[str] = None,
) -> None:
    """
    Log a backend call with structured data.

    Example:
        log_api_call(logger, api="backend", method="GET /api/bot/ai-models", latency=0.2, success=True)
    """
    extra_data = {
        "log_type": "api_call",
        "api": api,
        "method": method,
        "latency_seconds": latency,
        "success": success,
    }
    if error:
        extra_data["error"] = error

    level = logging.INFO if success else logging.WARNING
    message = f"API call: {api} {method} ({'OK' if success else 'FAILED'}) in {latency:.3f}s"
    if error:
        message += f" - {error}"

    _create_log_record(logger, level, message, extra_data)


def log_flow_event(
    logger: logging.Logger,
    user_id: int,
    flow: str,
    step: str,
    outcome: str,
) -> None:
    """Log a flow transition (started, advanced, rejected, created, cancelled, expired)."""
    extra_data = {
        "log_type": "flow_event",
        "user_id": user_id,
        "flow": flow,
        "step": step,
        "outcome": outcome,
    }
    _create_log_record(
        logger,
        logging.INFO,
        f"Flow {flow} for user {user_id}: {step} -> {outcome}",
        extra_data,
    )


__all__ = [
    "JSONFormatter",
    "ColoredFormatter",
    "setup_logging",
    "log_api_call",
    "log_flow_event",
]
