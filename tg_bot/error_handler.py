"""
User-Friendly Error Handling.

Error taxonomy for the creation flows plus the application-level handler
registered with python-telegram-bot. Nothing here is fatal: every error is
contained to the one user's flow.
"""

import logging
import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from telegram import Update
from telegram.error import NetworkError, RetryAfter, TimedOut
from telegram.ext import ContextTypes

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for appropriate handling."""
    VALIDATION = "validation"
    SESSION_EXPIRED = "session_expired"
    BACKEND_FAILURE = "backend_failure"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


@dataclass
class FriendlyError:
    """A user-friendly error with suggestions."""
    emoji: str
    title: str
    message: str
    suggestions: List[str] = field(default_factory=list)


ERROR_TEMPLATES: Dict[ErrorCategory, FriendlyError] = {
    ErrorCategory.VALIDATION: FriendlyError(
        emoji="\U0001f4dd",
        title="Invalid Input",
        message="That value can't be used here.",
        suggestions=["Check the hint above and try again"],
    ),
    ErrorCategory.SESSION_EXPIRED: FriendlyError(
        emoji="⏳",
        title="Session Expired",
        message="Your session has expired. Please start again.",
        suggestions=[
            "Use /create to create a trader",
            "Use /create_ai_model to create an AI model",
        ],
    ),
    ErrorCategory.BACKEND_FAILURE: FriendlyError(
        emoji="❌",
        title="Creation Failed",
        message="The trading backend rejected the request.",
        suggestions=[
            "Check that the details are correct",
            "Check that the exchange configuration is complete",
            "Contact an administrator if this persists",
        ],
    ),
    ErrorCategory.NETWORK_ERROR: FriendlyError(
        emoji="\U0001f4e1",
        title="Connection Issue",
        message="Couldn't reach the trading backend.",
        suggestions=["Try again in a few seconds"],
    ),
    ErrorCategory.TIMEOUT: FriendlyError(
        emoji="⏳",
        title="Request Timeout",
        message="The backend took too long to answer.",
        suggestions=["Try again in a moment"],
    ),
    ErrorCategory.INTERNAL: FriendlyError(
        emoji="\U0001f41e",
        title="Something Went Wrong",
        message="Sorry, something went wrong while processing that.",
        suggestions=["Try again later, or contact an administrator"],
    ),
}


class FlowError(Exception):
    """Base for errors raised inside a creation flow."""

    category = ErrorCategory.INTERNAL


class SessionExpiredError(FlowError):
    """Session missing, expired, or missing a prerequisite field."""

    category = ErrorCategory.SESSION_EXPIRED


def classify_error(error: Exception) -> ErrorCategory:
    """
    Classify an exception into an error category.

    Args:
        error: The exception to classify

    Returns:
        The most appropriate ErrorCategory
    """
    if isinstance(error, FlowError):
        return error.category
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION

    error_str = str(error).lower()

    if any(p in error_str for p in ["timeout", "timed out", "deadline"]):
        return ErrorCategory.TIMEOUT

    if any(p in error_str for p in ["connection", "network", "unreachable", "dns"]):
        return ErrorCategory.NETWORK_ERROR

    if any(p in error_str for p in ["api request failed", "500", "502", "503"]):
        return ErrorCategory.BACKEND_FAILURE

    return ErrorCategory.INTERNAL


def format_error_message(
    error: Optional[Exception] = None,
    category: Optional[ErrorCategory] = None,
    detail: Optional[str] = None,
) -> str:
    """
    Format an error into a user-facing message.

    Args:
        error: The exception to format (used for classification)
        category: Optional override for error category
        detail: Optional text shown verbatim under the message

    Returns:
        Plain text message
    """
    if category is None:
        category = classify_error(error) if error is not None else ErrorCategory.INTERNAL

    template = ERROR_TEMPLATES.get(category, ERROR_TEMPLATES[ErrorCategory.INTERNAL])

    lines = [f"{template.emoji} {template.title}", "", template.message]

    if detail:
        lines.append(f"\nError: {detail}")

    if template.suggestions:
        lines.append("")
        for suggestion in template.suggestions:
            lines.append(f"• {suggestion}")

    return "\n".join(lines)


def format_backend_error(error_text: Optional[str]) -> str:
    """Relay a backend failure with its message verbatim."""
    return format_error_message(
        category=ErrorCategory.BACKEND_FAILURE,
        detail=error_text or "Unknown error",
    )


def format_session_expired() -> str:
    return format_error_message(category=ErrorCategory.SESSION_EXPIRED)


def format_simple_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format a simple error message.

    Args:
        message: The error message
        suggestion: Optional suggestion for recovery

    Returns:
        Plain text message
    """
    lines = [f"❌ {message}"]

    if suggestion:
        lines.append(f"\n\U0001f4a1 {suggestion}")

    return "\n".join(lines)


def format_validation_error(field_name: str, issue: str, example: Optional[str] = None) -> str:
    """
    Format a validation error for user input, asking for re-entry.

    Args:
        field_name: The field that failed validation
        issue: Description of the issue
        example: Optional example of valid input

    Returns:
        Plain text message
    """
    lines = [f"❌ Invalid {field_name}: {issue}"]

    if example:
        lines.append(f"Example: {example}")

    lines.append("Please try again:")
    return "\n".join(lines)


def _summarize_update(update: object) -> str:
    if not isinstance(update, Update):
        return ""
    if update.callback_query:
        data = update.callback_query.data[:50] if update.callback_query.data else "None"
        return f" | callback_data={data}"
    if update.message:
        # Message text may hold credentials, log its size only
        text = update.message.text or ""
        return f" | message_len={len(text)}"
    return ""


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log errors raised by handlers and tell the user once."""
    error = context.error
    error_type = type(error).__name__

    logger.error(f"Bot error: {error_type}: {error}{_summarize_update(update)}")
    tb_str = "".join(traceback.format_exception(type(error), error, error.__traceback__))[-500:]
    logger.error(f"Traceback: {tb_str}")

    if isinstance(error, RetryAfter):
        logger.warning(f"Rate limited for {error.retry_after}s - will retry")
        return

    if isinstance(error, (TimedOut, NetworkError)):
        logger.warning(f"Network issue: {error}")
        return

    if isinstance(update, Update) and update.effective_message:
        try:
            await update.effective_message.reply_text(format_error_message(error))
        except Exception as e:
            logger.error(f"Failed to send error message: {e}")


__all__ = [
    "ErrorCategory",
    "FriendlyError",
    "FlowError",
    "SessionExpiredError",
    "ERROR_TEMPLATES",
    "classify_error",
    "format_error_message",
    "format_backend_error",
    "format_session_expired",
    "format_simple_error",
    "format_validation_error",
    "error_handler",
]
