"""
Shared plumbing for the creation flows.
"""

import functools
import logging
from typing import Optional, Tuple, Type

from telegram import InlineKeyboardMarkup, Update

from tg_bot.api_client import BackendClient
from tg_bot.drafts import Draft, FlowStep
from tg_bot.error_handler import FlowError, SessionExpiredError, format_session_expired
from tg_bot.logging_utils import log_flow_event
from tg_bot.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


class StaleActionError(FlowError):
    """Input or button belongs to a step that is not the pending one."""


def flow_step(func):
    """
    Wrap a flow step handler.

    A missing or corrupted session clears the user's state and asks them to
    restart. A stale button press is answered without touching the session.
    """
    @functools.wraps(func)
    async def wrapper(self: "BaseFlow", update: Update, *args, **kwargs):
        user_id = self.user_id(update)
        try:
            return await func(self, update, *args, **kwargs)
        except SessionExpiredError as e:
            self.store.clear(user_id)
            log_flow_event(logger, user_id, self.flow_name, str(e) or func.__name__, "expired")
            await self.reply(update, format_session_expired())
        except StaleActionError:
            logger.info(f"User {user_id}: stale {self.flow_name} action in {func.__name__}")
            await self.reply(
                update,
                "💡 That option is no longer active. Continue with the current step, "
                "or use /cancel to stop.",
            )
    return wrapper


class BaseFlow:
    """Common state access and reply helpers for a creation wizard."""

    flow_name = ""
    draft_type: Type[Draft]

    def __init__(self, store: SessionStore, client: BackendClient):
        self.store = store
        self.client = client

    @staticmethod
    def user_id(update: Update) -> int:
        return update.effective_user.id if update.effective_user else 0

    @staticmethod
    async def reply(
        update: Update,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> None:
        await update.effective_message.reply_text(text, reply_markup=reply_markup)

    def require(self, user_id: int, step: FlowStep, *fields: str) -> Tuple[Session, Draft]:
        """
        Load the session for a step handler.

        Raises:
            SessionExpiredError: No live session, or a required field is missing
            StaleActionError: The session is pending some other step
        """
        session = self.store.get(user_id)
        if session is None:
            raise SessionExpiredError(step.value)

        if session.step != step or not isinstance(session.data, self.draft_type):
            raise StaleActionError(step.value)

        for name in fields:
            if getattr(session.data, name, None) in (None, ""):
                raise SessionExpiredError(step.value)

        return session, session.data

    def log_event(self, user_id: int, step: FlowStep, outcome: str) -> None:
        log_flow_event(logger, user_id, self.flow_name, step.value, outcome)

    async def discard(self, update: Update, text: str) -> None:
        """Drop the user's session (if any) and confirm with ``text``."""
        user_id = self.user_id(update)
        session = self.store.get(user_id)
        self.store.clear(user_id)
        if session is not None:
            self.log_event(user_id, session.step, "cancelled")
        await self.reply(update, text)


__all__ = ["BaseFlow", "StaleActionError", "flow_step"]
