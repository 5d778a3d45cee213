"""
Per-user conversation session store.

Holds at most one in-progress flow per Telegram user, keyed by user id.
Sessions expire a fixed window after they were last *set*; ``update`` merges
fields without moving that anchor, so a slow user can time out mid-flow.
Expiry is checked lazily on read, ``sweep_expired`` exists for housekeeping.

Usage:
    from tg_bot.session_store import SessionStore
    from tg_bot.drafts import FlowStep, TraderDraft

    store = SessionStore(timeout_seconds=1800)
    store.set(user_id, FlowStep.ENTER_TRADER_NAME, TraderDraft())
    store.advance(user_id, FlowStep.SELECT_AI_MODEL, name="BTC Bot")
"""

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from tg_bot.drafts import DemoTrader, Draft, FlowStep

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30 * 60


@dataclass
class Session:
    """A user's in-progress flow."""

    user_id: int
    step: FlowStep
    data: Draft
    created_at: float


@dataclass
class UserScratch:
    """Per-user space that outlives individual sessions."""

    user_id: int
    demo_traders: List[DemoTrader] = field(default_factory=list)


class SessionStore:
    """
    Process-local session map with creation-anchored expiry.

    Owned by the bot instance and passed to the dispatcher and flows.
    Only the task handling a user's update touches that user's key, so no
    locking is needed.
    """

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._sessions: Dict[int, Session] = {}
        self._scratch: Dict[int, UserScratch] = {}

    def _is_expired(self, session: Session, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        return now - session.created_at > self.timeout_seconds

    def get(self, user_id: int) -> Optional[Session]:
        """Return the live session for a user, dropping it if expired."""
        session = self._sessions.get(user_id)
        if session is None:
            return None

        if self._is_expired(session):
            logger.debug(f"User {user_id}: session expired at step {session.step.value}")
            self.clear(user_id)
            return None

        return session

    def set(self, user_id: int, step: FlowStep, data: Draft) -> Session:
        """Replace any existing session with a freshly stamped one."""
        session = Session(
            user_id=user_id,
            step=step,
            data=data,
            created_at=self._clock(),
        )
        self._sessions[user_id] = session
        return session

    def update(self, user_id: int, **fields: Any) -> Optional[Session]:
        """
        Shallow-merge fields into a live session's draft.

        Keeps ``created_at``. Does nothing if there is no live session.

        Raises:
            TypeError: If a field is not part of the session's draft type
        """
        session = self.get(user_id)
        if session is None:
            return None

        session.data = dataclasses.replace(session.data, **fields)
        return session

    def advance(self, user_id: int, step: FlowStep, **fields: Any) -> Optional[Session]:
        """Merge fields and move a live session to ``step`` (re-stamps the session)."""
        session = self.get(user_id)
        if session is None:
            return None

        data = dataclasses.replace(session.data, **fields)
        logger.debug(f"User {user_id}: {session.step.value} -> {step.value}")
        return self.set(user_id, step, data)

    def clear(self, user_id: int) -> None:
        """Remove a user's session. Safe to call when there is none."""
        self._sessions.pop(user_id, None)

    def is_in_flow(self, user_id: int, step: FlowStep) -> bool:
        """True iff the user has a live session pending ``step``."""
        session = self.get(user_id)
        return session is not None and session.step == step

    def is_in_any(self, user_id: int, steps: Iterable[FlowStep]) -> bool:
        """True iff the user has a live session pending any of ``steps``."""
        session = self.get(user_id)
        return session is not None and session.step in set(steps)

    def sweep_expired(self) -> int:
        """
        Drop every expired session.

        Returns:
            Number of sessions removed
        """
        now = self._clock()
        expired = [
            uid for uid, session in self._sessions.items()
            if self._is_expired(session, now)
        ]
        for uid in expired:
            del self._sessions[uid]

        if expired:
            logger.info(f"Swept {len(expired)} expired sessions")
        return len(expired)

    def scratch(self, user_id: int) -> UserScratch:
        """Get or create the long-lived scratch space for a user."""
        if user_id not in self._scratch:
            self._scratch[user_id] = UserScratch(user_id=user_id)
        return self._scratch[user_id]

    def find_scratch(self, user_id: int) -> Optional[UserScratch]:
        """Scratch space for a user, without creating one."""
        return self._scratch.get(user_id)

    # =========================================================================
    # Diagnostics
    # =========================================================================

    def active_count(self) -> int:
        """Number of live sessions (sweeps first)."""
        self.sweep_expired()
        return len(self._sessions)

    def get_statistics(self) -> Dict[str, Any]:
        """Session counts per pending step."""
        self.sweep_expired()
        step_counts: Dict[str, int] = {}
        for session in self._sessions.values():
            step_counts[session.step.value] = step_counts.get(session.step.value, 0) + 1

        return {
            "active_sessions": len(self._sessions),
            "users_with_scratch": len(self._scratch),
            "step_distribution": step_counts,
        }


__all__ = [
    "Session",
    "UserScratch",
    "SessionStore",
    "DEFAULT_TIMEOUT_SECONDS",
]
