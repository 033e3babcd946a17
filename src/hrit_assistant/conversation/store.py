"""Per-user conversation state: history, context and pending confirmations."""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from hrit_assistant.config import ConversationConfig
from hrit_assistant.conversation.confirmation import detect_confirmation
from hrit_assistant.conversation.persistence import SessionPersistence
from hrit_assistant.types import ConfirmationResult, Exchange, PendingAction, Session, utc_now

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 150


@dataclass(slots=True)
class _UserLock:
    lock: threading.RLock = field(default_factory=threading.RLock)
    holders: int = 0


class ConversationStateStore:
    """In-memory session store with optional persistence.

    Every operation on a user's session runs under that user's lock, so
    concurrent requests from one user cannot interleave a set and a clear of
    the same pending action. Different users never contend.

    Pending actions follow a small state machine per `(user_id, type)`:
    NONE -> PENDING on `set_pending_action` (replacing any action of the same
    type) and back to NONE on `clear_pending_action`.
    """

    def __init__(
        self,
        config: ConversationConfig | None = None,
        *,
        persistence: SessionPersistence | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.config = config or ConversationConfig()
        self._persistence = persistence
        self._clock = clock
        self._timeout = timedelta(seconds=self.config.session_timeout_seconds)
        self._sessions: dict[str, Session] = {}
        self._user_locks: dict[str, _UserLock] = {}
        self._guard = threading.Lock()
        self._stop_sweeper = threading.Event()
        self._sweeper: threading.Thread | None = None
        if persistence is not None:
            self._restore()

    # -- sessions -----------------------------------------------------------

    def get_or_create_session(self, user_id: str) -> Session:
        """Return a live session, creating one if absent or expired."""
        with self._locked(user_id):
            return self._touch(user_id)

    def clear_session(self, user_id: str) -> None:
        with self._locked(user_id):
            self._forget(user_id)
        logger.info("Cleared session for user %s", user_id)

    def purge_expired(self) -> int:
        """Drop sessions idle longer than the timeout; returns how many."""
        with self._guard:
            candidates = list(self._sessions)
        removed = 0
        for user_id in candidates:
            with self._locked(user_id):
                session = self._sessions.get(user_id)
                if session is None or not self._is_expired(session):
                    continue
                self._forget(user_id)
                removed += 1
        if removed:
            logger.info("Purged %d expired sessions", removed)
        return removed

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop_sweeper.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="hrit-session-sweeper", daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self, timeout: float | None = 5.0) -> None:
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=timeout)
            self._sweeper = None

    def stats(self) -> dict[str, Any]:
        with self._guard:
            sessions = list(self._sessions.values())
        active = len(sessions)
        total = sum(len(session.history) for session in sessions)
        return {
            "active_sessions": active,
            "total_exchanges": total,
            "avg_exchanges_per_session": round(total / active, 2) if active else 0.0,
        }

    # -- history ------------------------------------------------------------

    def add_exchange(
        self,
        user_id: str,
        user_message: str,
        bot_response: str,
        metadata: dict[str, Any] | None = None,
    ) -> Exchange:
        with self._locked(user_id):
            session = self._touch(user_id)
            exchange = Exchange(
                timestamp=self._clock(),
                user_message=user_message,
                bot_response=bot_response,
                metadata=dict(metadata or {}),
            )
            session.history.append(exchange)
            self._persist(session)
        return exchange

    def get_history(self, user_id: str, limit: int = 5) -> list[Exchange]:
        if limit <= 0:
            return []
        with self._locked(user_id):
            return list(self._touch(user_id).history)[-limit:]

    def format_history(self, user_id: str, limit: int = 3) -> str:
        """Render recent exchanges as a prompt-ready text block."""
        history = self.get_history(user_id, limit)
        if not history:
            return ""

        lines = ["Previous conversation context:"]
        for index, exchange in enumerate(history, start=1):
            reply = exchange.bot_response
            if len(reply) > _PREVIEW_CHARS:
                reply = reply[:_PREVIEW_CHARS] + "..."
            lines.append(f"{index}. User: {exchange.user_message}")
            lines.append(f"   Bot: {reply}")
            intent = exchange.metadata.get("intent")
            if intent:
                lines.append(f"   (Intent: {intent})")
        lines.append("---")
        return "\n".join(lines)

    # -- pending actions ----------------------------------------------------

    def set_pending_action(self, user_id: str, action_type: str, data: dict[str, Any]) -> None:
        with self._locked(user_id):
            session = self._touch(user_id)
            session.pending_actions = [
                action for action in session.pending_actions if action.type != action_type
            ]
            session.pending_actions.append(
                PendingAction(type=action_type, data=dict(data), timestamp=self._clock())
            )
            self._persist(session)
        logger.info("Pending action set for user %s: %s", user_id, action_type)

    def get_pending_action(self, user_id: str, action_type: str) -> dict[str, Any] | None:
        with self._locked(user_id):
            for action in self._touch(user_id).pending_actions:
                if action.type == action_type:
                    return dict(action.data)
        return None

    def clear_pending_action(self, user_id: str, action_type: str) -> bool:
        with self._locked(user_id):
            session = self._touch(user_id)
            remaining = [action for action in session.pending_actions if action.type != action_type]
            cleared = len(remaining) != len(session.pending_actions)
            session.pending_actions = remaining
            if cleared:
                self._persist(session)
        if cleared:
            logger.info("Cleared pending action for user %s: %s", user_id, action_type)
        return cleared

    def pending_actions(self, user_id: str) -> list[PendingAction]:
        with self._locked(user_id):
            return list(self._touch(user_id).pending_actions)

    def get_pending_action_types(self, user_id: str) -> list[str]:
        return [action.type for action in self.pending_actions(user_id)]

    def take_first_pending_action(self, user_id: str) -> PendingAction | None:
        """Remove and return the oldest pending action in one locked step."""
        with self._locked(user_id):
            session = self._touch(user_id)
            if not session.pending_actions:
                return None
            action = session.pending_actions.pop(0)
            self._persist(session)
        logger.info("Resolved pending action for user %s: %s", user_id, action.type)
        return action

    @staticmethod
    def detect_confirmation(text: str) -> ConfirmationResult:
        return detect_confirmation(text)

    # -- key/value context --------------------------------------------------

    def set_context(self, user_id: str, key: str, value: Any) -> None:
        with self._locked(user_id):
            session = self._touch(user_id)
            session.context[key] = value
            self._persist(session)

    def get_context(self, user_id: str, key: str, default: Any = None) -> Any:
        with self._locked(user_id):
            return self._touch(user_id).context.get(key, default)

    def clear_context(self, user_id: str, key: str | None = None) -> None:
        with self._locked(user_id):
            session = self._touch(user_id)
            if key is None:
                session.context = {}
            else:
                session.context.pop(key, None)
            self._persist(session)

    # -- internals ----------------------------------------------------------

    @contextmanager
    def _locked(self, user_id: str) -> Iterator[None]:
        # Entries live only while some caller holds or waits on them.
        with self._guard:
            entry = self._user_locks.get(user_id)
            if entry is None:
                entry = self._user_locks[user_id] = _UserLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._user_locks[user_id]

    def _touch(self, user_id: str) -> Session:
        # Caller holds the user's lock.
        now = self._clock()
        session = self._sessions.get(user_id)
        if session is None or self._is_expired(session, now):
            session = Session(
                user_id=user_id,
                history=deque(maxlen=self.config.max_history),
                last_activity=now,
                created=now,
            )
            with self._guard:
                self._sessions[user_id] = session
        session.last_activity = now
        return session

    def _forget(self, user_id: str) -> None:
        # Caller holds the user's lock.
        with self._guard:
            self._sessions.pop(user_id, None)
        if self._persistence is None:
            return
        try:
            self._persistence.delete(user_id)
        except Exception:
            logger.warning("Failed to delete persisted session for %s", user_id, exc_info=True)

    def _is_expired(self, session: Session, now: datetime | None = None) -> bool:
        return (now or self._clock()) - session.last_activity > self._timeout

    def _persist(self, session: Session) -> None:
        if self._persistence is None:
            return
        try:
            self._persistence.save(session)
        except Exception:
            logger.warning("Failed to persist session for %s", session.user_id, exc_info=True)

    def _restore(self) -> None:
        assert self._persistence is not None
        try:
            sessions = self._persistence.load_all()
        except Exception:
            logger.warning("Failed to load persisted sessions; starting empty", exc_info=True)
            return
        for session in sessions:
            if self._is_expired(session):
                self._forget(session.user_id)
                continue
            if session.history.maxlen != self.config.max_history:
                session.history = deque(session.history, maxlen=self.config.max_history)
            self._sessions[session.user_id] = session
        logger.info("Loaded %d active conversation sessions", len(self._sessions))

    def _sweep_loop(self) -> None:
        while not self._stop_sweeper.wait(self.config.sweep_interval_seconds):
            try:
                self.purge_expired()
            except Exception:
                logger.exception("Session sweep failed")
