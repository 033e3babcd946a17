"""Optional durability layer for conversation sessions."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from hrit_assistant.types import Exchange, PendingAction, Session

logger = logging.getLogger(__name__)


class SessionPersistence(Protocol):
    """Load/save of session snapshots keyed by user id."""

    def load_all(self) -> list[Session]:
        """Return every stored session (expiry is the store's concern)."""

    def save(self, session: Session) -> None:
        """Write one session snapshot."""

    def delete(self, user_id: str) -> None:
        """Remove one session snapshot if present."""


def session_to_dict(session: Session) -> dict[str, Any]:
    return {
        "user_id": session.user_id,
        "history": [
            {
                "timestamp": exchange.timestamp.isoformat(),
                "user_message": exchange.user_message,
                "bot_response": exchange.bot_response,
                "metadata": exchange.metadata,
            }
            for exchange in session.history
        ],
        "context": session.context,
        "pending_actions": [
            {"type": action.type, "data": action.data, "timestamp": action.timestamp.isoformat()}
            for action in session.pending_actions
        ],
        "last_activity": session.last_activity.isoformat(),
        "created": session.created.isoformat(),
    }


def session_from_dict(payload: dict[str, Any], *, max_history: int) -> Session:
    history = deque(
        (
            Exchange(
                timestamp=datetime.fromisoformat(item["timestamp"]),
                user_message=item["user_message"],
                bot_response=item["bot_response"],
                metadata=dict(item.get("metadata") or {}),
            )
            for item in payload.get("history", [])
        ),
        maxlen=max_history,
    )
    pending = [
        PendingAction(
            type=item["type"],
            data=dict(item.get("data") or {}),
            timestamp=datetime.fromisoformat(item["timestamp"]),
        )
        for item in payload.get("pending_actions", [])
    ]
    return Session(
        user_id=payload["user_id"],
        history=history,
        context=dict(payload.get("context") or {}),
        pending_actions=pending,
        last_activity=datetime.fromisoformat(payload["last_activity"]),
        created=datetime.fromisoformat(payload.get("created", payload["last_activity"])),
    )


class JsonFileSessionPersistence:
    """All sessions in one JSON object keyed by user id.

    Writes go to a temporary sibling file that then replaces the original,
    so a crash never leaves a half-written history file behind.
    """

    def __init__(self, path: str | Path, *, max_history: int = 10) -> None:
        self.path = Path(path)
        self.max_history = max_history
        self._lock = threading.Lock()

    def load_all(self) -> list[Session]:
        with self._lock:
            raw = self._read()
        return [session_from_dict(item, max_history=self.max_history) for item in raw.values()]

    def save(self, session: Session) -> None:
        with self._lock:
            raw = self._read()
            raw[session.user_id] = session_to_dict(session)
            self._write(raw)

    def delete(self, user_id: str) -> None:
        with self._lock:
            raw = self._read()
            if raw.pop(user_id, None) is not None:
                self._write(raw)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            # The next write replaces the unreadable file.
            logger.warning("History file %s is not valid JSON; treating it as empty", self.path)
            return {}
        return payload if isinstance(payload, dict) else {}

    def _write(self, raw: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(
            json.dumps(raw, ensure_ascii=False, indent=2, default=str), encoding="utf-8"
        )
        tmp.replace(self.path)
