from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from threading import Lock

logger = logging.getLogger("app.session.registry")


@dataclass
class SessionEntry:
    controller: object
    user_id: str
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    active: bool = True

    def idle_for(self, now_ts: float) -> float:
        return now_ts - self.updated_at


class SessionRegistry:
    """
    Live interview controllers by session id. Completed sessions stay
    registered until cleanup so their result can still be read.
    """

    def __init__(self):
        self._lock = Lock()
        self._entries: dict[str, SessionEntry] = {}

    def register(self, session_id: str, controller, user_id: str) -> None:
        with self._lock:
            self._entries[session_id] = SessionEntry(controller=controller, user_id=str(user_id))

    def _update(self, session_id: str, **changes) -> None:
        with self._lock:
            entry = self._entries.get(session_id)
            if entry is None:
                return
            for name, value in changes.items():
                setattr(entry, name, value)
            entry.updated_at = time.time()

    def touch(self, session_id: str) -> None:
        self._update(session_id)

    def mark_inactive(self, session_id: str) -> None:
        self._update(session_id, active=False)

    def get(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            entry = self._entries.get(session_id)
            return replace(entry) if entry else None

    def count_active(self) -> int:
        with self._lock:
            return len([entry for entry in self._entries.values() if entry.active])

    @staticmethod
    def _close(session_id: str, controller) -> None:
        try:
            controller.close()
        except Exception as exc:
            logger.warning("session close failed | session=%s err=%s", session_id, exc)

    def cleanup_inactive(self, ttl_sec: float) -> int:
        """Inactive sessions go after ``ttl_sec`` idle, abandoned active ones after twice that."""
        ttl = max(30.0, float(ttl_sec or 900.0))
        now_ts = time.time()
        with self._lock:
            expired = [
                (session_id, entry)
                for session_id, entry in self._entries.items()
                if entry.idle_for(now_ts) >= (ttl * 2 if entry.active else ttl)
            ]
            for session_id, _ in expired:
                del self._entries[session_id]
        for session_id, entry in expired:
            self._close(session_id, entry.controller)
        return len(expired)

    def close_all(self) -> int:
        with self._lock:
            entries, self._entries = self._entries, {}
        for session_id, entry in entries.items():
            self._close(session_id, entry.controller)
        return len(entries)


session_registry = SessionRegistry()
