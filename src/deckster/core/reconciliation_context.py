"""Session-scoped identity indexes and flags for transcript reconciliation."""

from __future__ import annotations

from threading import Lock
from typing import Any, Iterable, Literal

from .agent_types import UserMessageRecord, normalize_content
from .answered_actions import AnsweredActionTracker

SendState = Literal["idle", "sending"]


class ReconciliationContext:
    """State that survives reconnects within one session view.

    Created per session with `create()` and cleared with `reset()` when the
    user switches to another session or starts a new one.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id
        self.known_user_ids: set[str] = set()
        self.content_index: dict[str, str] = {}
        self.answered_actions = AnsweredActionTracker()
        self.welcome_seen = False
        self.welcome_message_id: str | None = None
        self.send_state: SendState = "idle"
        self._send_lock = Lock()

    @classmethod
    def create(cls, session_id: str | None) -> "ReconciliationContext":
        return cls(session_id)

    def reset(self, session_id: str | None = None) -> None:
        self.session_id = session_id
        self.known_user_ids.clear()
        self.content_index.clear()
        self.answered_actions.clear()
        self.welcome_seen = False
        self.welcome_message_id = None
        with self._send_lock:
            self.send_state = "idle"

    def register_user_id(self, message_id: str) -> None:
        if message_id:
            self.known_user_ids.add(message_id)

    def register_user_message(self, record: UserMessageRecord) -> None:
        self.known_user_ids.add(record.id)
        key = normalize_content(record.text)
        if key:
            self.content_index[key] = record.id

    def register_user_messages(self, records: Iterable[UserMessageRecord]) -> None:
        for record in records:
            self.register_user_message(record)

    def rebuild_content_index(self, records: Iterable[UserMessageRecord]) -> None:
        self.content_index.clear()
        for record in records:
            key = normalize_content(record.text)
            if key:
                self.content_index[key] = record.id

    def lookup_user_content(self, text: str | None) -> str | None:
        if not text:
            return None
        key = normalize_content(text)
        return self.content_index.get(key) if key else None

    def begin_send(self) -> bool:
        """Enter the single-flight send window; False when a send is already in flight."""
        with self._send_lock:
            if self.send_state == "sending":
                return False
            self.send_state = "sending"
            return True

    def complete_send(self) -> None:
        with self._send_lock:
            self.send_state = "idle"

    def snapshot(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "known_user_ids": sorted(self.known_user_ids),
            "content_index_size": len(self.content_index),
            "answered_action_ids": sorted(self.answered_actions.answered_ids()),
            "welcome_seen": self.welcome_seen,
            "welcome_message_id": self.welcome_message_id,
            "send_state": self.send_state,
        }
