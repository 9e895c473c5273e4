"""Session controller that feeds the transcript engine and its collaborators."""

from __future__ import annotations

from pathlib import Path
from threading import RLock
from time import time
from typing import Any, Callable
from uuid import uuid4

from .agent_types import AgentEvent, TranscriptItem, UserMessageRecord, normalize_content
from .config_loader import get_persistence_config, get_welcome_phrases
from .logging_setup import get_logger
from .message_store import MessageStore
from .persistence_queue import PersistenceQueue
from .reconciliation_context import ReconciliationContext
from .session_store import clear_session_cache, load_cached_user_messages, write_cached_user_messages
from .timestamps import normalize_timestamp
from .transcript import reconcile_transcript, transcript_to_dicts
from .transport import Transport

logger = get_logger(__name__)

TITLE_MAX_CHARS = 50


def generate_title(first_user_message: str | None = None, presentation_title: str | None = None) -> str | None:
    if presentation_title and presentation_title.strip():
        return presentation_title.strip()
    if first_user_message and first_user_message.strip():
        text = first_user_message.strip()
        return text if len(text) <= TITLE_MAX_CHARS else text[:TITLE_MAX_CHARS] + "..."
    return None


def _now_ms() -> int:
    return int(time() * 1000)


class BuilderSession:
    """One session view: user records, live events, restored history and their transcript.

    Every trigger (send, inbound event, restore) recomputes the transcript under
    one lock, so passes never overlap. Sends are additionally guarded by the
    single-flight state on the reconciliation context.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        store: MessageStore | None = None,
        cache_root: Path | None = None,
        cache_base_dir: str | None = None,
        debounce_ms: int | None = None,
        welcome_phrases: tuple[str, ...] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._lock = RLock()
        self._transport = transport
        self._store = store
        self._cache_root = cache_root
        self._cache_base_dir = cache_base_dir
        self._welcome_phrases = welcome_phrases or get_welcome_phrases()
        self._clock = clock or _now_ms
        self.context = ReconciliationContext.create(None)
        self._user_messages: list[UserMessageRecord] = []
        self._agent_events: list[AgentEvent] = []
        self._event_ids: set[str] = set()
        self._transcript: list[TranscriptItem] = []
        self._is_unsaved = True
        self._has_title = False
        self._persistence: PersistenceQueue | None = None
        if store is not None:
            self._persistence = PersistenceQueue(
                session_id=None,
                saver=store.save_messages,
                debounce_ms=debounce_ms if debounce_ms is not None else get_persistence_config()["debounce_ms"],
            )

    @property
    def session_id(self) -> str | None:
        return self.context.session_id

    @property
    def user_messages(self) -> list[UserMessageRecord]:
        with self._lock:
            return list(self._user_messages)

    @property
    def agent_events(self) -> list[AgentEvent]:
        with self._lock:
            return list(self._agent_events)

    @property
    def persistence(self) -> PersistenceQueue | None:
        return self._persistence

    def _switch_to(self, session_id: str | None) -> None:
        previous = self.context.session_id
        flushed = True
        if self._persistence is not None:
            flushed = bool(self._persistence.close().get("ok"))
            self._persistence.set_session_id(session_id)
        if previous is not None and previous != session_id:
            if flushed:
                clear_session_cache(previous, base_dir=self._cache_base_dir, root=self._cache_root)
                logger.info("Switching session %s -> %s; cleared its cache", previous, session_id)
            else:
                # Unsaved sends for the previous session only survive in its cache.
                logger.warning("Switching session %s -> %s with unsaved messages; keeping its cache", previous, session_id)
        self.context.reset(session_id)
        self._user_messages = []
        self._agent_events = []
        self._event_ids = set()
        self._transcript = []
        self._has_title = False

    def open_session(self, session_id: str) -> dict[str, Any]:
        """Mount a session: read the local cache, then restore persisted history once."""
        if not isinstance(session_id, str) or not session_id.strip():
            return {"ok": False, "error": "session_id is required."}
        with self._lock:
            if session_id == self.context.session_id:
                return {"ok": True, "session_id": session_id, "already_loaded": True}

            self._switch_to(session_id)
            cached = load_cached_user_messages(session_id, base_dir=self._cache_base_dir, root=self._cache_root)
            self._user_messages = sorted(cached, key=lambda record: record.timestamp_ms)
            self.context.register_user_messages(self._user_messages)

            restored = {"user_messages": [], "agent_events": []}
            self._is_unsaved = self._store is None
            if self._store is not None:
                session = self._store.get_session(session_id)
                if session is None:
                    self._store.create_session(session_id)
                elif session.get("status") == "deleted":
                    self._switch_to(None)
                    return {"ok": False, "error": "session_deleted", "session_id": session_id}
                else:
                    self._has_title = bool(session.get("title"))
                    history = self._store.load_session_history(session_id)
                    if history.get("ok"):
                        restored = history
                        self._restore_history(history["user_messages"], history["agent_events"])

            self._recompute_locked()
            return {
                "ok": True,
                "session_id": session_id,
                "cached_user_messages": len(cached),
                "restored_user_messages": len(restored["user_messages"]),
                "restored_agent_events": len(restored["agent_events"]),
            }

    def _restore_history(self, user_messages: list[UserMessageRecord], agent_events: list[AgentEvent]) -> None:
        # Restored action prompts stay interactive: answered ids are never seeded here.
        restored_ids = {record.id for record in user_messages}
        merged = list(user_messages) + [record for record in self._user_messages if record.id not in restored_ids]
        self._user_messages = sorted(merged, key=lambda record: record.timestamp_ms)
        self.context.register_user_messages(self._user_messages)
        self.context.rebuild_content_index(self._user_messages)
        for event in agent_events:
            if event.message_id in self._event_ids:
                continue
            self._event_ids.add(event.message_id)
            self._agent_events.append(event)

    def new_session(self) -> dict[str, Any]:
        """Start an unsaved session; its row is created on the first user message."""
        with self._lock:
            session_id = str(uuid4())
            self._switch_to(session_id)
            self._is_unsaved = True
            self._recompute_locked()
            return {"ok": True, "session_id": session_id, "unsaved": True}

    def receive_event(self, raw: dict[str, Any]) -> dict[str, Any]:
        """Ingest one Director event from the live stream."""
        try:
            event = AgentEvent.from_dict(raw, session_id=self.context.session_id)
        except ValueError as exc:
            logger.warning("Rejected malformed Director event: %s", exc)
            return {"ok": False, "error": str(exc)}

        with self._lock:
            if event.message_id in self._event_ids:
                return {"ok": True, "message_id": event.message_id, "duplicate": True}
            self._event_ids.add(event.message_id)
            self._agent_events.append(event)
            self._persist_live_event(event)
            recovered = self._recover_user_message(event)
            self._maybe_update_title(event)
            self._recompute_locked()
            return {
                "ok": True,
                "message_id": event.message_id,
                "type": event.type,
                "duplicate": False,
                "recovered_user_message": recovered,
            }

    def _persist_live_event(self, event: AgentEvent) -> None:
        if self._persistence is None or self._is_unsaved:
            return
        if event.author_hint == "user":
            self.context.register_user_id(event.message_id)
            self._persistence.queue_message(event.to_dict(), user_text=event.text or "")
            return
        if event.type != "chat_message" or event.message_id not in self.context.known_user_ids:
            self._persistence.queue_message(event.to_dict())

    def _recover_user_message(self, event: AgentEvent) -> bool:
        """Adopt author-hinted user turns the local cache never saw (e.g. sent from another tab)."""
        if event.author_hint != "user":
            return False
        text = event.text or ""
        known_ids = {record.id for record in self._user_messages}
        known_texts = {normalize_content(record.text) for record in self._user_messages}
        if event.message_id in known_ids or normalize_content(text) in known_texts:
            return False

        record = UserMessageRecord(
            id=event.message_id,
            text=text,
            timestamp_ms=normalize_timestamp(event.raw_timestamp),
        )
        self._user_messages = sorted([*self._user_messages, record], key=lambda item: item.timestamp_ms)
        self.context.register_user_message(record)
        self._write_cache()
        logger.info("Recovered user message %s from Director history", record.id)
        return True

    def _maybe_update_title(self, event: AgentEvent) -> None:
        if self._store is None or self._is_unsaved or self._has_title or event.type != "slide_update":
            return
        title = generate_title(presentation_title=event.payload.main_title)  # type: ignore[union-attr]
        if title is None:
            return
        out = self._store.update_session_metadata(self.context.session_id, title=title)
        self._has_title = bool(out.get("ok"))

    def send_message(self, text: str) -> dict[str, Any]:
        """Record a user turn locally, then forward it to the Director."""
        clean = (text or "").strip()
        if not clean:
            return {"ok": False, "error": "empty_message"}
        if self.context.session_id is None:
            return {"ok": False, "error": "no_session"}
        if not self._transport.is_ready():
            return {"ok": False, "error": "transport_not_ready"}
        if not self.context.begin_send():
            logger.warning("Rejected send for session %s: another send is in flight", self.context.session_id)
            return {"ok": False, "error": "send_in_flight"}

        try:
            with self._lock:
                record = self._append_user_message(clean)
                self._ensure_saved_session(clean)
                if self._persistence is not None and not self._is_unsaved:
                    self._persistence.queue_message(
                        {
                            "message_id": record.id,
                            "timestamp": record.timestamp_ms,
                            "type": "chat_message",
                            "payload": {"text": record.text},
                        },
                        user_text=record.text,
                    )
                self._recompute_locked()
        finally:
            self.context.complete_send()

        sent = self._transport.send(clean)
        if not sent:
            logger.warning("Transport did not accept message %s", record.id)
        return {"ok": True, "message_id": record.id, "sent": sent}

    def _append_user_message(self, text: str) -> UserMessageRecord:
        now_ms = self._clock()
        record = UserMessageRecord(id=f"user_{now_ms}_{uuid4().hex[:8]}", text=text, timestamp_ms=now_ms)
        self._user_messages.append(record)
        self.context.register_user_message(record)
        self._write_cache()
        return record

    def _ensure_saved_session(self, first_text: str) -> None:
        if self._store is None or not self._is_unsaved:
            return
        out = self._store.create_session(self.context.session_id, title=generate_title(first_text))
        if out.get("ok"):
            self._is_unsaved = False
            self._has_title = True

    def _write_cache(self) -> None:
        write_cached_user_messages(
            self.context.session_id,
            self._user_messages,
            base_dir=self._cache_base_dir,
            root=self._cache_root,
        )

    def answer_action(self, action_request_id: str, label: str) -> dict[str, Any]:
        """Mark the prompt answered synchronously, then send the chosen label."""
        if not isinstance(action_request_id, str) or not action_request_id.strip():
            return {"ok": False, "error": "action_request_id is required."}
        with self._lock:
            self.context.answered_actions.mark_answered(action_request_id)
        result = self.send_message(label)
        return {**result, "action_request_id": action_request_id, "answered": True}

    def _recompute_locked(self) -> None:
        self._transcript = reconcile_transcript(
            self._user_messages,
            self._agent_events,
            self.context,
            welcome_phrases=self._welcome_phrases,
        )

    def transcript(self) -> list[TranscriptItem]:
        with self._lock:
            return list(self._transcript)

    def transcript_dicts(self) -> list[dict[str, Any]]:
        with self._lock:
            return transcript_to_dicts(self._transcript, self.context.answered_actions)

    def is_answered(self, action_request_id: str) -> bool:
        return self.context.answered_actions.is_answered(action_request_id)

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "ok": True,
                "session_id": self.context.session_id,
                "unsaved": self._is_unsaved,
                "user_messages": len(self._user_messages),
                "agent_events": len(self._agent_events),
                "transcript_items": len(self._transcript),
                "context": self.context.snapshot(),
                "persistence": self._persistence.stats() if self._persistence is not None else None,
            }

    def close(self) -> dict[str, Any]:
        if self._persistence is not None:
            return self._persistence.close()
        return {"ok": True, "saved": 0}
