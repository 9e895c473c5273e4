"""Shared runtime ownership facade for the app entrypoint."""

from __future__ import annotations

from pathlib import Path
from threading import RLock
from typing import Any

from src.deckster.core.builder_session import BuilderSession
from src.deckster.core.config_loader import get_logging_level
from src.deckster.core.logging_setup import get_logger, setup_logging
from src.deckster.core.message_store import MessageStore
from src.deckster.core.transport import OutboxTransport

logger = get_logger(__name__)


class RuntimeService:
    """Single authority for the builder session lifecycle + app-facing operations."""

    def __init__(
        self,
        *,
        store: MessageStore | None = None,
        transport: OutboxTransport | None = None,
        cache_root: Path | None = None,
        debounce_ms: int | None = None,
    ) -> None:
        self._lock = RLock()
        self._started = False
        self._store = store
        self._transport = transport
        self._cache_root = cache_root
        self._debounce_ms = debounce_ms
        self._session: BuilderSession | None = None
        self._last_start_source: str | None = None
        self._last_stop_source: str | None = None

    def start(self, *, source: str = "runtime") -> dict[str, Any]:
        with self._lock:
            already_started = self._started
            if not already_started:
                setup_logging(get_logging_level())
                if self._store is None:
                    self._store = MessageStore.from_config(root=self._cache_root)
                if self._transport is None:
                    self._transport = OutboxTransport()
                self._session = BuilderSession(
                    transport=self._transport,
                    store=self._store,
                    cache_root=self._cache_root,
                    debounce_ms=self._debounce_ms,
                )
                logger.info("Runtime started (source=%s)", source)
            self._started = True
            self._last_start_source = source
        return {"ok": True, "source": "runtime_service", "already_started": already_started, "started": True}

    def stop(self, *, source: str = "runtime") -> dict[str, Any]:
        with self._lock:
            flushed = self._session.close() if self._session is not None else {"ok": True, "saved": 0}
            if self._store is not None:
                self._store.close()
            self._session = None
            self._started = False
            self._last_stop_source = source
        return {"ok": True, "source": "runtime_service", "stopped": True, "flush": flushed}

    def _builder(self) -> BuilderSession:
        with self._lock:
            if self._session is None:
                self.start(source="lazy")
            session = self._session
        if session is None:
            raise RuntimeError("Builder session failed to start.")
        return session

    def health(self) -> dict[str, Any]:
        with self._lock:
            started = self._started
            session = self._session.status() if self._session is not None else None
            store = self._store.health() if self._store is not None else None
            connected = self._transport.is_ready() if self._transport is not None else False
        return {
            "ok": True,
            "source": "runtime_service",
            "runtime": {
                "started": started,
                "last_start_source": self._last_start_source,
                "last_stop_source": self._last_stop_source,
            },
            "transport": {"connected": connected},
            "session": session,
            "store": store,
        }

    def open_session(self, *, session_id: str) -> dict[str, Any]:
        return self._builder().open_session(session_id)

    def new_session(self) -> dict[str, Any]:
        return self._builder().new_session()

    def receive_event(self, *, event: dict[str, Any]) -> dict[str, Any]:
        return self._builder().receive_event(event)

    def send_message(self, *, text: str) -> dict[str, Any]:
        return self._builder().send_message(text)

    def answer_action(self, *, action_request_id: str, label: str) -> dict[str, Any]:
        return self._builder().answer_action(action_request_id, label)

    def transcript(self) -> dict[str, Any]:
        builder = self._builder()
        return {"ok": True, "session_id": builder.session_id, "items": builder.transcript_dicts()}

    def drain_outbox(self) -> dict[str, Any]:
        self._builder()
        frames = self._transport.drain() if self._transport is not None else []
        return {"ok": True, "frames": frames, "count": len(frames)}

    def set_transport_connected(self, *, connected: bool) -> dict[str, Any]:
        self._builder()
        if self._transport is not None:
            self._transport.set_connected(connected)
        return {"ok": True, "connected": bool(connected)}


_RUNTIME_SERVICE: RuntimeService | None = None


def get_runtime_service() -> RuntimeService:
    global _RUNTIME_SERVICE
    if _RUNTIME_SERVICE is None:
        _RUNTIME_SERVICE = RuntimeService()
    return _RUNTIME_SERVICE
