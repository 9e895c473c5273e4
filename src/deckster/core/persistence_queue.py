"""Outbound persistence requests for accepted transcript records."""

from __future__ import annotations

from threading import Lock, Timer
from typing import Any, Callable

from .logging_setup import get_logger

logger = get_logger(__name__)

MessageSaver = Callable[[str, list[dict[str, Any]]], dict[str, Any] | None]
ErrorCallback = Callable[[Exception], None]


class PersistenceQueue:
    """Id-keyed pending requests flushed to a saver.

    Requests carrying user text flush immediately; agent requests are debounced.
    The saver is expected to dedupe by id, so re-sending a batch after a failed
    flush is safe.
    """

    def __init__(
        self,
        *,
        session_id: str | None,
        saver: MessageSaver,
        debounce_ms: int = 3000,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._session_id = session_id
        self._saver = saver
        self._debounce_sec = max(0, int(debounce_ms)) / 1000.0
        self._on_error = on_error
        self._pending: dict[str, dict[str, Any]] = {}
        self._lock = Lock()
        self._saving = False
        self._timer: Timer | None = None
        self._flush_count = 0
        self._last_error: str | None = None

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def set_session_id(self, session_id: str | None) -> None:
        with self._lock:
            self._session_id = session_id

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def queue_message(self, message: dict[str, Any], user_text: str | None = None) -> dict[str, Any]:
        """Queue one wire-shaped event (`message_id`, `type`, `timestamp`, `payload`)."""
        message_id = message.get("message_id") or message.get("id")
        if not isinstance(message_id, str) or not message_id:
            return {"ok": False, "error": "message id is required."}
        with self._lock:
            if not self._session_id:
                logger.warning("Skipping persistence of %s: no session id", message_id)
                return {"ok": False, "error": "no_session"}
            self._pending[message_id] = {
                "id": message_id,
                "session_id": self._session_id,
                "timestamp": message.get("timestamp"),
                "type": message.get("type"),
                "payload": message.get("payload") or {},
                "user_text": user_text or None,
            }
            self._cancel_timer_locked()

        if user_text:
            return {"ok": True, "queued": True, "flush": self.flush()}

        with self._lock:
            if self._debounce_sec <= 0:
                immediate = True
            else:
                immediate = False
                self._timer = Timer(self._debounce_sec, self.flush)
                self._timer.daemon = True
                self._timer.start()
        if immediate:
            return {"ok": True, "queued": True, "flush": self.flush()}
        return {"ok": True, "queued": True, "scheduled_in_ms": int(self._debounce_sec * 1000)}

    def flush(self) -> dict[str, Any]:
        with self._lock:
            if not self._pending:
                return {"ok": True, "saved": 0, "skipped": "empty"}
            if self._saving:
                return {"ok": True, "saved": 0, "skipped": "in_progress"}
            if not self._session_id:
                return {"ok": False, "error": "no_session"}
            self._saving = True
            session_id = self._session_id
            batch = list(self._pending.values())

        try:
            result = self._saver(session_id, batch)
            if not isinstance(result, dict) or not result.get("ok"):
                error = result.get("error") if isinstance(result, dict) else None
                raise RuntimeError(f"Failed to save messages: {error or 'no result'}")
        except Exception as exc:
            with self._lock:
                self._last_error = str(exc)
            logger.error("Persistence flush for session %s failed: %s", session_id, exc)
            if self._on_error is not None:
                self._on_error(exc)
            return {"ok": False, "error": str(exc), "pending": self.pending_count}
        finally:
            with self._lock:
                self._saving = False

        with self._lock:
            for item in batch:
                if self._pending.get(item["id"]) is item:
                    self._pending.pop(item["id"], None)
            self._flush_count += 1
            self._last_error = None
        return {"ok": True, "saved": len(batch)}

    def _cancel_timer_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def close(self) -> dict[str, Any]:
        with self._lock:
            self._cancel_timer_locked()
        return self.flush()

    def stats(self) -> dict[str, Any]:
        with self._lock:
            return {
                "session_id": self._session_id,
                "pending": len(self._pending),
                "saving": self._saving,
                "flush_count": self._flush_count,
                "last_error": self._last_error,
            }
