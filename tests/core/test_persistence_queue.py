from __future__ import annotations

from typing import Any

from src.deckster.core.persistence_queue import PersistenceQueue


class _RecordingSaver:
    def __init__(self, results: list[dict[str, Any]] | None = None) -> None:
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []
        self._results = list(results or [])

    def __call__(self, session_id: str, batch: list[dict[str, Any]]) -> dict[str, Any]:
        self.calls.append((session_id, [dict(item) for item in batch]))
        if self._results:
            return self._results.pop(0)
        return {"ok": True, "saved": len(batch)}


def _message(message_id: str, message_type: str = "chat_message") -> dict[str, Any]:
    return {"message_id": message_id, "type": message_type, "timestamp": 1, "payload": {"text": message_id}}


def test_user_text_flushes_immediately():
    saver = _RecordingSaver()
    queue = PersistenceQueue(session_id="sess_1", saver=saver, debounce_ms=60_000)

    out = queue.queue_message(_message("user_1"), user_text="hello")

    assert out["flush"] == {"ok": True, "saved": 1}
    assert queue.pending_count == 0
    session_id, batch = saver.calls[0]
    assert session_id == "sess_1"
    assert batch == [
        {
            "id": "user_1",
            "session_id": "sess_1",
            "timestamp": 1,
            "type": "chat_message",
            "payload": {"text": "user_1"},
            "user_text": "hello",
        }
    ]


def test_agent_messages_are_debounced_and_keyed_by_id():
    saver = _RecordingSaver()
    queue = PersistenceQueue(session_id="sess_1", saver=saver, debounce_ms=60_000)

    first = queue.queue_message(_message("agent_1"))
    queue.queue_message({**_message("agent_1"), "payload": {"text": "updated"}})

    assert first["scheduled_in_ms"] == 60_000
    assert saver.calls == []
    assert queue.pending_count == 1

    assert queue.close() == {"ok": True, "saved": 1}
    assert saver.calls[0][1][0]["payload"] == {"text": "updated"}
    assert saver.calls[0][1][0]["user_text"] is None


def test_zero_debounce_flushes_agent_messages_immediately():
    saver = _RecordingSaver()
    queue = PersistenceQueue(session_id="sess_1", saver=saver, debounce_ms=0)
    out = queue.queue_message(_message("agent_1", "slide_update"))
    assert out["flush"]["ok"] is True
    assert len(saver.calls) == 1


def test_failed_flush_keeps_batch_and_reports_error():
    errors: list[Exception] = []
    saver = _RecordingSaver(results=[{"ok": False, "error": "db down"}])
    queue = PersistenceQueue(session_id="sess_1", saver=saver, debounce_ms=0, on_error=errors.append)

    out = queue.queue_message(_message("agent_1"))

    assert out["flush"]["ok"] is False
    assert "db down" in out["flush"]["error"]
    assert queue.pending_count == 1
    assert len(errors) == 1
    assert queue.stats()["last_error"]

    assert queue.flush() == {"ok": True, "saved": 1}
    assert queue.pending_count == 0
    assert queue.stats()["last_error"] is None


def test_flush_during_flush_is_skipped():
    nested: list[dict[str, Any]] = []
    queue: PersistenceQueue

    def saver(session_id: str, batch: list[dict[str, Any]]) -> dict[str, Any]:
        nested.append(queue.flush())
        return {"ok": True}

    queue = PersistenceQueue(session_id="sess_1", saver=saver, debounce_ms=60_000)
    queue.queue_message(_message("agent_1"))
    assert queue.flush()["ok"] is True
    assert nested == [{"ok": True, "saved": 0, "skipped": "in_progress"}]


def test_queue_requires_id_and_session():
    queue = PersistenceQueue(session_id=None, saver=_RecordingSaver(), debounce_ms=0)
    assert queue.queue_message({"type": "chat_message"})["ok"] is False
    assert queue.queue_message(_message("agent_1"))["error"] == "no_session"

    queue.set_session_id("sess_2")
    assert queue.session_id == "sess_2"
    assert queue.queue_message(_message("agent_1"))["ok"] is True
