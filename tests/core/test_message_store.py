from pathlib import Path

import pytest

from src.deckster.core.agent_types import AgentEvent, UserMessageRecord
from src.deckster.core.message_store import MessageStore

T0 = 1704067200000


@pytest.fixture
def store(tmp_path: Path):
    store = MessageStore(db_path=tmp_path / "sessions.db")
    yield store
    store.close()


def test_create_session_is_idempotent(store: MessageStore):
    first = store.create_session("sess_1", title="Solar deck")
    second = store.create_session("sess_1", title="Ignored")

    assert first["created"] is True
    assert second["created"] is False
    session = store.get_session("sess_1")
    assert session["title"] == "Solar deck"
    assert session["status"] == "active"
    assert store.get_session("missing") is None


def test_update_session_metadata(store: MessageStore):
    store.create_session("sess_1")
    assert store.update_session_metadata("sess_1", title="New title", slide_count=7) == {"ok": True, "updated": True}
    assert store.update_session_metadata("sess_1", colour="blue")["ok"] is False
    assert store.update_session_metadata("sess_1") == {"ok": True, "updated": False}

    session = store.get_session("sess_1")
    assert session["title"] == "New title"
    assert session["slide_count"] == 7

    store.mark_session_deleted("sess_1")
    assert store.get_session("sess_1")["status"] == "deleted"


def test_save_messages_upserts_by_id_and_keeps_user_text(store: MessageStore):
    user_row = {
        "id": "user_1",
        "timestamp": T0,
        "type": "chat_message",
        "payload": {"text": "Build a deck"},
        "user_text": "Build a deck",
    }
    assert store.save_messages("sess_1", [user_row]) == {"ok": True, "saved": 1, "total": 1}
    assert store.save_messages("sess_1", [{**user_row, "user_text": None}, {"payload": {}}]) == {
        "ok": True,
        "saved": 1,
        "total": 2,
    }

    history = store.load_session_history("sess_1")
    assert history["ok"] is True
    assert history["user_messages"] == [UserMessageRecord(id="user_1", text="Build a deck", timestamp_ms=T0)]
    assert history["agent_events"] == []
    assert history["session"]["last_message_at"]


def test_load_session_history_splits_user_and_agent_rows(store: MessageStore):
    store.create_session("sess_1")
    store.save_messages(
        "sess_1",
        [
            {"id": "user_1", "timestamp": T0, "type": "chat_message", "payload": {"text": "hi"}, "user_text": "hi"},
            {"id": "a1", "timestamp": "2024-01-01T00:00:02", "type": "chat_message", "payload": {"text": "Hello!"}},
            {
                "id": "r1",
                "timestamp": T0 + 3000,
                "type": "action_request",
                "payload": {"prompt_text": "Approve?", "actions": [{"label": "Approve"}]},
            },
        ],
    )

    history = store.load_session_history("sess_1")

    assert [record.id for record in history["user_messages"]] == ["user_1"]
    events = history["agent_events"]
    assert [event.message_id for event in events] == ["a1", "r1"]
    assert all(isinstance(event, AgentEvent) for event in events)
    assert events[0].text == "Hello!"
    assert events[0].session_id == "sess_1"
    assert events[1].type == "action_request"
    assert events[1].raw_timestamp == "2024-01-01T00:00:03.000Z"


def test_load_session_history_unknown_session(store: MessageStore):
    out = store.load_session_history("nope")
    assert out == {"ok": False, "error": "session_not_found", "session_id": "nope"}


def test_save_messages_requires_session_id(store: MessageStore):
    assert store.save_messages("", [])["ok"] is False
    assert store.create_session("  ")["ok"] is False


def test_save_messages_files_each_row_under_its_own_session(store: MessageStore):
    rows = [
        {"id": "user_a", "session_id": "sess_a", "timestamp": T0, "type": "chat_message", "user_text": "for A"},
        {"id": "user_b", "session_id": "sess_b", "timestamp": T0 + 1, "type": "chat_message", "user_text": "for B"},
        {"id": "agent_x", "timestamp": T0 + 2, "type": "chat_message", "payload": {"text": "no owner"}},
    ]

    assert store.save_messages("sess_b", rows) == {"ok": True, "saved": 3, "total": 3}

    history_a = store.load_session_history("sess_a")
    history_b = store.load_session_history("sess_b")
    assert [record.text for record in history_a["user_messages"]] == ["for A"]
    assert history_a["agent_events"] == []
    assert [record.text for record in history_b["user_messages"]] == ["for B"]
    assert [event.message_id for event in history_b["agent_events"]] == ["agent_x"]
    assert history_a["session"]["last_message_at"]


def test_save_messages_stores_unrenderable_timestamp_as_null(store: MessageStore):
    row = {"id": "user_far", "timestamp": 10**20, "type": "chat_message", "user_text": "far future"}

    assert store.save_messages("sess_1", [row]) == {"ok": True, "saved": 1, "total": 1}

    history = store.load_session_history("sess_1")
    assert history["user_messages"] == [UserMessageRecord(id="user_far", text="far future", timestamp_ms=0)]
