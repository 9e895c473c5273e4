"""SQLite persistence for chat sessions and their message history."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from threading import Lock
from typing import Any

from .agent_types import AgentEvent, UserMessageRecord
from .config_loader import get_persistence_config
from .logging_setup import get_logger
from .message_db_queue import MessageDbQueue
from .path_policy import resolve_data_path
from .timestamps import normalize_timestamp, to_iso_utc

logger = get_logger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS chat_sessions (
        id TEXT PRIMARY KEY,
        title TEXT,
        status TEXT NOT NULL DEFAULT 'active',
        current_stage INTEGER,
        strawman_preview_url TEXT,
        strawman_presentation_id TEXT,
        final_presentation_url TEXT,
        final_presentation_id TEXT,
        slide_count INTEGER,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        last_message_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS chat_messages (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        message_type TEXT NOT NULL,
        timestamp TEXT,
        payload TEXT NOT NULL DEFAULT '{}',
        user_text TEXT,
        created_at TEXT NOT NULL
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_session ON chat_messages(session_id);",
)

_METADATA_COLUMNS = {
    "title": "title",
    "status": "status",
    "current_stage": "current_stage",
    "strawman_preview_url": "strawman_preview_url",
    "strawman_presentation_id": "strawman_presentation_id",
    "final_presentation_url": "final_presentation_url",
    "final_presentation_id": "final_presentation_id",
    "slide_count": "slide_count",
    "last_message_at": "last_message_at",
}


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _stored_timestamp(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return to_iso_utc(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _load_payload(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, str) or not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


class MessageStore:
    """Session rows plus an id-keyed message table; saves are idempotent upserts."""

    def __init__(self, *, db_path: str | Path, busy_timeout_ms: int = 5000) -> None:
        self._queue = MessageDbQueue(db_path=db_path, busy_timeout_ms=busy_timeout_ms)
        self._schema_ready = False
        self._schema_lock = Lock()

    @classmethod
    def from_config(cls, *, root: Path | None = None) -> "MessageStore":
        cfg = get_persistence_config()
        return cls(db_path=resolve_data_path(cfg["db_path"], root=root), busy_timeout_ms=cfg["busy_timeout_ms"])

    def close(self) -> dict[str, Any]:
        return self._queue.stop()

    def health(self) -> dict[str, Any]:
        return self._queue.health()

    def ensure_schema(self) -> dict[str, Any]:
        with self._schema_lock:
            if self._schema_ready:
                return {"ok": True, "created": False}
            out = self._queue.write([(sql, None) for sql in _SCHEMA])
            if out.get("ok"):
                self._schema_ready = True
            return {"ok": bool(out.get("ok")), "created": bool(out.get("ok")), "error": out.get("error")}

    def _read(self, sql: str, params: Any = None, *, max_rows: int = 5000) -> dict[str, Any]:
        ready = self.ensure_schema()
        if not ready["ok"]:
            return {"ok": False, "error": ready.get("error")}
        return self._queue.query(sql, params, max_rows=max_rows)

    def _write(self, statements: list[tuple[str, Any]]) -> dict[str, Any]:
        ready = self.ensure_schema()
        if not ready["ok"]:
            return {"ok": False, "error": ready.get("error")}
        return self._queue.write(statements)

    def create_session(self, session_id: str, *, title: str | None = None) -> dict[str, Any]:
        if not isinstance(session_id, str) or not session_id.strip():
            return {"ok": False, "error": "session_id is required."}
        now = _utc_now_iso()
        out = self._write(
            [
                (
                    "INSERT OR IGNORE INTO chat_sessions(id, title, status, created_at, updated_at) VALUES(?, ?, 'active', ?, ?);",
                    (session_id, title, now, now),
                )
            ]
        )
        if not out.get("ok"):
            return out
        return {"ok": True, "created": out.get("rows_affected", 0) > 0, "session": self.get_session(session_id)}

    def get_session(self, session_id: str) -> dict[str, Any] | None:
        out = self._read("SELECT * FROM chat_sessions WHERE id = ?;", (session_id,), max_rows=1)
        if not out.get("ok") or not out.get("rows"):
            return None
        return out["rows"][0]

    def update_session_metadata(self, session_id: str, **updates: Any) -> dict[str, Any]:
        fields = {_METADATA_COLUMNS[key]: value for key, value in updates.items() if key in _METADATA_COLUMNS}
        unknown = sorted(set(updates) - set(_METADATA_COLUMNS))
        if unknown:
            return {"ok": False, "error": f"Unknown session fields: {', '.join(unknown)}"}
        if not fields:
            return {"ok": True, "updated": False}
        assignments = ", ".join(f"{column} = ?" for column in fields)
        params = (*fields.values(), _utc_now_iso(), session_id)
        out = self._write([(f"UPDATE chat_sessions SET {assignments}, updated_at = ? WHERE id = ?;", params)])
        if not out.get("ok"):
            return out
        return {"ok": True, "updated": out.get("rows_affected", 0) > 0}

    def mark_session_deleted(self, session_id: str) -> dict[str, Any]:
        return self.update_session_metadata(session_id, status="deleted")

    def save_messages(self, session_id: str, messages: list[dict[str, Any]]) -> dict[str, Any]:
        """Upsert persistence requests by message id; user text is never cleared once stored.

        A request carrying its own `session_id` is stored under that session;
        `session_id` is the fallback for requests without one.
        """
        if not isinstance(session_id, str) or not session_id.strip():
            return {"ok": False, "error": "session_id is required."}
        now = _utc_now_iso()
        touched: list[str] = []
        rows: list[tuple[str, Any]] = []
        for message in messages:
            message_id = message.get("id") if isinstance(message, dict) else None
            if not isinstance(message_id, str) or not message_id:
                continue
            owner = message.get("session_id")
            if not isinstance(owner, str) or not owner.strip():
                owner = session_id
            if owner not in touched:
                touched.append(owner)
            rows.append(
                (
                    """
                    INSERT INTO chat_messages(id, session_id, message_type, timestamp, payload, user_text, created_at)
                    VALUES(?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        message_type = excluded.message_type,
                        timestamp = COALESCE(excluded.timestamp, chat_messages.timestamp),
                        payload = excluded.payload,
                        user_text = COALESCE(excluded.user_text, chat_messages.user_text);
                    """,
                    (
                        message_id,
                        owner,
                        str(message.get("type") or "other"),
                        _stored_timestamp(message.get("timestamp")),
                        json.dumps(message.get("payload") or {}, ensure_ascii=False),
                        message.get("user_text") if isinstance(message.get("user_text"), str) else None,
                        now,
                    ),
                )
            )
        if not touched:
            touched.append(session_id)
        statements: list[tuple[str, Any]] = [
            (
                "INSERT OR IGNORE INTO chat_sessions(id, status, created_at, updated_at) VALUES(?, 'active', ?, ?);",
                (owner, now, now),
            )
            for owner in touched
        ]
        statements.extend(rows)
        statements.extend(
            ("UPDATE chat_sessions SET last_message_at = ?, updated_at = ? WHERE id = ?;", (now, now, owner))
            for owner in touched
        )
        out = self._write(statements)
        if not out.get("ok"):
            return {"ok": False, "error": out.get("error"), "saved": 0, "total": len(messages)}
        return {"ok": True, "saved": len(rows), "total": len(messages)}

    def load_session_history(self, session_id: str) -> dict[str, Any]:
        """Split stored rows into user records (rows with user text) and agent events."""
        session = self.get_session(session_id)
        if session is None:
            return {"ok": False, "error": "session_not_found", "session_id": session_id}
        out = self._read(
            "SELECT id, message_type, timestamp, payload, user_text FROM chat_messages WHERE session_id = ? ORDER BY rowid ASC;",
            (session_id,),
        )
        if not out.get("ok"):
            return {"ok": False, "error": out.get("error"), "session_id": session_id}

        user_messages: list[UserMessageRecord] = []
        agent_events: list[AgentEvent] = []
        for row in out["rows"]:
            if row.get("user_text"):
                user_messages.append(
                    UserMessageRecord(
                        id=row["id"],
                        text=row["user_text"],
                        timestamp_ms=normalize_timestamp(row.get("timestamp")),
                    )
                )
                continue
            agent_events.append(
                AgentEvent.from_dict(
                    {
                        "message_id": row["id"],
                        "timestamp": row.get("timestamp"),
                        "type": row.get("message_type"),
                        "payload": _load_payload(row.get("payload")),
                    },
                    session_id=session_id,
                )
            )
        logger.info(
            "Restored %d user messages and %d agent events for session %s",
            len(user_messages),
            len(agent_events),
            session_id,
        )
        return {
            "ok": True,
            "session_id": session_id,
            "session": session,
            "user_messages": user_messages,
            "agent_events": agent_events,
        }
