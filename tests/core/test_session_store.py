import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from src.deckster.core.agent_types import UserMessageRecord
from src.deckster.core.session_store import (
    CACHE_VERSION,
    cleanup_session_caches_older_than,
    clear_all_session_caches,
    clear_session_cache,
    load_cached_user_messages,
    session_cache_path,
    write_cached_user_messages,
)

NOW_MS = 1704067200000
HOUR_MS = 3600 * 1000


def _records(count: int) -> list[UserMessageRecord]:
    return [UserMessageRecord(id=f"user_{i}", text=f"message {i}", timestamp_ms=NOW_MS + i) for i in range(count)]


def test_write_and_load_cached_user_messages(tmp_path: Path):
    out = write_cached_user_messages("sess_1", _records(2), root=tmp_path, now_ms=NOW_MS)
    assert out == {"ok": True, "session_id": "sess_1", "count": 2, "trimmed": 0}

    payload = json.loads(session_cache_path("sess_1", root=tmp_path).read_text(encoding="utf-8"))
    assert payload["version"] == CACHE_VERSION
    assert payload["last_updated_ms"] == NOW_MS

    loaded = load_cached_user_messages("sess_1", root=tmp_path, now_ms=NOW_MS + HOUR_MS)
    assert loaded == _records(2)


def test_cache_keeps_newest_messages_when_over_cap(tmp_path: Path):
    out = write_cached_user_messages("sess_1", _records(5), root=tmp_path, max_messages=2, now_ms=NOW_MS)
    assert out["count"] == 2
    assert out["trimmed"] == 3

    loaded = load_cached_user_messages("sess_1", root=tmp_path, now_ms=NOW_MS)
    assert [record.id for record in loaded] == ["user_3", "user_4"]


def test_expired_cache_is_ignored(tmp_path: Path):
    write_cached_user_messages("sess_1", _records(1), root=tmp_path, now_ms=NOW_MS)
    assert load_cached_user_messages("sess_1", root=tmp_path, ttl_hours=24, now_ms=NOW_MS + 25 * HOUR_MS) == []
    assert len(load_cached_user_messages("sess_1", root=tmp_path, ttl_hours=48, now_ms=NOW_MS + 25 * HOUR_MS)) == 1


def test_wrong_version_missing_and_corrupt_caches_load_empty(tmp_path: Path):
    assert load_cached_user_messages("missing", root=tmp_path) == []

    path = session_cache_path("old_schema", root=tmp_path)
    path.write_text(json.dumps({"version": 0, "last_updated_ms": NOW_MS, "user_messages": []}), encoding="utf-8")
    assert load_cached_user_messages("old_schema", root=tmp_path, now_ms=NOW_MS) == []

    session_cache_path("corrupt", root=tmp_path).write_text("{oops", encoding="utf-8")
    assert load_cached_user_messages("corrupt", root=tmp_path, now_ms=NOW_MS) == []


def test_bad_records_are_skipped(tmp_path: Path):
    path = session_cache_path("sess_1", root=tmp_path)
    payload = {
        "version": CACHE_VERSION,
        "last_updated_ms": NOW_MS,
        "user_messages": [{"id": "user_1", "text": "ok", "timestamp": 1}, {"id": "", "text": "bad", "timestamp": 2}, "junk"],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    loaded = load_cached_user_messages("sess_1", root=tmp_path, now_ms=NOW_MS)
    assert [record.id for record in loaded] == ["user_1"]


def test_clear_session_caches(tmp_path: Path):
    write_cached_user_messages("a", _records(1), root=tmp_path)
    write_cached_user_messages("b", _records(1), root=tmp_path)

    assert clear_session_cache("a", root=tmp_path) is True
    assert clear_session_cache("a", root=tmp_path) is False
    assert clear_all_session_caches(root=tmp_path) == 1
    assert load_cached_user_messages("b", root=tmp_path) == []


def test_cleanup_session_caches_older_than(tmp_path: Path):
    old_path = session_cache_path("old", root=tmp_path)
    new_path = session_cache_path("new", root=tmp_path)
    old_path.write_text("{}", encoding="utf-8")
    new_path.write_text("{}", encoding="utf-8")

    now = datetime.now(timezone.utc)
    old_ts = (now - timedelta(days=10)).timestamp()
    new_ts = (now - timedelta(days=1)).timestamp()
    os.utime(old_path, (old_ts, old_ts))
    os.utime(new_path, (new_ts, new_ts))

    result = cleanup_session_caches_older_than(days=7, root=tmp_path, now=now)
    assert result["ok"]
    assert result["removed_count"] == 1
    assert result["removed_files"] == ["old.json"]

    with pytest.raises(ValueError):
        cleanup_session_caches_older_than(days=-1, root=tmp_path)
