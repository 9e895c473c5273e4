"""Per-session write-through cache of user-authored messages."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from time import time
from typing import Any

from .agent_types import UserMessageRecord
from .config_loader import get_session_cache_config
from .logging_setup import get_logger
from .path_policy import repo_root

CACHE_VERSION = 1

logger = get_logger(__name__)


def _now_ms() -> int:
    return int(time() * 1000)


def _sessions_dir(base_dir: str | None = None, *, root: Path | None = None) -> Path:
    root_path = root or repo_root()
    path = root_path / (base_dir or get_session_cache_config()["base_dir"])
    path.mkdir(parents=True, exist_ok=True)
    return path


def session_cache_path(session_id: str, *, base_dir: str | None = None, root: Path | None = None) -> Path:
    safe = session_id.replace("/", "_")
    return _sessions_dir(base_dir, root=root) / f"{safe}.json"


def write_cached_user_messages(
    session_id: str,
    records: list[UserMessageRecord],
    *,
    base_dir: str | None = None,
    root: Path | None = None,
    max_messages: int | None = None,
    now_ms: int | None = None,
) -> dict[str, Any]:
    if not session_id:
        return {"ok": False, "error": "session_id is required."}
    limit = max_messages or get_session_cache_config()["max_messages"]
    kept = records[-limit:] if len(records) > limit else records
    if len(kept) < len(records):
        logger.warning("Trimming cached user messages for %s from %d to %d", session_id, len(records), len(kept))

    payload = {
        "version": CACHE_VERSION,
        "last_updated_ms": now_ms if now_ms is not None else _now_ms(),
        "user_messages": [record.to_dict() for record in kept],
    }
    path = session_cache_path(session_id, base_dir=base_dir, root=root)
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return {"ok": True, "session_id": session_id, "count": len(kept), "trimmed": len(records) - len(kept)}


def load_cached_user_messages(
    session_id: str,
    *,
    base_dir: str | None = None,
    root: Path | None = None,
    ttl_hours: int | None = None,
    now_ms: int | None = None,
) -> list[UserMessageRecord]:
    """Cached records for a session; empty when missing, stale, corrupt or from another schema."""
    path = session_cache_path(session_id, base_dir=base_dir, root=root)
    if not path.exists():
        return []

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        logger.warning("Ignoring corrupt session cache %s", path.name)
        return []
    if not isinstance(payload, dict) or payload.get("version") != CACHE_VERSION:
        return []

    ttl = ttl_hours or get_session_cache_config()["ttl_hours"]
    last_updated = payload.get("last_updated_ms")
    reference = now_ms if now_ms is not None else _now_ms()
    if not isinstance(last_updated, (int, float)) or reference - last_updated > ttl * 3600 * 1000:
        return []

    records: list[UserMessageRecord] = []
    raw_records = payload.get("user_messages")
    for raw in raw_records if isinstance(raw_records, list) else []:
        try:
            records.append(UserMessageRecord.from_dict(raw))
        except ValueError:
            continue
    return records


def clear_session_cache(session_id: str, *, base_dir: str | None = None, root: Path | None = None) -> bool:
    path = session_cache_path(session_id, base_dir=base_dir, root=root)
    existed = path.exists()
    path.unlink(missing_ok=True)
    return existed


def clear_all_session_caches(*, base_dir: str | None = None, root: Path | None = None) -> int:
    removed = 0
    for file_path in _sessions_dir(base_dir, root=root).glob("*.json"):
        file_path.unlink(missing_ok=True)
        removed += 1
    return removed


def cleanup_session_caches_older_than(
    *,
    days: int,
    base_dir: str | None = None,
    root: Path | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    if days < 0:
        raise ValueError("days must be >= 0")

    path = _sessions_dir(base_dir, root=root)
    reference = now or datetime.now(timezone.utc)
    cutoff = reference - timedelta(days=days)
    removed: list[str] = []
    scanned = 0

    for file_path in path.glob("*.json"):
        scanned += 1
        modified = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc)
        if modified < cutoff:
            file_path.unlink(missing_ok=True)
            removed.append(file_path.name)

    return {
        "ok": True,
        "scanned": scanned,
        "removed_count": len(removed),
        "removed_files": sorted(removed),
        "cutoff_iso_utc": cutoff.isoformat(),
    }
