"""Load and query Deckster JSON config files."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

DEFAULT_CONFIG_PATH = Path("config/config.json")
DEFAULT_WELCOME_PHRASES = ("hello! i'm deckster", "what presentation would you like to build")
DEFAULT_SESSION_CACHE_DIR = "memory/sessions"
DEFAULT_SESSION_CACHE_TTL_HOURS = 24
DEFAULT_SESSION_CACHE_MAX_MESSAGES = 500
DEFAULT_MESSAGE_DB_PATH = "memory/central/deckster_sessions.db"
DEFAULT_PERSISTENCE_DEBOUNCE_MS = 3000
DEFAULT_BUSY_TIMEOUT_MS = 5000
_CONFIG_CACHE: dict[Path, tuple[int, dict[str, Any]]] = {}


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_config_path(config_path: str | Path | None = None) -> Path:
    """Resolve config path against repo root.

    Priority:
    1. explicit function argument
    2. `DECKSTER_CONFIG_PATH` environment variable
    3. default `config/config.json`
    """
    raw_path: str | Path | None = config_path or os.getenv("DECKSTER_CONFIG_PATH")
    candidate = Path(raw_path) if raw_path else DEFAULT_CONFIG_PATH
    if not candidate.is_absolute():
        candidate = _repo_root() / candidate
    return candidate.resolve()


def load_config(config_path: str | Path | None = None, *, use_cache: bool = True) -> dict[str, Any]:
    """Load config JSON as a dictionary."""
    resolved = resolve_config_path(config_path)
    if not resolved.exists():
        raise FileNotFoundError(f"Config file not found: {resolved}")

    mtime_ns = resolved.stat().st_mtime_ns
    if use_cache and resolved in _CONFIG_CACHE:
        cached_mtime_ns, cached_payload = _CONFIG_CACHE[resolved]
        if cached_mtime_ns == mtime_ns:
            return cached_payload

    try:
        payload = json.loads(resolved.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in config file: {resolved}") from exc

    if not isinstance(payload, dict):
        raise ValueError(f"Config root must be a JSON object: {resolved}")

    _CONFIG_CACHE[resolved] = (mtime_ns, payload)
    return payload


def clear_config_cache() -> None:
    """Clear in-memory config cache."""
    _CONFIG_CACHE.clear()


def _safe_config(config: dict[str, Any] | None) -> dict[str, Any]:
    if config is not None:
        return config
    try:
        return load_config()
    except (FileNotFoundError, ValueError):
        return {}


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def get_welcome_phrases(config: dict[str, Any] | None = None) -> tuple[str, ...]:
    """Return case-folded phrases that mark an agent chat message as the greeting banner."""
    payload = _safe_config(config)
    raw = payload.get("welcome_phrases")
    if not isinstance(raw, list):
        return DEFAULT_WELCOME_PHRASES
    phrases = tuple(item.strip().casefold() for item in raw if isinstance(item, str) and item.strip())
    return phrases or DEFAULT_WELCOME_PHRASES


def get_session_cache_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    payload = _safe_config(config)
    section = payload.get("session_cache")
    if not isinstance(section, dict):
        section = {}
    base_dir = section.get("base_dir")
    return {
        "base_dir": base_dir if isinstance(base_dir, str) and base_dir.strip() else DEFAULT_SESSION_CACHE_DIR,
        "ttl_hours": _positive_int(section.get("ttl_hours"), DEFAULT_SESSION_CACHE_TTL_HOURS),
        "max_messages": _positive_int(section.get("max_messages"), DEFAULT_SESSION_CACHE_MAX_MESSAGES),
    }


def get_persistence_config(config: dict[str, Any] | None = None) -> dict[str, Any]:
    payload = _safe_config(config)
    section = payload.get("persistence")
    if not isinstance(section, dict):
        section = {}
    db_path = section.get("db_path")
    return {
        "db_path": db_path if isinstance(db_path, str) and db_path.strip() else DEFAULT_MESSAGE_DB_PATH,
        "debounce_ms": _positive_int(section.get("debounce_ms"), DEFAULT_PERSISTENCE_DEBOUNCE_MS),
        "busy_timeout_ms": _positive_int(section.get("busy_timeout_ms"), DEFAULT_BUSY_TIMEOUT_MS),
    }


def get_logging_level(config: dict[str, Any] | None = None) -> str:
    payload = _safe_config(config)
    section = payload.get("logging")
    level = section.get("level") if isinstance(section, dict) else None
    if isinstance(level, str) and level.strip():
        return level.strip().upper()
    return "INFO"
