import json
from pathlib import Path

import pytest

from src.deckster.core.config_loader import (
    DEFAULT_WELCOME_PHRASES,
    clear_config_cache,
    get_logging_level,
    get_persistence_config,
    get_session_cache_config,
    get_welcome_phrases,
    load_config,
    resolve_config_path,
)


def _write_json(path: Path, payload: dict) -> None:
    path.write_text(json.dumps(payload), encoding="utf-8")


def test_resolve_config_path_uses_env_var(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    config_path = tmp_path / "custom.json"
    _write_json(config_path, {"ok": True})
    monkeypatch.setenv("DECKSTER_CONFIG_PATH", str(config_path))

    resolved = resolve_config_path()
    assert resolved == config_path.resolve()


def test_load_config_reads_json_file(tmp_path: Path):
    clear_config_cache()
    config_path = tmp_path / "config.json"
    _write_json(config_path, {"welcome_phrases": ["hey there"]})

    loaded = load_config(config_path)
    assert loaded["welcome_phrases"] == ["hey there"]


def test_load_config_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.json")


def test_load_config_rejects_invalid_json_and_non_objects(tmp_path: Path):
    clear_config_cache()
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(bad)

    listy = tmp_path / "list.json"
    listy.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(listy, use_cache=False)


def test_welcome_phrases_are_case_folded_with_default_fallback():
    assert get_welcome_phrases({"welcome_phrases": ["  Hi, I'm Bot ", "", 3]}) == ("hi, i'm bot",)
    assert get_welcome_phrases({"welcome_phrases": "nope"}) == DEFAULT_WELCOME_PHRASES
    assert get_welcome_phrases({"welcome_phrases": []}) == DEFAULT_WELCOME_PHRASES


def test_session_cache_config_defaults_invalid_values():
    cfg = get_session_cache_config({"session_cache": {"base_dir": "", "ttl_hours": -1, "max_messages": True}})
    assert cfg == {"base_dir": "memory/sessions", "ttl_hours": 24, "max_messages": 500}

    custom = get_session_cache_config({"session_cache": {"base_dir": "cache", "ttl_hours": 2, "max_messages": 10}})
    assert custom == {"base_dir": "cache", "ttl_hours": 2, "max_messages": 10}


def test_persistence_config_and_logging_level():
    cfg = get_persistence_config({"persistence": {"db_path": "x.db", "debounce_ms": 250}})
    assert cfg == {"db_path": "x.db", "debounce_ms": 250, "busy_timeout_ms": 5000}
    assert get_persistence_config({})["debounce_ms"] == 3000

    assert get_logging_level({"logging": {"level": "debug"}}) == "DEBUG"
    assert get_logging_level({"logging": "loud"}) == "INFO"


def test_getters_fall_back_when_config_file_is_missing(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    clear_config_cache()
    monkeypatch.setenv("DECKSTER_CONFIG_PATH", str(tmp_path / "absent.json"))
    assert get_welcome_phrases() == DEFAULT_WELCOME_PHRASES
    assert get_session_cache_config()["ttl_hours"] == 24
