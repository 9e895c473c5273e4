"""Repository-relative path helpers for local data files."""

from __future__ import annotations

from pathlib import Path


def repo_root() -> Path:
    return Path(__file__).resolve().parents[3]


def resolve_data_path(path: str | Path, *, root: Path | None = None) -> Path:
    """Resolve a data file path under the repo (or `root`) and create its parent directory."""
    raw = Path(path)
    if ".." in raw.parts:
        raise ValueError("Path traversal (`..`) is not allowed.")
    candidate = raw if raw.is_absolute() else (root or repo_root()) / raw
    candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate
