"""Canonical epoch-millisecond timestamps for transcript ordering."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from typing import Any

from .logging_setup import get_logger

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)
_MIN_MS = (datetime.min.replace(tzinfo=UTC) - _EPOCH) // _ONE_MS
_MAX_MS = (datetime.max.replace(tzinfo=UTC) - _EPOCH) // _ONE_MS


def parse_iso_utc(value: str) -> datetime | None:
    """Parse an ISO-8601 string, reading zone-less values as UTC."""
    text = value.strip()
    if not text:
        return None
    if text[-1] in {"z", "Z"}:
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def normalize_timestamp(raw: Any) -> int | float:
    """Return epoch milliseconds for a numeric or ISO timestamp; 0 when unusable."""
    if isinstance(raw, bool):
        logger.warning("Unusable timestamp %r; sorting as epoch 0", raw)
        return 0
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            logger.warning("Non-finite timestamp %r; sorting as epoch 0", raw)
            return 0
        if not _MIN_MS <= raw <= _MAX_MS:
            logger.warning("Out-of-range timestamp %r; sorting as epoch 0", raw)
            return 0
        return raw
    if not isinstance(raw, str):
        logger.warning("Missing timestamp %r; sorting as epoch 0", raw)
        return 0

    parsed = parse_iso_utc(raw)
    if parsed is None:
        logger.warning("Unparseable timestamp %r; sorting as epoch 0", raw)
        return 0
    return (parsed - _EPOCH) // _ONE_MS


def to_iso_utc(timestamp_ms: int | float) -> str | None:
    """Render epoch milliseconds as ISO-8601 UTC with millisecond precision; None when unrepresentable."""
    try:
        moment = _EPOCH + timedelta(milliseconds=timestamp_ms)
    except (OverflowError, ValueError):
        logger.warning("Cannot render timestamp %r as ISO-8601", timestamp_ms)
        return None
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
