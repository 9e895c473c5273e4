"""Chronological ordering of the merged transcript."""

from __future__ import annotations

from .agent_types import ClassifiedEvent


def sort_chronologically(records: list[ClassifiedEvent]) -> list[ClassifiedEvent]:
    # sorted() is stable: equal timestamps keep input order across passes.
    return sorted(records, key=lambda record: record.normalized_timestamp_ms)
