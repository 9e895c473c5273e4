"""Remove duplicate transcript records across id and content identity."""

from __future__ import annotations

from .agent_types import ClassifiedEvent


def drop_id_collisions(records: list[ClassifiedEvent]) -> list[ClassifiedEvent]:
    seen: set[str] = set()
    out: list[ClassifiedEvent] = []
    for record in records:
        if record.record_id in seen:
            continue
        seen.add(record.record_id)
        out.append(record)
    return out


def deduplicate(records: list[ClassifiedEvent]) -> list[ClassifiedEvent]:
    """Keep one record per logical message, preferring the user-origin copy.

    Within a content group holding both origins a user record wins and agent
    copies are treated as echoes. Among records of the winning origin the
    earliest normalized timestamp wins, ties going to input order. Survivors
    keep their input order.
    """
    unique = drop_id_collisions(records)

    keep_index: dict[str, int] = {}
    for index, record in enumerate(unique):
        key = record.content_key
        current = keep_index.get(key)
        if current is None:
            keep_index[key] = index
            continue
        winner = unique[current]
        if winner.origin == "agent" and record.origin == "user":
            keep_index[key] = index
        elif winner.origin == record.origin and record.normalized_timestamp_ms < winner.normalized_timestamp_ms:
            keep_index[key] = index

    kept = set(keep_index.values())
    return [record for index, record in enumerate(unique) if index in kept]
