"""Authorship classification for Director events."""

from __future__ import annotations

from .agent_types import AgentEvent, ClassifiedEvent, UserMessageRecord
from .logging_setup import get_logger
from .reconciliation_context import ReconciliationContext
from .timestamps import normalize_timestamp

logger = get_logger(__name__)


def classify_user_record(record: UserMessageRecord) -> ClassifiedEvent:
    return ClassifiedEvent(
        record=record,
        origin="user",
        normalized_timestamp_ms=normalize_timestamp(record.timestamp_ms),
        match_method="user_record",
    )


def classify_event(event: AgentEvent, context: ReconciliationContext) -> ClassifiedEvent:
    """Decide whether a Director event was authored by the user.

    Tiers in priority order: explicit author hint, known user id, normalized
    content match against the user-content index, then agent by default. The
    content tier only bridges history recorded before the author hint existed.
    """
    timestamp_ms = normalize_timestamp(event.raw_timestamp)

    if event.author_hint == "user":
        context.register_user_id(event.message_id)
        return ClassifiedEvent(event, "user", timestamp_ms, "author_hint")

    if event.message_id in context.known_user_ids:
        return ClassifiedEvent(event, "user", timestamp_ms, "known_id")

    matched_user_id = context.lookup_user_content(event.text)
    if matched_user_id is not None:
        context.register_user_id(event.message_id)
        logger.debug(
            "Classified %s as user by content match against %s",
            event.message_id,
            matched_user_id,
        )
        return ClassifiedEvent(event, "user", timestamp_ms, "content_match")

    return ClassifiedEvent(event, "agent", timestamp_ms, "default")


def classify_all(
    user_messages: list[UserMessageRecord],
    agent_events: list[AgentEvent],
    context: ReconciliationContext,
) -> list[ClassifiedEvent]:
    """User records first, then events, each in arrival order."""
    classified = [classify_user_record(record) for record in user_messages]
    classified.extend(classify_event(event, context) for event in agent_events)
    return classified
