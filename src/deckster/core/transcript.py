"""Full transcript recomputation over user records, live events and history."""

from __future__ import annotations

from typing import Any

from .agent_types import AgentEvent, CompositeRecord, TranscriptItem, UserMessageRecord, transcript_item_id
from .answered_actions import AnsweredActionTracker
from .classification import classify_all
from .deduplication import deduplicate
from .grouping import assemble_groups
from .logging_setup import get_logger
from .ordering import sort_chronologically
from .reconciliation_context import ReconciliationContext
from .welcome_filter import filter_welcome_messages

logger = get_logger(__name__)


def reconcile_transcript(
    user_messages: list[UserMessageRecord],
    agent_events: list[AgentEvent],
    context: ReconciliationContext,
    *,
    welcome_phrases: tuple[str, ...] | None = None,
) -> list[TranscriptItem]:
    """Classify, dedupe, sort, group and filter into one UI-ready transcript.

    Deterministic for the same inputs and context flags. The pass grows the
    known user ids and records which welcome banner it kept.
    """
    context.register_user_messages(user_messages)
    classified = classify_all(user_messages, agent_events, context)
    unique = deduplicate(classified)
    ordered = sort_chronologically(unique)
    grouped = assemble_groups(ordered)
    transcript = filter_welcome_messages(grouped, context, phrases=welcome_phrases)
    logger.debug(
        "Reconciled %d user records and %d events into %d transcript items",
        len(user_messages),
        len(agent_events),
        len(transcript),
    )
    return transcript


def transcript_item_to_dict(item: TranscriptItem, tracker: AnsweredActionTracker) -> dict[str, Any]:
    if isinstance(item, UserMessageRecord):
        body: dict[str, Any] = {"kind": "user_message", **item.to_dict()}
    elif isinstance(item, CompositeRecord):
        body = item.to_dict()
    else:
        body = {"kind": "agent_event", "id": item.message_id, **item.to_dict()}
    body["open_action_id"] = tracker.open_action_id(item)
    return body


def transcript_to_dicts(items: list[TranscriptItem], tracker: AnsweredActionTracker) -> list[dict[str, Any]]:
    return [transcript_item_to_dict(item, tracker) for item in items]


def transcript_ids(items: list[TranscriptItem]) -> list[str]:
    return [transcript_item_id(item) for item in items]
