"""Suppress repeat greeting banners from the Director."""

from __future__ import annotations

from .agent_types import AgentEvent, TranscriptItem
from .config_loader import get_welcome_phrases
from .logging_setup import get_logger
from .reconciliation_context import ReconciliationContext

logger = get_logger(__name__)


def is_welcome_message(item: TranscriptItem, phrases: tuple[str, ...]) -> bool:
    if not isinstance(item, AgentEvent) or item.type != "chat_message":
        return False
    text = (item.text or "").casefold()
    return any(phrase in text for phrase in phrases)


def filter_welcome_messages(
    items: list[TranscriptItem],
    context: ReconciliationContext,
    *,
    phrases: tuple[str, ...] | None = None,
) -> list[TranscriptItem]:
    """Keep only the first welcome message of an already sorted transcript.

    The kept id is recorded on the context. A welcome that shows up late with
    an earlier timestamp takes over the banner on the next pass, so the output
    depends only on the inputs.
    """
    active_phrases = phrases if phrases is not None else get_welcome_phrases()
    out: list[TranscriptItem] = []
    kept_id: str | None = None
    for item in items:
        if not is_welcome_message(item, active_phrases):
            out.append(item)
            continue
        message_id = item.message_id  # type: ignore[union-attr]
        if kept_id is None:
            kept_id = message_id
            out.append(item)
        else:
            logger.debug("Dropping repeat welcome message %s", message_id)
    if kept_id is not None:
        if context.welcome_message_id not in (None, kept_id):
            logger.info("Earlier welcome %s replaces %s", kept_id, context.welcome_message_id)
        context.welcome_message_id = kept_id
        context.welcome_seen = True
    return out
