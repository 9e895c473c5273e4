"""Which action prompts the user already answered in the live session."""

from __future__ import annotations

from .agent_types import AgentEvent, CompositeRecord, TranscriptItem


class AnsweredActionTracker:
    """Grow-only set of answered action_request ids, cleared on session switch.

    Ids restored from persisted history are never pre-marked: a prompt answered
    during an earlier visit renders as interactive again when the session is
    revisited.
    """

    def __init__(self) -> None:
        self._answered: set[str] = set()

    def mark_answered(self, action_request_id: str) -> bool:
        if not isinstance(action_request_id, str) or not action_request_id.strip():
            return False
        created = action_request_id not in self._answered
        self._answered.add(action_request_id)
        return created

    def is_answered(self, action_request_id: str) -> bool:
        return action_request_id in self._answered

    def clear(self) -> None:
        self._answered.clear()

    def answered_ids(self) -> frozenset[str]:
        return frozenset(self._answered)

    def open_action_id(self, item: TranscriptItem) -> str | None:
        """Id of the prompt whose buttons should still render for this item."""
        action: AgentEvent | None = None
        if isinstance(item, CompositeRecord):
            action = item.action_request
        elif isinstance(item, AgentEvent) and item.type == "action_request":
            action = item
        if action is None or self.is_answered(action.message_id):
            return None
        return action.message_id
