"""Collapse strawman event runs into composite transcript records."""

from __future__ import annotations

from .agent_types import AgentEvent, ClassifiedEvent, CompositeRecord, EventType, TranscriptItem


def _agent_event_at(records: list[ClassifiedEvent], index: int, event_type: EventType) -> AgentEvent | None:
    if index >= len(records):
        return None
    candidate = records[index]
    if candidate.origin != "agent" or not isinstance(candidate.record, AgentEvent):
        return None
    return candidate.record if candidate.record.type == event_type else None


def assemble_groups(records: list[ClassifiedEvent]) -> list[TranscriptItem]:
    """Greedy left-to-right grouping over the sorted transcript.

    Scanning: a slide_update starts a run. AwaitingUrl: the run continues only
    if the very next record is an agent presentation_url, otherwise the
    slide_update is emitted alone. AwaitingAction: an immediately following
    agent action_request joins the composite. A user record always ends a run,
    so every record is consumed at most once and relative order is preserved.
    """
    out: list[TranscriptItem] = []
    cursor = 0
    total = len(records)
    while cursor < total:
        current = records[cursor]
        slide_update = _agent_event_at(records, cursor, "slide_update")
        if slide_update is None:
            out.append(current.as_transcript_item())
            cursor += 1
            continue

        presentation_url = _agent_event_at(records, cursor + 1, "presentation_url")
        if presentation_url is None:
            out.append(slide_update)
            cursor += 1
            continue

        action_request = _agent_event_at(records, cursor + 2, "action_request")
        out.append(
            CompositeRecord(
                slide_update=slide_update,
                presentation_url=presentation_url,
                action_request=action_request,
            )
        )
        cursor += 3 if action_request is not None else 2
    return out
