"""Core schemas for Director events and transcript records."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal, Union, assert_never

EventType = Literal[
    "chat_message",
    "action_request",
    "slide_update",
    "presentation_url",
    "status_update",
    "other",
]
Origin = Literal["user", "agent"]
MatchMethod = Literal["user_record", "author_hint", "known_id", "content_match", "default"]
ChatFormat = Literal["markdown", "plain"]

_EVENT_TYPES = {
    "chat_message",
    "action_request",
    "slide_update",
    "presentation_url",
    "status_update",
}


def normalize_content(text: str) -> str:
    """Content identity used for deduplication and the user-content index."""
    return text.strip().casefold()


def _as_mapping(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, dict) else {}


def _as_str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _as_optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass(frozen=True, slots=True)
class UserMessageRecord:
    """Message the user typed or selected, as held in the local cache."""

    id: str
    text: str
    timestamp_ms: int | float

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("UserMessageRecord.id must be non-empty.")
        if not isinstance(self.text, str):
            raise ValueError("UserMessageRecord.text must be a string.")
        if isinstance(self.timestamp_ms, bool) or not isinstance(self.timestamp_ms, (int, float)):
            raise ValueError("UserMessageRecord.timestamp_ms must be a number.")

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UserMessageRecord":
        if not isinstance(raw, dict):
            raise ValueError("UserMessageRecord payload must be an object.")
        return cls(
            id=raw.get("id"),
            text=raw.get("text"),
            timestamp_ms=raw.get("timestamp"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "timestamp": self.timestamp_ms}


@dataclass(frozen=True, slots=True)
class ChatPayload:
    text: str
    sub_title: str | None = None
    list_items: tuple[str, ...] = ()
    format: ChatFormat = "markdown"

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ChatPayload":
        items = raw.get("list_items")
        fmt = raw.get("format")
        return cls(
            text=_as_str(raw.get("text")),
            sub_title=raw.get("sub_title") if isinstance(raw.get("sub_title"), str) else None,
            list_items=tuple(str(item) for item in items) if isinstance(items, list) else (),
            format=fmt if fmt in {"markdown", "plain"} else "markdown",
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"text": self.text, "format": self.format}
        if self.sub_title is not None:
            out["sub_title"] = self.sub_title
        if self.list_items:
            out["list_items"] = list(self.list_items)
        return out


@dataclass(frozen=True, slots=True)
class ActionOption:
    label: str
    value: str
    primary: bool = False
    requires_input: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "value": self.value,
            "primary": self.primary,
            "requires_input": self.requires_input,
        }


@dataclass(frozen=True, slots=True)
class ActionRequestPayload:
    prompt_text: str
    actions: tuple[ActionOption, ...] = ()

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ActionRequestPayload":
        actions: list[ActionOption] = []
        raw_actions = raw.get("actions")
        for item in raw_actions if isinstance(raw_actions, list) else []:
            if not isinstance(item, dict):
                continue
            label = _as_str(item.get("label"))
            actions.append(
                ActionOption(
                    label=label,
                    value=_as_str(item.get("value"), label),
                    primary=bool(item.get("primary")),
                    requires_input=bool(item.get("requires_input")),
                )
            )
        return cls(prompt_text=_as_str(raw.get("prompt_text")), actions=tuple(actions))

    def to_dict(self) -> dict[str, Any]:
        return {"prompt_text": self.prompt_text, "actions": [action.to_dict() for action in self.actions]}


@dataclass(frozen=True, slots=True)
class SlideUpdatePayload:
    operation: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    slides: tuple[dict[str, Any], ...] = ()

    @property
    def main_title(self) -> str | None:
        title = self.metadata.get("main_title")
        return title.strip() if isinstance(title, str) and title.strip() else None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "SlideUpdatePayload":
        slides = raw.get("slides")
        return cls(
            operation=_as_str(raw.get("operation")),
            metadata=_as_mapping(raw.get("metadata")),
            slides=tuple(dict(s) for s in slides if isinstance(s, dict)) if isinstance(slides, list) else (),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"operation": self.operation, "metadata": self.metadata, "slides": list(self.slides)}


@dataclass(frozen=True, slots=True)
class PresentationUrlPayload:
    url: str
    presentation_id: str = ""
    slide_count: int | None = None
    message: str = ""

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "PresentationUrlPayload":
        return cls(
            url=_as_str(raw.get("url")),
            presentation_id=_as_str(raw.get("presentation_id")),
            slide_count=_as_optional_int(raw.get("slide_count")),
            message=_as_str(raw.get("message")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "presentation_id": self.presentation_id,
            "slide_count": self.slide_count,
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class StatusUpdatePayload:
    status: str
    text: str = ""
    progress: float | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "StatusUpdatePayload":
        progress = raw.get("progress")
        if isinstance(progress, bool) or not isinstance(progress, (int, float)):
            progress = None
        return cls(status=_as_str(raw.get("status"), "idle"), text=_as_str(raw.get("text")), progress=progress)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"status": self.status, "text": self.text}
        if self.progress is not None:
            out["progress"] = self.progress
        return out


@dataclass(frozen=True, slots=True)
class OtherPayload:
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return dict(self.data)


EventPayload = Union[
    ChatPayload,
    ActionRequestPayload,
    SlideUpdatePayload,
    PresentationUrlPayload,
    StatusUpdatePayload,
    OtherPayload,
]


def parse_payload(event_type: EventType, raw: Any) -> EventPayload:
    data = _as_mapping(raw)
    match event_type:
        case "chat_message":
            return ChatPayload.from_dict(data)
        case "action_request":
            return ActionRequestPayload.from_dict(data)
        case "slide_update":
            return SlideUpdatePayload.from_dict(data)
        case "presentation_url":
            return PresentationUrlPayload.from_dict(data)
        case "status_update":
            return StatusUpdatePayload.from_dict(data)
        case "other":
            return OtherPayload(data)
        case _:
            assert_never(event_type)


@dataclass(frozen=True, slots=True)
class AgentEvent:
    """One Director event from the live stream or restored history."""

    message_id: str
    session_id: str
    raw_timestamp: str | int | float | None
    type: EventType
    payload: EventPayload
    author_hint: Literal["user"] | None = None
    wire_type: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.message_id, str) or not self.message_id.strip():
            raise ValueError("AgentEvent.message_id must be non-empty.")

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, session_id: str | None = None) -> "AgentEvent":
        """Parse a wire message. Unknown types become `other` and keep their wire name."""
        if not isinstance(raw, dict):
            raise ValueError("AgentEvent payload must be an object.")
        wire_type = _as_str(raw.get("type"))
        event_type: EventType = wire_type if wire_type in _EVENT_TYPES else "other"  # type: ignore[assignment]
        payload = raw.get("payload")
        if event_type == "chat_message" and not isinstance(payload, dict) and isinstance(raw.get("content"), str):
            payload = {"text": raw["content"]}
        return cls(
            message_id=raw.get("message_id") or raw.get("id"),
            session_id=_as_str(raw.get("session_id"), session_id or ""),
            raw_timestamp=raw.get("timestamp"),
            type=event_type,
            payload=parse_payload(event_type, payload),
            author_hint="user" if raw.get("role") == "user" else None,
            wire_type=wire_type if event_type == "other" and wire_type else None,
        )

    @property
    def text(self) -> str | None:
        """User-visible text carried by the event, if its kind has any."""
        match self.type:
            case "chat_message" | "status_update":
                return self.payload.text  # type: ignore[union-attr]
            case "action_request" | "slide_update" | "presentation_url":
                return None
            case "other":
                value = self.payload.to_dict().get("text")
                return value if isinstance(value, str) else None
            case _:
                assert_never(self.type)

    def content_key(self) -> str:
        text = self.text
        if text:
            return normalize_content(text)
        return normalize_content(json.dumps(self.payload.to_dict(), sort_keys=True, ensure_ascii=False))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "message_id": self.message_id,
            "session_id": self.session_id,
            "timestamp": self.raw_timestamp,
            "type": self.wire_type or self.type,
            "payload": self.payload.to_dict(),
        }
        if self.author_hint is not None:
            out["role"] = self.author_hint
        return out


@dataclass(frozen=True, slots=True)
class ClassifiedEvent:
    """A record tagged with its decided origin and canonical timestamp."""

    record: UserMessageRecord | AgentEvent
    origin: Origin
    normalized_timestamp_ms: int | float
    match_method: MatchMethod

    @property
    def record_id(self) -> str:
        if isinstance(self.record, UserMessageRecord):
            return self.record.id
        return self.record.message_id

    @property
    def content_key(self) -> str:
        if isinstance(self.record, UserMessageRecord):
            return normalize_content(self.record.text)
        return self.record.content_key()

    def as_transcript_item(self) -> "UserMessageRecord | AgentEvent":
        """User-origin Director echoes are presented as plain user records."""
        if self.origin == "user" and isinstance(self.record, AgentEvent):
            return UserMessageRecord(
                id=self.record.message_id,
                text=self.record.text or "",
                timestamp_ms=self.normalized_timestamp_ms,
            )
        return self.record


@dataclass(frozen=True, slots=True)
class CompositeRecord:
    """Strawman summary: slide structure, preview link and optional approval prompt."""

    slide_update: AgentEvent
    presentation_url: AgentEvent | None = None
    action_request: AgentEvent | None = None
    kind: Literal["strawman_summary"] = "strawman_summary"

    @property
    def id(self) -> str:
        return f"combined_{self.slide_update.message_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "slide_update": self.slide_update.to_dict(),
            "presentation_url": self.presentation_url.to_dict() if self.presentation_url else None,
            "action_request": self.action_request.to_dict() if self.action_request else None,
        }


TranscriptItem = Union[UserMessageRecord, AgentEvent, CompositeRecord]


def transcript_item_id(item: TranscriptItem) -> str:
    if isinstance(item, UserMessageRecord):
        return item.id
    if isinstance(item, AgentEvent):
        return item.message_id
    return item.id
