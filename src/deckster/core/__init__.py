"""Core transcript reconciliation for the Deckster builder client."""

from .agent_types import (
    AgentEvent,
    ClassifiedEvent,
    CompositeRecord,
    TranscriptItem,
    UserMessageRecord,
    normalize_content,
    parse_payload,
    transcript_item_id,
)
from .answered_actions import AnsweredActionTracker
from .builder_session import BuilderSession, generate_title
from .classification import classify_all, classify_event, classify_user_record
from .config_loader import (
    clear_config_cache,
    get_logging_level,
    get_persistence_config,
    get_session_cache_config,
    get_welcome_phrases,
    load_config,
    resolve_config_path,
)
from .deduplication import deduplicate, drop_id_collisions
from .grouping import assemble_groups
from .logging_setup import get_logger, setup_logging
from .message_db_queue import MessageDbQueue
from .message_store import MessageStore
from .ordering import sort_chronologically
from .persistence_queue import PersistenceQueue
from .reconciliation_context import ReconciliationContext
from .session_store import (
    cleanup_session_caches_older_than,
    clear_all_session_caches,
    clear_session_cache,
    load_cached_user_messages,
    session_cache_path,
    write_cached_user_messages,
)
from .timestamps import normalize_timestamp, parse_iso_utc, to_iso_utc
from .transcript import reconcile_transcript, transcript_ids, transcript_to_dicts
from .transport import OutboxTransport, Transport
from .welcome_filter import filter_welcome_messages, is_welcome_message

__all__ = [
    "AgentEvent",
    "AnsweredActionTracker",
    "BuilderSession",
    "ClassifiedEvent",
    "CompositeRecord",
    "MessageDbQueue",
    "MessageStore",
    "OutboxTransport",
    "PersistenceQueue",
    "ReconciliationContext",
    "TranscriptItem",
    "Transport",
    "UserMessageRecord",
    "assemble_groups",
    "classify_all",
    "classify_event",
    "classify_user_record",
    "cleanup_session_caches_older_than",
    "clear_all_session_caches",
    "clear_config_cache",
    "clear_session_cache",
    "deduplicate",
    "drop_id_collisions",
    "filter_welcome_messages",
    "generate_title",
    "get_logger",
    "get_logging_level",
    "get_persistence_config",
    "get_session_cache_config",
    "get_welcome_phrases",
    "is_welcome_message",
    "load_cached_user_messages",
    "load_config",
    "normalize_content",
    "normalize_timestamp",
    "parse_iso_utc",
    "parse_payload",
    "reconcile_transcript",
    "resolve_config_path",
    "session_cache_path",
    "setup_logging",
    "sort_chronologically",
    "to_iso_utc",
    "transcript_ids",
    "transcript_item_id",
    "transcript_to_dicts",
    "write_cached_user_messages",
]
