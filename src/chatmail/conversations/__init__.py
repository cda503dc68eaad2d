"""Conversation reconciliation.

This package turns Gmail's server threads into participant-based
conversations: address parsing, participant extraction, identity resolution,
idempotent merging, sync orchestration, reply targeting and body cleanup.
"""

from .addresses import extract_address, extract_display_name, split_address_list
from .identity import resolve_thread_id
from .participants import display_participants, extract_participants
from .reply import resolve_reply
from .sanitizer import clean_body
from .store import MessageStore
from .sync import SyncOrchestrator

__all__ = [
    "MessageStore",
    "SyncOrchestrator",
    "clean_body",
    "display_participants",
    "extract_address",
    "extract_display_name",
    "extract_participants",
    "resolve_reply",
    "resolve_thread_id",
    "split_address_list",
]
