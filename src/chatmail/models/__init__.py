"""Data models for chatmail.

This module contains Pydantic models for messages, conversations and sync
bookkeeping.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from chatmail.models.attachments import AttachmentType, attachment_cache_key, sniff_mime_type
from chatmail.models.conversation import Conversation
from chatmail.models.message import AttachmentMetadata, Message, OutgoingAttachment


class SyncState(str, Enum):
    """Phases of a mailbox sync run."""

    IDLE = "idle"
    LISTING_THREADS = "listing_threads"
    FETCHING_BATCHES = "fetching_batches"
    DONE = "done"
    ERROR = "error"


class SyncProgress(BaseModel):
    """Progress update emitted while a sync runs."""

    state: SyncState = Field(description="Current sync phase")
    fraction: float = Field(default=0.0, ge=0.0, le=1.0, description="Share of batches completed")
    detail: str = Field(default="", description="Human readable progress text")
    threads_found: int = Field(default=0, description="Server thread ids listed so far")


class SyncReport(BaseModel):
    """Outcome of a sync run."""

    state: SyncState = Field(description="Terminal state reached")
    threads_listed: int = Field(default=0, description="Server thread ids listed")
    threads_fetched: int = Field(default=0, description="Server threads fetched and merged")
    failed_thread_ids: list[str] = Field(
        default_factory=list,
        description="Server threads skipped because their fetch failed",
    )
    conversations: int = Field(default=0, description="Conversations after the run")
    error: Optional[str] = Field(default=None, description="Error message if the run failed")
    rejected: bool = Field(
        default=False,
        description="True when the run was refused because another sync was in flight",
    )


class ReplyDraft(BaseModel):
    """Resolved recipients and subject for a reply."""

    to: str = Field(description="Comma-joined To recipients")
    cc: Optional[str] = Field(default=None, description="Comma-joined Cc recipients")
    subject: str = Field(description="Reply subject")


__all__ = [
    "AttachmentMetadata",
    "AttachmentType",
    "Conversation",
    "Message",
    "OutgoingAttachment",
    "ReplyDraft",
    "SyncProgress",
    "SyncReport",
    "SyncState",
    "attachment_cache_key",
    "sniff_mime_type",
]
