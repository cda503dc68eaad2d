"""Message and attachment records.

Messages are immutable once built from a server payload. Two messages are
the same message when their ids match, regardless of any other field, so a
re-fetched copy of a message replaces rather than duplicates the original.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from chatmail.models.attachments import AttachmentType


def as_aware(value: datetime) -> datetime:
    """Treat a naive timestamp as UTC so it orders against aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AttachmentMetadata(BaseModel):
    """Describes an attachment on a received message without its bytes."""

    model_config = ConfigDict(frozen=True)

    filename: str = Field(description="Attachment file name")
    mime_type: str = Field(default="application/octet-stream", description="Declared MIME type")
    size: int | None = Field(default=None, description="Declared size in bytes")
    attachment_id: str | None = Field(
        default=None,
        description="Gmail attachment id; absent for inline parts that cannot be fetched",
    )

    @property
    def type(self) -> AttachmentType:
        return AttachmentType.from_mime_type(self.mime_type)

    @property
    def is_fetchable(self) -> bool:
        return self.attachment_id is not None


class OutgoingAttachment(BaseModel):
    """A file to be sent with a new message."""

    model_config = ConfigDict(frozen=True)

    filename: str
    mime_type: str = "application/octet-stream"
    data: bytes = b""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def type(self) -> AttachmentType:
        return AttachmentType.classify(self.mime_type, self.data)


class Message(BaseModel):
    """A single email message as seen by the conversation engine."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Gmail message ID")
    thread_id: str = Field(default="", description="Gmail thread ID")

    # Keep both the display name and the parsed address of the sender.
    sender: str = Field(default="", description="Sender display name")
    from_address: str = Field(default="", description="Parsed sender email address")

    to: str = Field(default="", description="Raw To header")
    cc: str | None = Field(default=None, description="Raw Cc header")
    bcc: str | None = Field(default=None, description="Raw Bcc header")

    subject: str = Field(default="", description="Subject header")
    body: str = Field(default="", description="Decoded plain-text body")
    snippet: str = Field(default="", description="Server-provided preview text")
    date: datetime = Field(description="Message timestamp")

    is_read: bool = Field(default=True, description="Whether the message has been read")
    label_ids: tuple[str, ...] = Field(default=(), description="Gmail label IDs")
    attachments: tuple[AttachmentMetadata, ...] = Field(default=(), description="Attachment metadata")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def is_from(self, user_email: str) -> bool:
        """Return True when the message was authored by ``user_email``."""
        return bool(user_email) and self.from_address.lower() == user_email.lower()

    def as_read(self) -> Message:
        """Return a copy of this message flagged as read."""
        labels = tuple(label for label in self.label_ids if label != "UNREAD")
        return self.model_copy(update={"is_read": True, "label_ids": labels})
