"""Conversation model: messages grouped by who is talking."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from chatmail.models.message import Message, as_aware


class Conversation(BaseModel):
    """A participant-based conversation.

    ``messages`` are kept in chronological order. ``participants`` holds the
    lower-cased counterpart addresses the conversation was resolved from; the
    authenticated user is never among them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Resolved conversation id")
    messages: tuple[Message, ...] = Field(default=(), description="Messages, oldest first")
    participants: frozenset[str] = Field(default=frozenset(), description="Counterpart addresses")

    @property
    def is_group(self) -> bool:
        return len(self.participants) > 1

    @property
    def last_message(self) -> Message | None:
        if not self.messages:
            return None
        return max(self.messages, key=lambda m: as_aware(m.date))

    @property
    def last_message_date(self) -> datetime | None:
        last = self.last_message
        return last.date if last is not None else None

    @property
    def unread_count(self) -> int:
        return sum(1 for m in self.messages if not m.is_read)

    @property
    def message_ids(self) -> list[str]:
        return [m.id for m in self.messages]
