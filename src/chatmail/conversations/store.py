"""In-memory conversation store and merge engine.

Batches of messages fetched from arbitrary Gmail threads are folded into
participant-based conversations. Merging is idempotent: ingesting the same
batch again leaves the store unchanged.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone

import structlog

from chatmail.conversations.identity import is_group, resolve_thread_id
from chatmail.conversations.participants import extract_participants
from chatmail.models import Conversation, Message
from chatmail.models.message import as_aware

logger = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def merge_messages(existing: Iterable[Message], incoming: Iterable[Message]) -> tuple[Message, ...]:
    """Union two message collections by id, oldest first.

    When both sides carry the same id the incoming copy wins.
    """
    by_id: dict[str, Message] = {}
    for message in existing:
        by_id[message.id] = message
    for message in incoming:
        by_id[message.id] = message
    return tuple(sorted(by_id.values(), key=lambda m: _as_aware(m.date)))


def sort_conversations(conversations: Iterable[Conversation]) -> list[Conversation]:
    """Most recently active first; ties ordered by id for repeatable output."""
    populated = [c for c in conversations if c.messages]
    return sorted(
        populated,
        key=lambda c: (_as_aware(c.last_message_date), c.id),
        reverse=True,
    )


def _as_aware(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    return as_aware(value)


class MessageStore:
    """Mapping of resolved conversation id to conversation.

    All mutation goes through a single lock so that merges coming from
    different tasks or threads are applied one at a time.
    """

    def __init__(self, user_email: str) -> None:
        """Create an empty store.

        Args:
            user_email: Address of the authenticated user; never treated as a
                participant.
        """

        self.user_email = user_email
        self._conversations: dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def ingest(self, server_thread_id: str, messages: Sequence[Message]) -> Conversation | None:
        """Merge a batch of messages fetched from one server thread.

        Args:
            server_thread_id: Gmail thread the batch came from. Only used for
                logging; the conversation id is derived from participants.
            messages: Messages of the batch. An empty batch is ignored.

        Returns:
            The merged conversation, or None for an empty batch.
        """

        if not messages:
            logger.debug("ingest_empty_batch_ignored", server_thread_id=server_thread_id)
            return None

        participants = extract_participants(messages, self.user_email)

        with self._lock:
            if participants:
                conversation_id = resolve_thread_id(participants, is_group(participants))
            else:
                # Notes to self get a random id; reuse the one already holding these messages.
                conversation_id = self._find_holding(messages) or resolve_thread_id(participants, False)

            existing = self._conversations.get(conversation_id)
            if existing is not None:
                merged = merge_messages(existing.messages, messages)
                members = existing.participants | participants
            else:
                merged = merge_messages((), messages)
                members = frozenset(participants)

            conversation = Conversation(id=conversation_id, messages=merged, participants=members)
            self._conversations[conversation_id] = conversation

        logger.debug(
            "conversation_merged",
            server_thread_id=server_thread_id,
            conversation_id=conversation_id,
            batch_size=len(messages),
            message_count=len(merged),
            created=existing is None,
        )
        return conversation

    def snapshot(self) -> list[Conversation]:
        """All conversations, most recently active first."""
        with self._lock:
            conversations = list(self._conversations.values())
        return sort_conversations(conversations)

    def get(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            return self._conversations.get(conversation_id)

    def remove(self, conversation_id: str) -> Conversation | None:
        with self._lock:
            return self._conversations.pop(conversation_id, None)

    def mark_read(self, conversation_id: str, message_ids: Iterable[str]) -> Conversation | None:
        """Replace the given messages of a conversation with read copies."""
        targets = set(message_ids)
        with self._lock:
            existing = self._conversations.get(conversation_id)
            if existing is None:
                return None
            messages = tuple(m.as_read() if m.id in targets else m for m in existing.messages)
            updated = existing.model_copy(update={"messages": messages})
            self._conversations[conversation_id] = updated
        return updated

    def clear(self) -> None:
        with self._lock:
            self._conversations.clear()

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def _find_holding(self, messages: Sequence[Message]) -> str | None:
        ids = {m.id for m in messages}
        for conversation in self._conversations.values():
            if not conversation.participants and any(m.id in ids for m in conversation.messages):
                return conversation.id
        return None
