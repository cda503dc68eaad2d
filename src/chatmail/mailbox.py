"""Mailbox service: the entry point used by presentation layers.

A ``Mailbox`` owns the conversation store for one authenticated user. It runs
syncs, sends messages and applies conversation-wide actions, and publishes a
fresh sorted conversation snapshot to subscribers after every change.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone

import structlog

from chatmail.config import Settings
from chatmail.conversations.addresses import normalize_address, split_address_list
from chatmail.conversations.reply import resolve_reply
from chatmail.conversations.store import MessageStore
from chatmail.conversations.sync import ProgressCallback, SyncOrchestrator
from chatmail.exceptions import ChatmailError
from chatmail.models import (
    AttachmentMetadata,
    Conversation,
    Message,
    OutgoingAttachment,
    SyncProgress,
    SyncReport,
    SyncState,
)
from chatmail.transport import MailTransport

logger = structlog.get_logger()

SnapshotListener = Callable[[list[Conversation]], None]

_SNIPPET_LENGTH = 100


class Mailbox:
    """Conversation view of one user's mailbox.

    Construct one per authenticated user and pass it to whatever needs it;
    tests build a fresh instance around a fake transport.
    """

    def __init__(
        self,
        transport: MailTransport,
        user_email: str,
        settings: Settings | None = None,
        store: MessageStore | None = None,
    ) -> None:
        """Initialize the mailbox.

        Args:
            transport: Client for the remote mailbox.
            user_email: Address of the authenticated user.
            settings: Application settings. If None, uses default settings.
            store: Existing store to start from. If None, starts empty.
        """
        from chatmail.config import get_settings

        self.transport = transport
        self.user_email = user_email
        self.settings = settings or get_settings()
        self.progress = SyncProgress(state=SyncState.IDLE)

        self._store = store if store is not None else MessageStore(user_email)
        self._staging: MessageStore | None = None
        self._orchestrator = SyncOrchestrator(transport, self.settings)
        self._threads: list[Conversation] = self._store.snapshot()
        self._listeners: list[SnapshotListener] = []

        logger.info("mailbox_initialized", user_email=user_email)

    @property
    def threads(self) -> list[Conversation]:
        """Latest published conversations, most recently active first."""
        return list(self._threads)

    @property
    def is_loading(self) -> bool:
        return self._orchestrator.is_running

    def subscribe(self, listener: SnapshotListener) -> None:
        """Call ``listener`` with every newly published snapshot."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def get(self, conversation_id: str) -> Conversation | None:
        return self._store.get(conversation_id)

    async def load_messages(self, on_progress: ProgressCallback | None = None) -> SyncReport:
        """Rebuild every conversation from the server.

        The run fills a fresh store which replaces the current one only when
        the run completes, so a failed sync leaves the loaded conversations in
        place. A call made while another sync is running is rejected.
        """

        if self._orchestrator.is_running:
            logger.warning("load_messages_rejected", reason="sync_in_progress")
            return SyncReport(state=self._orchestrator.state, rejected=True)

        def _progress(progress: SyncProgress) -> None:
            self.progress = progress
            if on_progress is not None:
                on_progress(progress)

        staging = MessageStore(self.user_email)
        self._staging = staging
        try:
            report = await self._orchestrator.run(staging, on_progress=_progress, on_publish=self._publish)
        finally:
            self._staging = None

        if report.state is SyncState.DONE:
            self._store = staging
            self._publish(staging.snapshot())

        return report

    async def send_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        attachments: Sequence[OutgoingAttachment] = (),
        in_reply_to: str | None = None,
    ) -> Message | None:
        """Send a message and fold the sent copy into its conversation.

        Returns:
            The sent message, or None if sending failed. A failed send is
            never retried automatically.
        """

        try:
            await self.transport.send_raw_message(to, subject, body, cc=cc, attachments=attachments)
        except ChatmailError as exc:
            logger.error("send_message_failed", to=to, error=str(exc), error_type=type(exc).__name__)
            return None

        if self.settings.send_echo_delay_seconds > 0:
            await asyncio.sleep(self.settings.send_echo_delay_seconds)

        sent = await self._fetch_sent_copy(to)
        if sent is None:
            sent = self._local_copy(to, cc, subject, body, attachments, in_reply_to)

        conversation = None
        for store in self._stores():
            conversation = store.ingest(sent.thread_id, [sent])
        self._publish(self._store.snapshot())

        logger.info(
            "message_sent",
            message_id=sent.id,
            conversation_id=conversation.id if conversation else None,
        )
        return sent

    async def reply(
        self,
        conversation: Conversation,
        text: str,
        attachments: Sequence[OutgoingAttachment] = (),
    ) -> Message | None:
        """Reply to everyone in ``conversation``.

        Blank text without attachments is ignored and returns None.
        """

        if not text.strip() and not attachments:
            return None

        draft = resolve_reply(conversation, self.user_email)
        if draft is None:
            return None

        return await self.send_message(
            draft.to,
            draft.subject,
            text,
            cc=draft.cc,
            attachments=attachments,
            in_reply_to=conversation.id,
        )

    async def archive_thread(self, conversation: Conversation) -> int:
        """Archive every message of a conversation and drop it from the list.

        Returns:
            Number of messages archived on the server.
        """

        archived = 0
        for message in conversation.messages:
            try:
                await self.transport.archive(message.id)
                archived += 1
            except ChatmailError as exc:
                logger.warning("archive_message_failed", message_id=message.id, error=str(exc))

        self._remove(conversation.id)
        logger.info("conversation_archived", conversation_id=conversation.id, archived=archived)
        return archived

    async def delete_threads(self, conversations: Iterable[Conversation]) -> int:
        """Move every message of the selected conversations to the trash.

        Returns:
            Number of messages trashed on the server.
        """

        deleted = 0
        for conversation in conversations:
            for message in conversation.messages:
                try:
                    await self.transport.delete(message.id)
                    deleted += 1
                except ChatmailError as exc:
                    logger.warning("delete_message_failed", message_id=message.id, error=str(exc))
            self._remove(conversation.id)
            logger.info("conversation_deleted", conversation_id=conversation.id)

        return deleted

    async def mark_thread_as_read(self, conversation: Conversation) -> int:
        """Mark the unread messages of a conversation as read.

        Only messages the server accepted are flipped locally.

        Returns:
            Number of messages marked as read.
        """

        marked: list[str] = []
        for message in conversation.messages:
            if message.is_read:
                continue
            try:
                await self.transport.mark_read(message.id)
                marked.append(message.id)
            except ChatmailError as exc:
                logger.warning("mark_read_failed", message_id=message.id, error=str(exc))

        if marked:
            for store in self._stores():
                store.mark_read(conversation.id, marked)
            self._publish(self._store.snapshot())

        return len(marked)

    def _stores(self) -> list[MessageStore]:
        # Local changes made during a sync must survive the store swap at its end.
        if self._staging is not None:
            return [self._store, self._staging]
        return [self._store]

    def _remove(self, conversation_id: str) -> None:
        for store in self._stores():
            store.remove(conversation_id)
        self._publish(self._store.snapshot())

    def _publish(self, snapshot: list[Conversation]) -> None:
        self._threads = snapshot
        for listener in list(self._listeners):
            listener(snapshot)

    async def _fetch_sent_copy(self, to: str) -> Message | None:
        recipients = split_address_list(to)
        if not recipients:
            return None

        query = f"in:sent to:{normalize_address(recipients[0])}"
        try:
            ids, _ = await self.transport.list_message_ids(query=query, max_results=1)
            if not ids:
                return None
            return await self.transport.get_message(ids[0])
        except ChatmailError as exc:
            logger.warning("sent_copy_lookup_failed", query=query, error=str(exc))
            return None

    def _local_copy(
        self,
        to: str,
        cc: str | None,
        subject: str,
        body: str,
        attachments: Sequence[OutgoingAttachment],
        in_reply_to: str | None,
    ) -> Message:
        return Message(
            id=str(uuid.uuid4()),
            thread_id=in_reply_to or str(uuid.uuid4()),
            sender=self.user_email or "Me",
            from_address=self.user_email,
            to=to,
            cc=cc,
            subject=subject,
            body=body,
            snippet=body[:_SNIPPET_LENGTH],
            date=datetime.now(timezone.utc),
            is_read=True,
            label_ids=("SENT",),
            attachments=tuple(
                AttachmentMetadata(filename=a.filename, mime_type=a.mime_type, size=a.size)
                for a in attachments
            ),
        )
