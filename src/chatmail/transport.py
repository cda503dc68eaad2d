"""Interface the conversation engine expects from a mail server client.

``chatmail.gmail.client.GmailClient`` is the production implementation;
tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from chatmail.models import Message, OutgoingAttachment


class MailTransport(Protocol):
    """Remote mailbox operations used by the sync and action paths.

    Every method may raise ``AuthenticationError`` or ``TransportError``.
    """

    async def list_thread_ids(
        self,
        page_token: str | None = None,
        max_results: int = 100,
    ) -> tuple[list[str], str | None]:
        """Return one page of server thread ids and the next page token."""
        ...

    async def get_thread_messages(self, thread_id: str) -> list[Message]:
        """Return every message of a server thread."""
        ...

    async def list_message_ids(
        self,
        query: str | None = None,
        max_results: int = 50,
        page_token: str | None = None,
    ) -> tuple[list[str], str | None]:
        """Return one page of message ids matching ``query``."""
        ...

    async def get_message(self, message_id: str) -> Message:
        """Return a single message."""
        ...

    async def send_raw_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        attachments: Sequence[OutgoingAttachment] = (),
    ) -> None:
        """Build and send a message."""
        ...

    async def mark_read(self, message_id: str) -> None:
        ...

    async def archive(self, message_id: str) -> None:
        ...

    async def delete(self, message_id: str) -> None:
        ...
