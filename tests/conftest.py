"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import pytest

from chatmail.exceptions import GmailAPIError
from chatmail.models import Message, OutgoingAttachment

USER_EMAIL = "me@x.com"


def build_message(
    id: str,
    from_address: str,
    to: str,
    ts: int,
    *,
    cc: str | None = None,
    bcc: str | None = None,
    sender: str = "",
    thread_id: str = "t1",
    subject: str = "Hello",
    body: str = "",
    is_read: bool = True,
) -> Message:
    return Message(
        id=id,
        thread_id=thread_id,
        sender=sender or from_address,
        from_address=from_address,
        to=to,
        cc=cc,
        bcc=bcc,
        subject=subject,
        body=body,
        snippet=body[:100],
        date=datetime.fromtimestamp(ts, tz=timezone.utc),
        is_read=is_read,
        label_ids=() if is_read else ("UNREAD",),
    )


class FakeTransport:
    """In-memory ``MailTransport`` recording every call."""

    def __init__(
        self,
        pages: Sequence[Sequence[str]] = (),
        threads: dict[str, list[Message]] | None = None,
    ) -> None:
        self.pages = [list(p) for p in pages]
        self.threads = dict(threads or {})
        self.failing_threads: set[str] = set()
        self.failing_actions: set[str] = set()
        self.list_error: Exception | None = None
        self.send_error: Exception | None = None
        self.sent_copies: list[Message] = []

        self.list_calls: list[str | None] = []
        self.queries: list[str | None] = []
        self.sent: list[dict] = []
        self.archived: list[str] = []
        self.deleted: list[str] = []
        self.marked_read: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_thread_ids(self, page_token: str | None = None, max_results: int = 100):
        self.list_calls.append(page_token)
        if self.list_error is not None:
            raise self.list_error
        index = int(page_token) if page_token else 0
        ids = self.pages[index] if index < len(self.pages) else []
        next_token = str(index + 1) if index + 1 < len(self.pages) else None
        return list(ids), next_token

    async def get_thread_messages(self, thread_id: str) -> list[Message]:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if thread_id in self.failing_threads:
                raise GmailAPIError(f"thread {thread_id} unavailable")
            return list(self.threads[thread_id])
        finally:
            self.in_flight -= 1

    async def list_message_ids(self, query=None, max_results: int = 50, page_token=None):
        self.queries.append(query)
        return [m.id for m in self.sent_copies][:max_results], None

    async def get_message(self, message_id: str) -> Message:
        for message in self.sent_copies:
            if message.id == message_id:
                return message
        raise GmailAPIError(f"message {message_id} not found")

    async def send_raw_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        attachments: Sequence[OutgoingAttachment] = (),
    ) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(
            {"to": to, "cc": cc, "subject": subject, "body": body, "attachments": list(attachments)}
        )

    async def mark_read(self, message_id: str) -> None:
        self._act(message_id, self.marked_read)

    async def archive(self, message_id: str) -> None:
        self._act(message_id, self.archived)

    async def delete(self, message_id: str) -> None:
        self._act(message_id, self.deleted)

    def _act(self, message_id: str, log: list[str]) -> None:
        if message_id in self.failing_actions:
            raise GmailAPIError(f"action on {message_id} failed")
        log.append(message_id)


@pytest.fixture
def user_email() -> str:
    return USER_EMAIL


@pytest.fixture
def make_message() -> Callable[..., Message]:
    """Factory for messages with a unix timestamp."""
    return build_message


@pytest.fixture
def test_settings():
    """Settings with pacing delays disabled."""
    from chatmail.config import Settings

    return Settings(
        user_email=USER_EMAIL,
        page_delay_seconds=0,
        send_echo_delay_seconds=0,
        retry_delay_seconds=0,
        fetch_batch_size=10,
        publish_every_batches=5,
        log_level="DEBUG",
    )


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sample_gmail_message() -> dict:
    """Provide a Gmail API message resource (format=full)."""
    return {
        "id": "msg123456",
        "threadId": "thread789",
        "labelIds": ["INBOX", "UNREAD"],
        "snippet": "Are we still on for lunch?",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "Subject", "value": "Lunch"},
                {"name": "From", "value": "Bob Smith <bob@y.com>"},
                {"name": "To", "value": "me@x.com"},
                {"name": "Cc", "value": "Alice <alice@z.com>"},
                {"name": "Date", "value": "Tue, 14 Nov 2023 22:13:20 +0000"},
            ],
            "parts": [
                {
                    "mimeType": "multipart/alternative",
                    "parts": [
                        {
                            "mimeType": "text/plain",
                            # "Are we still on for lunch?\n"
                            "body": {"data": "QXJlIHdlIHN0aWxsIG9uIGZvciBsdW5jaD8K"},
                        },
                        {
                            "mimeType": "text/html",
                            "body": {"data": "PHA-QXJlIHdlIHN0aWxsIG9uIGZvciBsdW5jaD88L3A-"},
                        },
                    ],
                },
                {
                    "mimeType": "application/pdf",
                    "filename": "menu.pdf",
                    "body": {"attachmentId": "att-1", "size": 2048},
                },
            ],
        },
    }


@pytest.fixture
def seeded_transport() -> Callable[..., FakeTransport]:
    """Factory for a transport with one single-message thread per counterpart."""

    def _build(thread_count: int, page_size: int = 100) -> FakeTransport:
        ids = [f"T{i}" for i in range(thread_count)]
        pages = [ids[i : i + page_size] for i in range(0, thread_count, page_size)]
        threads = {
            thread_id: [build_message(f"m{i}", f"user{i}@y.com", USER_EMAIL, 1000 + i, thread_id=thread_id)]
            for i, thread_id in enumerate(ids)
        }
        return FakeTransport(pages=pages, threads=threads)

    return _build
