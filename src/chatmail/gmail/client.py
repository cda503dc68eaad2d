"""Gmail API client implementation.

This module provides the production ``MailTransport``: thread listing, thread
and message retrieval, sending, and per-message label changes.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, TypeVar

import structlog
from googleapiclient.errors import HttpError

from chatmail.config import Settings
from chatmail.exceptions import (
    AuthenticationError,
    ChatmailError,
    ConfigurationError,
    GmailAPIError,
    ValidationError,
)
from chatmail.gmail.mime import build_mime_message, encode_raw
from chatmail.gmail.parsing import ids_from_list, message_from_gmail, messages_from_thread
from chatmail.models import Message, OutgoingAttachment
from chatmail.utils import retry_on_failure

logger = structlog.get_logger()

T = TypeVar("T")

_RETRYABLE_STATUSES = (429, 500, 503)
_AUTH_STATUSES = (401, 403)


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in _RETRYABLE_STATUSES


class GmailClient:
    """Gmail API client for mailbox operations.

    This client handles authentication, thread and message retrieval,
    sending, and label modifications.
    """

    def __init__(self, settings: Settings | None = None, service: Any | None = None) -> None:
        """Initialize Gmail client.

        Args:
            settings: Application settings. If None, uses default settings.
            service: Prebuilt Gmail API service. When given, ``authenticate``
                only resolves the user's address.
        """
        from chatmail.config import get_settings

        self.settings = settings or get_settings()
        self._service: Any | None = service
        self._user_email: str | None = self.settings.user_email
        self._execute = retry_on_failure(
            max_retries=self.settings.max_retries,
            delay=self.settings.retry_delay_seconds,
            retry_if=_is_retryable_http_error,
        )(self._execute_request)
        logger.info("gmail_client_initialized")

    @property
    def user_email(self) -> str:
        """Address of the authenticated user."""
        if not self._user_email:
            raise AuthenticationError(
                "User address is unknown. Call await GmailClient.authenticate() first."
            )
        return self._user_email

    async def authenticate(self) -> None:
        """Authenticate with Gmail API using OAuth2.

        Raises:
            ConfigurationError: If the credentials file is missing.
            AuthenticationError: If authentication fails.
        """

        if self._service is None:
            credentials_path = Path(self.settings.gmail_credentials_path)
            token_path = Path(self.settings.gmail_token_path)
            scope = self.settings.gmail_scope

            if not credentials_path.exists():
                raise ConfigurationError(
                    f"Gmail credentials file not found: {credentials_path}. "
                    "Download an OAuth client file from Google Cloud Console or set "
                    "CHATMAIL_GMAIL_CREDENTIALS_PATH."
                )

            logger.info(
                "gmail_authentication_started",
                credentials_path=str(credentials_path),
                token_path=str(token_path),
                scope=scope,
            )

            try:
                self._service = await asyncio.to_thread(
                    self._build_service,
                    credentials_path,
                    token_path,
                    scope,
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception("gmail_authentication_failed", error=str(exc))
                raise AuthenticationError(str(exc)) from exc

            logger.info("gmail_authentication_completed")

        if not self._user_email:
            profile = await self._call("get_profile", self._get_profile_sync)
            self._user_email = str(profile.get("emailAddress") or "")
            logger.info("gmail_profile_loaded", user_email=self._user_email)

    async def list_thread_ids(
        self,
        page_token: str | None = None,
        max_results: int = 100,
    ) -> tuple[list[str], str | None]:
        """List one page of thread ids.

        Args:
            page_token: Token returned by the previous page, if any.
            max_results: Page size.

        Returns:
            Thread ids and the next page token (None on the last page).

        Raises:
            GmailAPIError: If the API request fails.
            DecodingError: If the listing payload is malformed.
        """

        logger.debug("listing_threads", max_results=max_results, page_token=page_token)
        response = await self._call(
            "list_threads",
            self._list_sync,
            "threads",
            max_results,
            page_token,
            None,
        )
        return ids_from_list(response, "threads")

    async def get_thread_messages(self, thread_id: str) -> list[Message]:
        """Get every message of a thread.

        Raises:
            GmailAPIError: If the API request fails.
            DecodingError: If the thread payload is malformed.
        """

        logger.debug("getting_thread", thread_id=thread_id)
        thread = await self._call("get_thread", self._get_sync, "threads", thread_id)
        return messages_from_thread(thread)

    async def list_message_ids(
        self,
        query: str | None = None,
        max_results: int = 50,
        page_token: str | None = None,
    ) -> tuple[list[str], str | None]:
        """List one page of message ids matching a Gmail search query."""

        logger.debug("listing_messages", max_results=max_results, query=query)
        response = await self._call(
            "list_messages",
            self._list_sync,
            "messages",
            max_results,
            page_token,
            query,
        )
        return ids_from_list(response, "messages")

    async def get_message(self, message_id: str) -> Message:
        """Get a specific message by ID.

        Args:
            message_id: The Gmail message ID.

        Returns:
            The parsed message.

        Raises:
            GmailAPIError: If the API request fails.
        """

        logger.debug("getting_message", message_id=message_id)
        raw = await self._call("get_message", self._get_sync, "messages", message_id)
        return message_from_gmail(raw)

    async def send_raw_message(
        self,
        to: str,
        subject: str,
        body: str,
        cc: str | None = None,
        attachments: Sequence[OutgoingAttachment] = (),
    ) -> None:
        """Send a message as the authenticated user.

        Raises:
            ValidationError: If the attachments exceed the size limit.
            GmailAPIError: If the API request fails.
        """

        total_size = sum(a.size for a in attachments)
        if total_size > self.settings.max_attachment_bytes:
            raise ValidationError(
                f"Attachments total {total_size} bytes; the limit is "
                f"{self.settings.max_attachment_bytes} bytes"
            )

        mime = build_mime_message(
            sender=self._user_email or "",
            to=to,
            subject=subject,
            body=body,
            cc=cc,
            attachments=attachments,
        )
        logger.info("sending_message", to=to, cc=cc, attachments=len(attachments))
        await self._call("send_message", self._send_sync, encode_raw(mime))

    async def mark_read(self, message_id: str) -> None:
        await self._call("mark_read", self._modify_sync, message_id, ["UNREAD"])

    async def archive(self, message_id: str) -> None:
        await self._call("archive", self._modify_sync, message_id, ["INBOX"])

    async def delete(self, message_id: str) -> None:
        """Move a message to the trash."""
        await self._call("trash", self._trash_sync, message_id)

    async def get_attachment(self, message_id: str, attachment_id: str) -> bytes:
        """Download the bytes of a message attachment."""
        response = await self._call(
            "get_attachment",
            self._get_attachment_sync,
            message_id,
            attachment_id,
        )
        data = response.get("data") or ""
        return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    async def _call(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        await self._ensure_authenticated()
        try:
            return await asyncio.to_thread(func, *args)
        except HttpError as exc:
            status = exc.resp.status
            logger.error("gmail_request_failed", operation=operation, status=status, error=str(exc))
            if status in _AUTH_STATUSES:
                raise AuthenticationError(str(exc)) from exc
            raise GmailAPIError(str(exc)) from exc
        except ChatmailError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_request_failed", operation=operation, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    def _build_service(self, credentials_path: Path, token_path: Path, scope: str) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from google.auth.transport.requests import Request
        from google.oauth2.credentials import Credentials
        from google_auth_oauthlib.flow import InstalledAppFlow
        from googleapiclient.discovery import build

        creds: Credentials | None = None
        if token_path.exists():
            creds = Credentials.from_authorized_user_file(str(token_path), scopes=[scope])

        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())

        if creds is None or not creds.valid:
            flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[scope])
            creds = flow.run_local_server(port=0)
            token_path.parent.mkdir(parents=True, exist_ok=True)
            token_path.write_text(creds.to_json(), encoding="utf-8")

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=creds, cache_discovery=False)

    def _execute_request(self, request: Any) -> Any:
        return request.execute()

    def _users(self) -> Any:
        assert self._service is not None
        return self._service.users()

    def _get_profile_sync(self) -> dict[str, Any]:
        return self._execute(self._users().getProfile(userId=self.settings.gmail_user_id))

    def _list_sync(
        self,
        resource: str,
        max_results: int,
        page_token: str | None,
        query: str | None,
    ) -> dict[str, Any]:
        collection = getattr(self._users(), resource)()
        kwargs: dict[str, Any] = {"userId": self.settings.gmail_user_id, "maxResults": max_results}
        if page_token:
            kwargs["pageToken"] = page_token
        if query:
            kwargs["q"] = query
        return self._execute(collection.list(**kwargs))

    def _get_sync(self, resource: str, item_id: str) -> dict[str, Any]:
        collection = getattr(self._users(), resource)()
        request = collection.get(userId=self.settings.gmail_user_id, id=item_id, format="full")
        return self._execute(request)

    def _send_sync(self, raw: str) -> dict[str, Any]:
        # Not retried: a send that timed out may still have been delivered.
        request = self._users().messages().send(userId=self.settings.gmail_user_id, body={"raw": raw})
        return request.execute()

    def _modify_sync(self, message_id: str, remove_label_ids: list[str]) -> dict[str, Any]:
        request = self._users().messages().modify(
            userId=self.settings.gmail_user_id,
            id=message_id,
            body={"removeLabelIds": remove_label_ids},
        )
        return self._execute(request)

    def _trash_sync(self, message_id: str) -> dict[str, Any]:
        request = self._users().messages().trash(userId=self.settings.gmail_user_id, id=message_id)
        return self._execute(request)

    def _get_attachment_sync(self, message_id: str, attachment_id: str) -> dict[str, Any]:
        request = (
            self._users()
            .messages()
            .attachments()
            .get(userId=self.settings.gmail_user_id, messageId=message_id, id=attachment_id)
        )
        return self._execute(request)
