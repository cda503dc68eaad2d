"""Helpers for parsing Gmail API message payloads into internal models."""

from __future__ import annotations

import base64
import binascii
import re
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from chatmail.conversations.addresses import extract_address
from chatmail.exceptions import DecodingError
from chatmail.models import AttachmentMetadata, Message

_BLANK_RUN_RE = re.compile(r"\n{3,}")


def _header_map(payload: dict[str, Any]) -> dict[str, str]:
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def decode_base64url(data: str) -> str:
    """Decode Gmail's unpadded base64url body data as UTF-8 text."""
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii", errors="ignore"))
    except (binascii.Error, ValueError):
        return ""
    return raw.decode("utf-8", errors="replace")


def html_to_text(html: str) -> str:
    """Flatten an HTML body to plain text, keeping line and paragraph breaks."""
    soup = BeautifulSoup(html, "html.parser")
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for block in soup.find_all(["p", "div"]):
        block.append("\n")
    text = soup.get_text()
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def _walk_parts(part: dict[str, Any]) -> list[dict[str, Any]]:
    found = [part]
    for child in part.get("parts") or []:
        if isinstance(child, dict):
            found.extend(_walk_parts(child))
    return found


def _extract_body(payload: dict[str, Any]) -> str:
    parts = _walk_parts(payload)

    for part in parts:
        mime = (part.get("mimeType") or "").lower()
        data = (part.get("body") or {}).get("data")
        if data and mime.startswith("text/plain") and not part.get("filename"):
            return decode_base64url(data)

    for part in parts:
        mime = (part.get("mimeType") or "").lower()
        data = (part.get("body") or {}).get("data")
        if data and mime.startswith("text/html") and not part.get("filename"):
            return html_to_text(decode_base64url(data))

    # Single-part messages sometimes carry no usable mimeType.
    data = (payload.get("body") or {}).get("data")
    if data and not payload.get("parts"):
        return decode_base64url(data)

    return ""


def _extract_attachments(payload: dict[str, Any]) -> tuple[AttachmentMetadata, ...]:
    attachments: list[AttachmentMetadata] = []
    for part in _walk_parts(payload):
        filename = part.get("filename")
        if not filename:
            continue
        body = part.get("body") or {}
        size = body.get("size")
        attachments.append(
            AttachmentMetadata(
                filename=filename,
                mime_type=part.get("mimeType") or "application/octet-stream",
                size=size if isinstance(size, int) else None,
                attachment_id=body.get("attachmentId"),
            )
        )
    return tuple(attachments)


def _parse_timestamp(internal_date: Any, date_header: str | None) -> datetime:
    try:
        if internal_date is not None:
            return datetime.fromtimestamp(int(internal_date) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        pass

    if date_header:
        try:
            parsed = parsedate_to_datetime(date_header)
        except (TypeError, ValueError, OverflowError):
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

    return datetime.now(timezone.utc)


def _sender_name(from_raw: str, from_address: str) -> str:
    if "<" in from_raw:
        name = from_raw.split("<", 1)[0].strip().strip('"').strip("'").strip()
        if name:
            return name
    return from_address


def message_from_gmail(message: dict[str, Any]) -> Message:
    """Convert a Gmail API message (format=full) to a Message.

    Args:
        message: Gmail API message dict.

    Returns:
        Message: Parsed message.

    Raises:
        DecodingError: If the payload is not a message resource.
    """

    if not isinstance(message, dict) or not message.get("id"):
        raise DecodingError("Gmail message payload has no id")

    payload = message.get("payload") or {}
    if not isinstance(payload, dict):
        raise DecodingError(f"Gmail message {message['id']} has a malformed payload")

    hm = _header_map(payload)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []
    labels = tuple(str(x) for x in label_ids if isinstance(x, str))

    from_raw = hm.get("from") or ""
    from_address = extract_address(from_raw)

    return Message(
        id=str(message["id"]),
        thread_id=str(message.get("threadId") or ""),
        sender=_sender_name(from_raw, from_address),
        from_address=from_address,
        to=hm.get("to") or "",
        cc=hm.get("cc"),
        bcc=hm.get("bcc"),
        subject=hm.get("subject") or "",
        body=_extract_body(payload),
        snippet=message.get("snippet") or "",
        date=_parse_timestamp(message.get("internalDate"), hm.get("date")),
        is_read="UNREAD" not in labels,
        label_ids=labels,
        attachments=_extract_attachments(payload),
    )


def messages_from_thread(thread: dict[str, Any]) -> list[Message]:
    """Convert a Gmail API thread resource to its messages."""
    if not isinstance(thread, dict):
        raise DecodingError("Gmail thread payload is not an object")
    messages = thread.get("messages") or []
    if not isinstance(messages, list):
        raise DecodingError(f"Gmail thread {thread.get('id')} has a malformed message list")
    return [message_from_gmail(m) for m in messages]


def ids_from_list(response: Any, key: str) -> tuple[list[str], str | None]:
    """Read the ids and next page token out of a Gmail list response."""
    if not isinstance(response, dict):
        raise DecodingError(f"Gmail {key} list response is not an object")
    entries = response.get(key) or []
    if not isinstance(entries, list):
        raise DecodingError(f"Gmail {key} list is not an array")
    ids: list[str] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise DecodingError(f"Gmail {key} list holds a malformed entry")
        entry_id = entry.get("id")
        if entry_id:
            ids.append(str(entry_id))
    token = response.get("nextPageToken")
    if token is not None and not isinstance(token, str):
        raise DecodingError(f"Gmail {key} list has a malformed page token")
    return ids, token or None
