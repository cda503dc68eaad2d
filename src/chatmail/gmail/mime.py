"""Construction of outgoing messages in Gmail's ``raw`` format."""

from __future__ import annotations

import base64
from collections.abc import Sequence
from email.message import EmailMessage

from chatmail.models import OutgoingAttachment


def build_mime_message(
    sender: str,
    to: str,
    subject: str,
    body: str,
    cc: str | None = None,
    attachments: Sequence[OutgoingAttachment] = (),
) -> EmailMessage:
    """Build a MIME message; multipart with base64 parts when files are attached."""
    message = EmailMessage()
    if sender:
        message["From"] = sender
    message["To"] = to
    if cc:
        message["Cc"] = cc
    message["Subject"] = subject
    message.set_content(body)

    for attachment in attachments:
        maintype, _, subtype = (attachment.mime_type or "application/octet-stream").partition("/")
        message.add_attachment(
            attachment.data,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )

    return message


def encode_raw(message: EmailMessage) -> str:
    """Encode a MIME message as unpadded base64url for ``users.messages.send``."""
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii").rstrip("=")
