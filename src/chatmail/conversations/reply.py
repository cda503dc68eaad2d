"""Recipient and subject resolution for replies.

Individual conversations reply to the counterpart. Group conversations reply
to everyone: anyone ever Cc'd stays in Cc, everyone else goes in To.
"""

from __future__ import annotations

from chatmail.conversations.addresses import format_address, normalize_address, split_address_list
from chatmail.models import Conversation, ReplyDraft

REPLY_PREFIX = "Re: "


def reply_subject(subject: str) -> str:
    if subject.startswith(REPLY_PREFIX.rstrip()):
        return subject
    return f"{REPLY_PREFIX}{subject}"


def _add(entries: dict[str, str], entry: str, user: str) -> None:
    address = normalize_address(entry)
    if address and "@" in address and address != user:
        entries.setdefault(address, entry)


def resolve_reply(conversation: Conversation, user_email: str) -> ReplyDraft | None:
    """Work out To, Cc and Subject for replying to ``conversation``.

    Args:
        conversation: Conversation being replied to.
        user_email: Address of the authenticated user; never a recipient.

    Returns:
        ReplyDraft, or None when the conversation has no messages.
    """

    last = conversation.last_message
    if last is None:
        return None

    user = (user_email or "").lower()
    subject = reply_subject(last.subject)

    if not conversation.is_group:
        if last.is_from(user):
            to = last.to
        else:
            to = format_address(last.sender, last.from_address)
        return ReplyDraft(to=to, cc=None, subject=subject)

    # Keyed by lower-cased address; values keep the header form with names.
    to_entries: dict[str, str] = {}
    cc_entries: dict[str, str] = {}

    for message in conversation.messages:
        if not message.is_from(user) and message.from_address:
            _add(to_entries, format_address(message.sender, message.from_address), user)
        for recipient in split_address_list(message.to):
            _add(to_entries, recipient, user)
        for recipient in split_address_list(message.cc):
            _add(cc_entries, recipient, user)

    to_entries = {address: entry for address, entry in to_entries.items() if address not in cc_entries}

    return ReplyDraft(
        to=", ".join(to_entries.values()),
        cc=", ".join(cc_entries.values()) or None,
        subject=subject,
    )
