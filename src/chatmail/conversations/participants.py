"""Participant extraction for conversations.

A participant is any counterpart address seen on a message, as sender or as
recipient. The authenticated user is never a participant of their own
conversations.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Optional

from chatmail.conversations.addresses import (
    extract_first_name,
    format_address,
    normalize_address,
    split_address_list,
)
from chatmail.models import Conversation, Message

ContactNameLookup = Callable[[str], Optional[str]]

_MAX_LISTED_NAMES = 5


def message_recipients(message: Message) -> list[str]:
    """Raw To, Cc and Bcc entries of a message, in header order."""
    return (
        split_address_list(message.to)
        + split_address_list(message.cc)
        + split_address_list(message.bcc)
    )


def extract_participants(messages: Iterable[Message], user_email: str) -> set[str]:
    """Collect the distinct lower-cased counterpart addresses of ``messages``.

    Senders and recipients share one set, so someone who both sent and
    received messages is counted once.
    """
    user = (user_email or "").lower()
    participants: set[str] = set()

    for message in messages:
        if not message.is_from(user):
            sender = normalize_address(message.from_address)
            if sender and sender != user:
                participants.add(sender)

        for recipient in message_recipients(message):
            address = normalize_address(recipient)
            if address and "@" in address and address != user:
                participants.add(address)

    return participants


def _header_entry_for(address: str, messages: Iterable[Message]) -> str:
    # Prefer the way the address was written on a message so the name survives.
    for message in messages:
        if normalize_address(message.from_address) == address:
            return format_address(message.sender, message.from_address)
        for recipient in message_recipients(message):
            if normalize_address(recipient) == address:
                return recipient
    return address


def _name_for(address: str, entry: str, contact_name: ContactNameLookup | None) -> str:
    if contact_name is not None:
        name = contact_name(address)
        if name:
            return name
    return extract_first_name(entry)


def display_participants(
    conversation: Conversation,
    user_email: str,
    contact_name: ContactNameLookup | None = None,
) -> str:
    """Short label naming who a conversation is with.

    Group conversations list sorted first names, at most five followed by a
    ``+N`` count. Individual conversations name the counterpart, and a
    conversation with nobody but the user is labelled ``"Me"``.
    """
    user = (user_email or "").lower()
    messages = conversation.messages

    if conversation.is_group:
        names = sorted(
            _name_for(address, _header_entry_for(address, messages), contact_name)
            for address in conversation.participants
        )
        if len(names) > _MAX_LISTED_NAMES:
            listed = ", ".join(names[:_MAX_LISTED_NAMES])
            return f"{listed} +{len(names) - _MAX_LISTED_NAMES}"
        return ", ".join(names)

    counterparts: dict[str, None] = {}
    for message in messages:
        if message.is_from(user):
            for recipient in split_address_list(message.to):
                address = normalize_address(recipient)
                if address and address != user:
                    counterparts.setdefault(_name_for(address, recipient, contact_name))
        else:
            address = normalize_address(message.from_address)
            if address and address != user:
                entry = format_address(message.sender, message.from_address)
                counterparts.setdefault(_name_for(address, entry, contact_name))

    if not counterparts:
        return "Me"
    return ", ".join(counterparts)
