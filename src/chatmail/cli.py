"""Command-line interface for chatmail.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from chatmail import __version__
from chatmail.config import get_settings
from chatmail.conversations.participants import display_participants
from chatmail.conversations.sanitizer import clean_body
from chatmail.exceptions import ChatmailError
from chatmail.gmail.client import GmailClient
from chatmail.mailbox import Mailbox
from chatmail.models import Conversation, SyncProgress, SyncState

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="chatmail", description="Conversation-style Gmail client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Load every conversation and list them")
    sync_parser.add_argument("--limit", type=int, default=50, help="Max conversations to print")

    show_parser = subparsers.add_parser("show", help="Print the messages of one conversation")
    show_parser.add_argument("conversation_id", help="Conversation id as printed by 'sync'")

    reply_parser = subparsers.add_parser("reply", help="Reply to everyone in a conversation")
    reply_parser.add_argument("conversation_id", help="Conversation id as printed by 'sync'")
    reply_parser.add_argument("text", help="Reply body")

    send_parser = subparsers.add_parser("send", help="Send a new message")
    send_parser.add_argument("--to", required=True, help="Comma-separated recipients")
    send_parser.add_argument("--cc", default=None, help="Comma-separated Cc recipients")
    send_parser.add_argument("--subject", default="", help="Subject line")
    send_parser.add_argument("body", help="Message body")

    return parser


def _print_progress(progress: SyncProgress) -> None:
    if progress.detail:
        print(f"[{progress.fraction:>4.0%}] {progress.detail}", file=sys.stderr)


async def _open_mailbox() -> Mailbox:
    settings = get_settings()
    gmail = GmailClient(settings)
    await gmail.authenticate()
    return Mailbox(gmail, gmail.user_email, settings)


async def _load(mailbox: Mailbox) -> bool:
    report = await mailbox.load_messages(on_progress=_print_progress)
    if report.state is SyncState.ERROR:
        print(f"Sync failed: {report.error}", file=sys.stderr)
        return False
    if report.failed_thread_ids:
        print(f"Skipped {len(report.failed_thread_ids)} threads that failed to load", file=sys.stderr)
    return True


def _format_row(conversation: Conversation, user_email: str) -> str:
    last = conversation.last_message
    date_part = last.date.isoformat() if last else "(no date)"
    unread = str(conversation.unread_count) if conversation.unread_count else "-"
    subject = last.subject if last else ""
    who = display_participants(conversation, user_email)
    return f"{unread}\t{date_part}\t{conversation.id}\t{who}\t{subject}"


async def _cmd_sync(args: argparse.Namespace) -> int:
    mailbox = await _open_mailbox()
    if not await _load(mailbox):
        return 1

    for conversation in mailbox.threads[: args.limit]:
        print(_format_row(conversation, mailbox.user_email))
    return 0


async def _find(mailbox: Mailbox, conversation_id: str) -> Conversation | None:
    if not await _load(mailbox):
        return None
    conversation = mailbox.get(conversation_id)
    if conversation is None:
        print(f"No conversation with id {conversation_id}", file=sys.stderr)
    return conversation


async def _cmd_show(args: argparse.Namespace) -> int:
    mailbox = await _open_mailbox()
    conversation = await _find(mailbox, args.conversation_id)
    if conversation is None:
        return 1

    print(display_participants(conversation, mailbox.user_email))
    for message in conversation.messages:
        who = "Me" if message.is_from(mailbox.user_email) else message.sender
        print(f"\n{message.date.isoformat()}  {who}")
        print(clean_body(message.body) or message.snippet)
        for attachment in message.attachments:
            print(f"  [{attachment.type.value}] {attachment.filename}")

    await mailbox.mark_thread_as_read(conversation)
    return 0


async def _cmd_reply(args: argparse.Namespace) -> int:
    mailbox = await _open_mailbox()
    conversation = await _find(mailbox, args.conversation_id)
    if conversation is None:
        return 1

    sent = await mailbox.reply(conversation, args.text)
    if sent is None:
        print("Reply was not sent", file=sys.stderr)
        return 1
    print(f"Sent {sent.id}")
    return 0


async def _cmd_send(args: argparse.Namespace) -> int:
    mailbox = await _open_mailbox()
    sent = await mailbox.send_message(args.to, args.subject, args.body, cc=args.cc)
    if sent is None:
        print("Message was not sent", file=sys.stderr)
        return 1
    print(f"Sent {sent.id}")
    return 0


_COMMANDS = {
    "sync": _cmd_sync,
    "show": _cmd_show,
    "reply": _cmd_reply,
    "send": _cmd_send,
}


def main(args: list[str] | None = None) -> int:
    """Main entry point for the chatmail CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )

    logger.info("chatmail_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    command = _COMMANDS.get(parsed.command)
    if command is None:
        logger.error("unknown_command", command=parsed.command)
        return 2

    try:
        return asyncio.run(command(parsed))
    except ChatmailError as exc:
        logger.error("command_failed", command=parsed.command, error=str(exc))
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
