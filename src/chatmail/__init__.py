"""chatmail - conversation-style Gmail client core.

This package rebuilds a Gmail mailbox as stable, participant-based
conversations: it syncs threads from the Gmail API, merges them by who is
talking rather than by server thread id, and resolves reply recipients.
"""

__version__ = "0.1.0"
__author__ = "Trickl"

from chatmail.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
