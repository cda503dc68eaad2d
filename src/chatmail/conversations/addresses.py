"""Helpers for pulling addresses and names out of free-form header values.

Handles formats like:
  "John Doe <john@example.com>" -> address "john@example.com", name "John Doe"
  "<john@example.com>"          -> address "john@example.com", name "john"
  "john@example.com"            -> address "john@example.com", name "john"

The parser preserves case; callers compare addresses case-insensitively.
"""

from __future__ import annotations

import re

_ANGLE_RE = re.compile(r"<(.+?)>")


def extract_address(raw: str) -> str:
    """Return the address enclosed in angle brackets, or ``raw`` trimmed."""
    if not raw:
        return ""
    m = _ANGLE_RE.search(raw)
    if m:
        return m.group(1).strip()
    return raw.strip()


def extract_display_name(raw: str) -> str:
    """Return the display name part of ``raw``.

    Falls back to the local part of the address when the header carries no
    name.
    """
    if not raw:
        return ""
    if "<" in raw:
        name = raw.split("<", 1)[0].strip().strip('"').strip("'").strip()
        if name:
            return name
    address = extract_address(raw)
    return address.split("@", 1)[0]


def extract_first_name(raw: str) -> str:
    """First word of the display name."""
    name = extract_display_name(raw)
    parts = name.split()
    return parts[0] if parts else name


def split_address_list(raw: str | None) -> list[str]:
    """Split a comma-joined recipient header into trimmed entries."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def normalize_address(raw: str) -> str:
    """Lower-cased bare address, suitable for comparisons."""
    return extract_address(raw).lower()


def format_address(name: str, address: str) -> str:
    """Build a ``"Name <address>"`` header entry."""
    if not name or name == address:
        return address
    return f"{name} <{address}>"
