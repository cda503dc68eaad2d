"""Best-effort cleanup of message bodies for chat-style display.

Quoted history, forwarded banners, leftover HTML and signatures are removed.
The patterns are heuristics; the only guarantees are that the same input
always gives the same output and that no input raises.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

_FLAGS = re.IGNORECASE | re.DOTALL

# Each pattern removes its match and everything after it.
_QUOTE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, _FLAGS)
    for pattern in (
        r"\bOn .+? wrote:.*",
        r"\n>.*",
        r"_{3,}.*",
        r"-{3,} ?Original Message ?-{3,}.*",
        r"From: .+?\nSent: .+?\nTo: .+?\nSubject: .+",
        r"-{5,} Forwarded message -{5,}.*",
        r"\*From:\*.+?\n\*Sent:\*.+?\n.*",
        r"<blockquote.+?</blockquote>.*",
        r"<div class=\"gmail_quote\".+?</div>.*",
    )
)

_BLANK_RUN_RE = re.compile(r"\n{3,}")

SIGNATURE_MARKERS: tuple[str, ...] = (
    "--",
    "Best regards",
    "Sincerely",
    "Thanks",
    "Sent from my iPhone",
    "Sent from my iPad",
)


def strip_quotes(text: str) -> str:
    for pattern in _QUOTE_PATTERNS:
        text = pattern.sub("", text)
    return text


def strip_signature(text: str) -> str:
    """Cut the text at the first line starting with a signature marker."""
    lowered = text.lower()
    cut = len(text)
    for marker in SIGNATURE_MARKERS:
        index = lowered.find("\n" + marker.lower())
        if index != -1:
            cut = min(cut, index)
    return text[:cut]


def clean_body(body: str) -> str:
    """Return ``body`` without quoted history, markup or signature."""
    if not body:
        return ""
    text = body.replace("\r\n", "\n")
    text = strip_quotes(text)
    if "<" in text or "&" in text:
        text = BeautifulSoup(text, "html.parser").get_text()
    text = text.replace("\xa0", " ")
    text = _BLANK_RUN_RE.sub("\n\n", text)
    text = strip_signature(text)
    return text.strip()
