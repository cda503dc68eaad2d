"""Stable conversation identities derived from participants.

Gmail's own thread ids are ignored: two server threads between the same two
people collapse into one conversation keyed by the counterpart's address.
"""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Iterable

GROUP_PREFIX = "group-"
_SEPARATOR = "|"


def is_group(participants: Iterable[str]) -> bool:
    return len(set(participants)) > 1


def resolve_thread_id(participants: Iterable[str], group: bool) -> str:
    """Map a participant set to a conversation id.

    An empty set (a note to self) gets a fresh random id. A single
    counterpart in a non-group conversation is its own id. Anything else is
    ``"group-"`` plus a digest of the sorted participants, so iteration order
    never changes the result.
    """
    members = sorted(set(participants))
    if not members:
        return str(uuid.uuid4())

    if not group and len(members) == 1:
        return members[0]

    joined = _SEPARATOR.join(members)
    digest = hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]
    return f"{GROUP_PREFIX}{digest}"
