"""Attachment classification by MIME type, with magic-byte sniffing.

Gmail frequently reports uploaded files as ``application/octet-stream``.
When the bytes are at hand the leading signature is used instead.
"""

from __future__ import annotations

from enum import Enum

_OCTET_STREAM = "application/octet-stream"

# (signature, mime type); checked in order against the leading bytes.
_MAGIC_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG", "image/png"),
    (b"GIF", "image/gif"),
    (b"%PDF", "application/pdf"),
)


def sniff_mime_type(data: bytes) -> str:
    """Guess a MIME type from the first bytes of ``data``."""
    head = data[:12]
    for signature, mime_type in _MAGIC_SIGNATURES:
        if head.startswith(signature):
            return mime_type
    return _OCTET_STREAM


class AttachmentType(str, Enum):
    """Broad attachment category used to decide how a file can be shown."""

    IMAGE = "image"
    VIDEO = "video"
    PDF = "pdf"
    AUDIO = "audio"
    ARCHIVE = "archive"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    TEXT = "text"
    OTHER = "other"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> AttachmentType:
        t = (mime_type or "").lower()
        if t.startswith("image/"):
            return cls.IMAGE
        if t.startswith("video/"):
            return cls.VIDEO
        if t == "application/pdf":
            return cls.PDF
        if t.startswith("audio/"):
            return cls.AUDIO
        if "zip" in t or "archive" in t or "compressed" in t:
            return cls.ARCHIVE
        # OOXML types all contain "officedocument"; test the specific kinds first.
        if "sheet" in t or "excel" in t:
            return cls.SPREADSHEET
        if "presentation" in t or "powerpoint" in t or "slides" in t:
            return cls.PRESENTATION
        if "word" in t or "document" in t:
            return cls.DOCUMENT
        if "text" in t:
            return cls.TEXT
        return cls.OTHER

    @classmethod
    def from_data(cls, data: bytes) -> AttachmentType:
        return cls.from_mime_type(sniff_mime_type(data))

    @classmethod
    def classify(cls, mime_type: str, data: bytes | None = None) -> AttachmentType:
        """Classify by declared type, sniffing ``data`` for generic declarations."""
        declared = (mime_type or "").lower()
        if data and declared in ("", _OCTET_STREAM):
            return cls.from_data(data)
        return cls.from_mime_type(declared)

    @property
    def is_previewable(self) -> bool:
        return self not in (AttachmentType.ARCHIVE, AttachmentType.OTHER)

    @property
    def requires_download(self) -> bool:
        return self is not AttachmentType.IMAGE


def attachment_cache_key(message_id: str, attachment_id: str | None, filename: str) -> str:
    """Key used by external byte caches for an attachment of a message."""
    return f"{message_id}_{attachment_id or filename}"
