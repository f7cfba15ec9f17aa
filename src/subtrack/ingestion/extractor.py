"""Flatten raw provider messages into plain text for classification."""

from __future__ import annotations

import base64
import binascii
import logging
import re

from ..core.interfaces import ExtractionError
from ..core.models import ExtractedContent, MimePart, RawEmail

LOGGER = logging.getLogger(__name__)

_URLSAFE_TO_STANDARD = str.maketrans("-_", "+/")
_STYLE_OR_SCRIPT = re.compile(
    r"<(style|script)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL
)
_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    # Decoded last so that "&amp;lt;" yields the literal "&lt;".
    ("&amp;", "&"),
)


class EmailContentExtractor:
    """Produce :class:`ExtractedContent` from a :class:`RawEmail`.

    Extraction never raises: a part that cannot be decoded is skipped and the
    rest of the tree is still used.
    """

    def extract(self, email: RawEmail) -> ExtractedContent:
        """Return the flattened text representation of ``email``."""
        plain_chunks: list[str] = []
        html_chunks: list[str] = []
        _collect_text(email.payload, plain_chunks, html_chunks, email.message_id)

        if plain_chunks:
            body = "\n".join(plain_chunks).strip()
        else:
            body = html_to_text(" ".join(html_chunks))

        return ExtractedContent(
            message_id=email.message_id,
            subject=email.subject or "",
            sender=email.sender or "",
            date_received=email.date_received,
            plain_text=body,
        )


def decode_body(data: str) -> str:
    """Decode a base64 (standard or URL-safe) body into text."""
    if not isinstance(data, str):
        raise ExtractionError(f"Body data must be text, got {type(data).__name__}")
    normalised = data.strip().translate(_URLSAFE_TO_STANDARD)
    normalised += "=" * (-len(normalised) % 4)
    try:
        raw = base64.b64decode(normalised, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ExtractionError("Body is not valid base64") from exc
    return raw.decode("utf-8", errors="replace")


def html_to_text(markup: str) -> str:
    """Strip tags from ``markup``, decode common entities and squash spaces."""
    if not markup:
        return ""
    text = _STYLE_OR_SCRIPT.sub(" ", markup)
    text = _TAG.sub(" ", text)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return _WHITESPACE.sub(" ", text).strip()


def _collect_text(
    part: MimePart,
    plain_chunks: list[str],
    html_chunks: list[str],
    message_id: str | None,
) -> None:
    if part.body_data and not part.filename:
        try:
            content = decode_body(part.body_data)
        except ExtractionError as exc:
            LOGGER.warning(
                "Skipping undecodable %s part in message %s: %s",
                part.mime_type or "unknown",
                message_id,
                exc,
            )
        else:
            mime_type = part.mime_type.lower()
            if mime_type == "text/plain":
                plain_chunks.append(content)
            elif mime_type == "text/html":
                html_chunks.append(content)

    for child in part.children:
        _collect_text(child, plain_chunks, html_chunks, message_id)


__all__ = ["EmailContentExtractor", "decode_body", "html_to_text"]
