"""Utilities for turning provider payloads into :class:`RawEmail` records."""

from __future__ import annotations

import base64
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from typing import Any

from ..core.interfaces import MessageFormatError
from ..core.models import MimePart, RawEmail, ScanError

LOGGER = logging.getLogger(__name__)


class GmailMessageParser:
    """Convert Gmail API ``format=full`` message resources into raw emails."""

    def parse(self, message: Mapping[str, Any]) -> RawEmail:
        """Build a :class:`RawEmail` from a decoded Gmail JSON resource.

        Raises :class:`MessageFormatError` when the resource, its payload, a
        header or a body part is not shaped like the Gmail API returns it.
        """
        if not isinstance(message, Mapping):
            raise MessageFormatError("Message resource must be an object")
        payload = _as_mapping(message.get("payload"), "payload")
        headers = _header_map(_as_list(payload.get("headers"), "payload.headers"))
        date_received = _try_parse_datetime(headers.get("date"))
        if date_received is None:
            date_received = _from_internal_date(message.get("internalDate"))
        return RawEmail(
            message_id=_optional_str(message.get("id")),
            subject=headers.get("subject", ""),
            sender=headers.get("from", ""),
            date_received=date_received,
            payload=_convert_part(payload),
        )

    def parse_each(
        self, messages: Iterable[Mapping[str, Any]]
    ) -> tuple[list[RawEmail], list[ScanError]]:
        """Parse several resources, preserving order.

        A malformed resource never stops the rest: it is reported as a
        :class:`ScanError` alongside the messages that parsed cleanly.
        """
        parsed: list[RawEmail] = []
        failures: list[ScanError] = []
        for message in messages:
            try:
                parsed.append(self.parse(message))
            except MessageFormatError as exc:
                message_id = (
                    _optional_str(message.get("id"))
                    if isinstance(message, Mapping)
                    else None
                )
                LOGGER.warning("Skipping malformed message %s: %s", message_id, exc)
                failures.append(ScanError(message_id, "", str(exc)))
        return parsed, failures


class Rfc822Parser:
    """Convert raw RFC822 bytes (e.g. ``.eml`` files) into raw emails."""

    def __init__(self) -> None:
        """Prepare internal parser instance."""
        self._parser = BytesParser(policy=policy.default)

    def parse(self, payload: bytes, *, message_id: str | None = None) -> RawEmail:
        """Parse ``payload`` and re-encode its leaf bodies as base64url."""
        message = self._parser.parsebytes(payload)
        return RawEmail(
            message_id=message_id or message.get("Message-ID"),
            subject=str(message.get("Subject") or ""),
            sender=str(message.get("From") or ""),
            date_received=_try_parse_datetime(message.get("Date")),
            payload=_convert_message(message),
        )


def _as_mapping(value: Any, field: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MessageFormatError(f"Expected an object for {field}")
    return value


def _as_list(value: Any, field: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise MessageFormatError(f"Expected a list for {field}")
    return value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _header_map(headers: Iterable[Any]) -> dict[str, str]:
    mapped: dict[str, str] = {}
    for raw_header in headers:
        header = _as_mapping(raw_header, "payload.headers[]")
        name = str(header.get("name") or "").lower()
        if name and name not in mapped:
            mapped[name] = str(header.get("value") or "")
    return mapped


def _convert_part(part: Mapping[str, Any]) -> MimePart:
    body = _as_mapping(part.get("body"), "body")
    children = tuple(
        _convert_part(_as_mapping(child, "parts[]"))
        for child in _as_list(part.get("parts"), "parts")
    )
    return MimePart(
        mime_type=str(part.get("mimeType") or ""),
        body_data=body.get("data"),
        children=children,
        filename=_optional_str(part.get("filename") or None),
    )


def _convert_message(message: EmailMessage) -> MimePart:
    if message.is_multipart():
        children = tuple(
            _convert_message(child)  # type: ignore[arg-type]
            for child in message.iter_parts()
        )
        return MimePart(mime_type=message.get_content_type(), children=children)
    if message.get_content_maintype() != "text":
        return MimePart(
            mime_type=message.get_content_type(), filename=message.get_filename()
        )
    raw = message.get_payload(decode=True) or b""
    charset = message.get_content_charset() or "utf-8"
    try:
        text = raw.decode(charset, errors="replace")
    except LookupError:
        text = raw.decode("utf-8", errors="replace")
    return MimePart(
        mime_type=message.get_content_type(),
        body_data=base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii"),
        filename=message.get_filename(),
    )


def _try_parse_datetime(header_value: str | None) -> datetime | None:
    if not header_value:
        return None
    try:
        return parsedate_to_datetime(str(header_value))
    except (TypeError, ValueError):
        return None


def _from_internal_date(value: Any) -> datetime | None:
    try:
        seconds = int(value) / 1000
    except (OverflowError, TypeError, ValueError):
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


__all__ = ["GmailMessageParser", "Rfc822Parser"]
