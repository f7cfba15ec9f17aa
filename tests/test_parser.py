"""Tests for provider message parsing and text extraction."""

from __future__ import annotations

import base64
from datetime import UTC, datetime

import pytest

from subtrack.core.interfaces import MessageFormatError
from subtrack.core.models import MimePart, RawEmail
from subtrack.ingestion import EmailContentExtractor, GmailMessageParser, Rfc822Parser
from subtrack.ingestion.extractor import html_to_text


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def _gmail_message() -> dict:
    return {
        "id": "msg-1",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "multipart/alternative",
            "headers": [
                {"name": "Subject", "value": "Your receipt from Spotify"},
                {"name": "From", "value": "Spotify <no-reply@spotify.com>"},
            ],
            "parts": [
                {"mimeType": "text/plain", "body": {"data": _b64("Total: $9.99")}},
                {
                    "mimeType": "text/html",
                    "body": {"data": _b64("<p>Total: <b>$9.99</b></p>")},
                },
            ],
        },
    }


def test_gmail_parser_reads_headers_and_tree() -> None:
    email = GmailMessageParser().parse(_gmail_message())

    assert email.message_id == "msg-1"
    assert email.subject == "Your receipt from Spotify"
    assert email.sender == "Spotify <no-reply@spotify.com>"
    assert email.date_received == datetime.fromtimestamp(1_700_000_000, tz=UTC)
    assert [child.mime_type for child in email.payload.children] == [
        "text/plain",
        "text/html",
    ]


def test_extractor_prefers_plain_text() -> None:
    email = GmailMessageParser().parse(_gmail_message())

    content = EmailContentExtractor().extract(email)

    assert content.plain_text == "Total: $9.99"
    assert content.content_length == len("Total: $9.99")


def test_extractor_falls_back_to_stripped_html() -> None:
    html = "<style>p {color: red}</style><p>Membership&nbsp;fee &amp; tax</p>"
    email = RawEmail(
        message_id="m",
        subject="Invoice",
        sender="billing@example.com",
        date_received=None,
        payload=MimePart(mime_type="text/html", body_data=_b64(html)),
    )

    content = EmailContentExtractor().extract(email)

    assert content.plain_text == "Membership fee & tax"


def test_extractor_skips_undecodable_parts() -> None:
    email = RawEmail(
        message_id="m",
        subject="Receipt",
        sender="billing@example.com",
        date_received=None,
        payload=MimePart(
            mime_type="multipart/mixed",
            children=(
                MimePart(mime_type="text/plain", body_data="@@not base64@@"),
                MimePart(mime_type="text/plain", body_data=_b64("Charged $5.00")),
            ),
        ),
    )

    content = EmailContentExtractor().extract(email)

    assert content.plain_text == "Charged $5.00"


def test_extractor_ignores_attachments() -> None:
    email = RawEmail(
        message_id="m",
        subject="Invoice",
        sender="billing@example.com",
        date_received=None,
        payload=MimePart(
            mime_type="multipart/mixed",
            children=(
                MimePart(mime_type="text/plain", body_data=_b64("See attached")),
                MimePart(
                    mime_type="text/plain",
                    body_data=_b64("attachment text"),
                    filename="invoice.txt",
                ),
            ),
        ),
    )

    assert EmailContentExtractor().extract(email).plain_text == "See attached"


def test_rfc822_parser_round_trips_into_extractor() -> None:
    raw = (
        b"From: Netflix <info@netflix.com>\r\n"
        b"Subject: Your Netflix membership\r\n"
        b"Date: Tue, 14 Nov 2023 10:00:00 +0000\r\n"
        b"Message-ID: <abc@netflix.com>\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Your monthly membership fee of $15.49 was charged.\r\n"
    )

    email = Rfc822Parser().parse(raw)
    content = EmailContentExtractor().extract(email)

    assert email.message_id == "<abc@netflix.com>"
    assert email.subject == "Your Netflix membership"
    assert email.date_received == datetime(2023, 11, 14, 10, 0, tzinfo=UTC)
    assert "$15.49" in content.plain_text


def test_html_to_text_handles_empty_markup() -> None:
    assert html_to_text("") == ""


def test_extractor_skips_parts_with_non_text_body_data() -> None:
    email = RawEmail(
        message_id="m",
        subject="Receipt",
        sender="billing@example.com",
        date_received=None,
        payload=MimePart(
            mime_type="multipart/mixed",
            children=(
                MimePart(mime_type="text/plain", body_data=12345),  # type: ignore[arg-type]
                MimePart(mime_type="text/plain", body_data=_b64("hello world")),
            ),
        ),
    )

    assert EmailContentExtractor().extract(email).plain_text == "hello world"


def test_extraction_is_repeatable() -> None:
    email = GmailMessageParser().parse(_gmail_message())
    extractor = EmailContentExtractor()

    assert extractor.extract(email) == extractor.extract(email)


def test_gmail_parser_rejects_malformed_body() -> None:
    message = {"id": "bad", "payload": {"mimeType": "text/plain", "body": "oops"}}

    with pytest.raises(MessageFormatError):
        GmailMessageParser().parse(message)


def test_gmail_parser_ignores_out_of_range_internal_date() -> None:
    message = _gmail_message()
    message["internalDate"] = "9" * 400

    assert GmailMessageParser().parse(message).date_received is None


def test_parse_each_reports_malformed_messages_and_keeps_the_rest() -> None:
    resources = [
        {"id": "bad-headers", "payload": {"headers": "Subject: nope"}},
        _gmail_message(),
        {"id": "bad-part", "payload": {"parts": [{"body": {"data": "x"}}, "oops"]}},
    ]

    emails, failures = GmailMessageParser().parse_each(resources)

    assert [email.message_id for email in emails] == ["msg-1"]
    assert [failure.message_id for failure in failures] == ["bad-headers", "bad-part"]
    assert failures[0].reason == "Expected a list for payload.headers"
    assert failures[1].reason == "Expected an object for parts[]"
