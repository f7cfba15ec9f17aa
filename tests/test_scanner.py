"""Tests for the scan service facade."""

from __future__ import annotations

import base64
import json
from decimal import Decimal

from subtrack.core.config import AppSettings, OracleSettings, ScanSettings
from subtrack.core.models import MimePart, RawEmail
from subtrack.ingestion import BatchOrchestrator, SubscriptionScanner
from subtrack.intelligence import OracleClassifier

WEBFLOW_BODY = (
    "Thank you for your payment. Your Webflow Site plan subscription of "
    "$14/month has been renewed and is active."
)


def _raw(message_id: str, subject: str, sender: str, body: str) -> RawEmail:
    data = base64.urlsafe_b64encode(body.encode("utf-8")).decode("ascii")
    return RawEmail(
        message_id=message_id,
        subject=subject,
        sender=sender,
        date_received=None,
        payload=MimePart(mime_type="text/plain", body_data=data),
    )


def _webflow(message_id: str = "w-1") -> RawEmail:
    return _raw(
        message_id,
        "Your Webflow plan has been renewed",
        "Webflow <billing@webflow.com>",
        WEBFLOW_BODY,
    )


def _newsletter() -> RawEmail:
    return _raw("n-1", "Weekly newsletter", "news@blog.example", "Read our latest posts")


class StubLLM:
    def __init__(self, response: str) -> None:
        self.response = response
        self.calls = 0

    @property
    def provider_id(self) -> str:
        return "stub-model"

    def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        self.calls += 1
        return self.response


def test_heuristic_used_when_oracle_unconfigured() -> None:
    scanner = SubscriptionScanner(AppSettings())

    report = scanner.scan([_webflow(), _newsletter()])

    assert scanner.active_classifier().provider_id == "heuristic"
    assert report.total_processed == 2
    assert [c.service_name for c in report.detected_subscriptions] == ["Webflow"]
    assert report.detected_subscriptions[0].amount == Decimal("14")


def test_oracle_used_when_configured() -> None:
    settings = AppSettings(oracle=OracleSettings(api_key="sk-test"))
    client = StubLLM(
        json.dumps(
            {
                "isSubscription": True,
                "type": "subscription",
                "serviceName": "Webflow",
                "amount": 14,
                "currency": "USD",
                "confidence": 9,
            }
        )
    )
    scanner = SubscriptionScanner(
        settings,
        oracle=OracleClassifier(settings.oracle, client=client),
        orchestrator=BatchOrchestrator(sleep=lambda _: None),
    )

    report = scanner.scan([_webflow("a"), _webflow("b")])

    assert client.calls == 2
    assert len(report.detected_subscriptions) == 1
    assert report.detected_subscriptions[0].payment_count == 2
    assert report.detected_subscriptions[0].is_recurring


def test_existing_services_are_counted_not_returned() -> None:
    scanner = SubscriptionScanner(AppSettings())

    report = scanner.scan([_webflow()], existing_names=["Webflow"])

    assert report.detected_subscriptions == []
    assert report.existing_count == 1


def test_prefilter_and_message_cap_apply() -> None:
    settings = AppSettings(scan=ScanSettings(prefilter_enabled=True, max_messages=1))
    scanner = SubscriptionScanner(settings)

    report = scanner.scan([_newsletter(), _webflow("a"), _webflow("b")])

    assert report.total_processed == 1
    assert len(report.detected_subscriptions) == 1


def test_scan_accounts_reports_per_account_and_merges_globally() -> None:
    scanner = SubscriptionScanner(AppSettings())

    report = scanner.scan_accounts(
        {
            "me@example.com": [_webflow("a"), _newsletter()],
            "work@example.com": [_webflow("b")],
        }
    )

    assert [summary.account for summary in report.accounts] == [
        "me@example.com",
        "work@example.com",
    ]
    assert report.accounts[0].emails_processed == 2
    assert report.accounts[0].subscriptions_found == 1
    assert report.total_processed == 3
    assert len(report.detected_subscriptions) == 1
    assert report.detected_subscriptions[0].payment_count == 2
