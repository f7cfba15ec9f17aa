"""Tests for the keyword/regex subscription classifier."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from subtrack.core.models import ExtractedContent
from subtrack.intelligence import HeuristicClassifier
from subtrack.intelligence.heuristic import UNKNOWN_SERVICE

TODAY = date(2025, 1, 15)


def _content(subject: str, sender: str, body: str) -> ExtractedContent:
    return ExtractedContent(
        message_id="m-1",
        subject=subject,
        sender=sender,
        date_received=None,
        plain_text=body,
    )


def _classifier() -> HeuristicClassifier:
    return HeuristicClassifier(today=TODAY)


def test_webflow_renewal_is_detected() -> None:
    result = _classifier().classify(
        _content(
            "Your Webflow plan has been renewed",
            "Webflow <billing@webflow.com>",
            "Thank you for your payment. Your Webflow Site plan subscription of "
            "$14/month has been renewed and is active.",
        )
    )

    assert result.is_subscription
    assert result.kind == "subscription"
    assert result.service_name == "Webflow"
    assert result.amount == Decimal("14")
    assert result.currency == "USD"
    assert result.category == "Web Services & Hosting"
    assert result.is_monthly_charge
    assert result.next_renewal_date == date(2025, 2, 15)
    assert result.renewal_day == 15
    assert result.description == (
        "Auto-detected from email: Your Webflow plan has been renewed"
    )


def test_generic_bank_notification_is_rejected() -> None:
    result = _classifier().classify(
        _content(
            "Credit card payment",
            "Bank Alerts <alerts@bank.example>",
            "Credit card payment CIF: ***45*** AED 1,500.00",
        )
    )

    assert not result.is_subscription
    assert result.kind == "none"
    assert result.service_name is None
    assert result.amount is None


def test_membership_invoice_without_amount_uses_placeholder() -> None:
    result = _classifier().classify(
        _content(
            "PureGym membership invoice",
            "PureGym <noreply@puregym.com>",
            "Deduction notification from Pure Gym. Dear member, please see your "
            "membership invoice in the attachments.",
        )
    )

    assert result.is_subscription
    assert result.service_name == "Puregym"
    assert result.amount == Decimal("50")
    assert result.currency == "USD"
    assert result.category == "Health & Fitness"


def test_cancellation_takes_precedence() -> None:
    result = _classifier().classify(
        _content(
            "Your subscription cancelled",
            "Netflix <info@netflix.com>",
            "We're sorry to see you go. You will no longer be charged $15.49.",
        )
    )

    assert result.kind == "cancellation"
    assert result.is_subscription
    assert result.service_name == "Netflix"
    assert result.amount is None
    assert result.confidence == 6


def test_free_plan_renewal_yields_free_tier_marker() -> None:
    result = _classifier().classify(
        _content(
            "Your CDN Free subscription will be renewed in 3 days",
            "Namecheap <support@namecheap.com>",
            "You have an upcoming renewal for CDN service.",
        )
    )

    assert result.is_subscription
    assert result.is_free_tier
    assert result.amount == Decimal("0")
    assert result.service_name == "Namecheap"


def test_promotional_email_is_rejected() -> None:
    result = _classifier().classify(
        _content(
            "50% off your next subscription!",
            "Deals <deals@shop.example>",
            "Don't miss out! Get 50% off your first month. Click here to subscribe now!",
        )
    )

    assert not result.is_subscription


def test_explicit_renewal_date_and_euro_amount() -> None:
    result = _classifier().classify(
        _content(
            "Payment receipt",
            "Acme Cloud <billing@acme.io>",
            "Thanks for your payment. You were charged $12.00 for your monthly plan. "
            "Next billing: March 3, 2025.",
        )
    )

    assert result.service_name == "Acme Cloud"
    assert result.amount == Decimal("12.00")
    assert result.next_renewal_date == date(2025, 3, 3)
    assert result.renewal_day == 3
    assert result.has_consistent_renewal_date
    assert result.confidence == 10

    euro = _classifier().classify(
        _content(
            "Spotify receipt",
            "Spotify <no-reply@spotify.com>",
            "Your Spotify Premium subscription: €9.99 per month has been charged.",
        )
    )
    assert euro.amount == Decimal("9.99")
    assert euro.currency == "EUR"
    assert euro.category == "Music & Audio"


def test_service_name_resolution_order() -> None:
    classifier = _classifier()

    assert classifier.extract_service_name(
        "Team Fal <hello@fal.ai>", "Payment Confirmation", "topped up"
    ) == "Fal"
    assert classifier.extract_service_name(
        '"Acme Cloud" <billing@acme.io>', "Receipt", "receipt"
    ) == "Acme Cloud"
    assert classifier.extract_service_name(
        "Billing Team <billing@zapier.com>", "Receipt", "receipt"
    ) == "Zapier"
    assert classifier.extract_service_name("", "", "") == UNKNOWN_SERVICE


def test_classifier_never_requires_pacing() -> None:
    classifier = _classifier()

    assert classifier.provider_id == "heuristic"
    assert classifier.requires_pacing is False
