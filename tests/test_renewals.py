"""Tests for renewal date and currency helpers."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from subtrack.core.currency import convert, monthly_total, yearly_total
from subtrack.core.datetime_utils import (
    add_one_month,
    days_until,
    next_renewal,
    parse_datetime,
    renewal_urgency,
    serialize_datetime,
)
from subtrack.core.models import StoredSubscription


def test_next_renewal_prefers_this_month_when_ahead() -> None:
    assert next_renewal(20, date(2025, 1, 15)) == date(2025, 1, 20)


def test_next_renewal_rolls_over_and_clamps() -> None:
    assert next_renewal(15, date(2025, 1, 15)) == date(2025, 2, 15)
    assert next_renewal(31, date(2025, 2, 1)) == date(2025, 2, 28)
    assert next_renewal(5, date(2025, 12, 20)) == date(2026, 1, 5)


def test_next_renewal_rejects_invalid_day() -> None:
    with pytest.raises(ValueError):
        next_renewal(32, date(2025, 1, 1))


def test_add_one_month_clamps_to_month_end() -> None:
    assert add_one_month(date(2024, 1, 31)) == date(2024, 2, 29)
    assert add_one_month(date(2025, 12, 31)) == date(2026, 1, 31)


@pytest.mark.parametrize(
    ("days", "expected"),
    [(-1, "overdue"), (0, "critical"), (3, "critical"), (7, "warning"), (8, "normal")],
)
def test_renewal_urgency_buckets(days: int, expected: str) -> None:
    assert renewal_urgency(days) == expected


def test_days_until_counts_whole_days() -> None:
    assert days_until(date(2025, 1, 20), date(2025, 1, 15)) == 5


def test_datetime_serialisation_normalises_to_utc() -> None:
    local = datetime(2025, 1, 1, 12, 0, tzinfo=timezone(timedelta(hours=4)))

    serialized = serialize_datetime(local)

    assert serialized == "2025-01-01T08:00:00+00:00"
    assert parse_datetime(serialized) == datetime(2025, 1, 1, 8, 0, tzinfo=UTC)


def test_convert_uses_usd_base_rates() -> None:
    assert convert(Decimal("10"), "USD", "EUR") == Decimal("8.50")
    assert convert(Decimal("36.70"), "AED", "USD") == Decimal("10.00")
    assert convert(Decimal("9.99"), "GBP", "GBP") == Decimal("9.99")


def test_convert_rejects_unknown_currency() -> None:
    with pytest.raises(ValueError):
        convert(Decimal("1"), "USD", "JPY")


def _stored(amount: str, currency: str, *, active: bool = True) -> StoredSubscription:
    return StoredSubscription(
        id=None,
        user_id="u",
        service_name="Service",
        amount=Decimal(amount),
        currency=currency,  # type: ignore[arg-type]
        renewal_day=1,
        next_renewal_date=None,
        category="Other",
        description="",
        is_active=active,
        detected_from_email=False,
        confidence=0.0,
        is_recurring=False,
        payment_count=1,
        last_payment_date=None,
        cancellation_date=None,
        cancellation_reason="",
        created_at=datetime(2025, 1, 1, tzinfo=UTC),
    )


def test_totals_skip_inactive_and_convert() -> None:
    subscriptions = [
        _stored("10.00", "USD"),
        _stored("36.70", "AED"),
        _stored("99.00", "USD", active=False),
    ]

    assert monthly_total(subscriptions, "USD") == Decimal("20.00")
    assert yearly_total(subscriptions, "USD") == Decimal("240.00")
