"""Fixed-rate currency conversion and spend totals."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal

from .models import Currency, StoredSubscription

# Units of each currency per one US dollar.
EXCHANGE_RATES: Mapping[str, Decimal] = {
    "USD": Decimal("1.0"),
    "EUR": Decimal("0.85"),
    "GBP": Decimal("0.73"),
    "AED": Decimal("3.67"),
}

SUPPORTED_CURRENCIES: tuple[Currency, ...] = ("USD", "EUR", "GBP", "AED")

_CENT = Decimal("0.01")


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    *,
    rates: Mapping[str, Decimal] = EXCHANGE_RATES,
) -> Decimal:
    """Convert ``amount`` between currencies through the USD base rate."""
    if from_currency not in rates or to_currency not in rates:
        raise ValueError(f"Unsupported currency pair {from_currency}->{to_currency}")
    if from_currency == to_currency:
        return amount
    usd_amount = amount / rates[from_currency]
    return (usd_amount * rates[to_currency]).quantize(_CENT, rounding=ROUND_HALF_UP)


def monthly_total(
    subscriptions: Iterable[StoredSubscription], display_currency: str
) -> Decimal:
    """Sum active monthly charges expressed in ``display_currency``."""
    total = Decimal("0")
    for subscription in subscriptions:
        if not subscription.is_active:
            continue
        total += convert(subscription.amount, subscription.currency, display_currency)
    return total.quantize(_CENT, rounding=ROUND_HALF_UP)


def yearly_total(
    subscriptions: Iterable[StoredSubscription], display_currency: str
) -> Decimal:
    """Return the yearly projection of :func:`monthly_total`."""
    return monthly_total(subscriptions, display_currency) * 12


__all__ = [
    "EXCHANGE_RATES",
    "SUPPORTED_CURRENCIES",
    "convert",
    "monthly_total",
    "yearly_total",
]
