"""Keyword and regex scorer used when no oracle is configured."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ..core.datetime_utils import add_one_month
from ..core.models import ClassificationResult, Currency, ExtractedContent
from .catalog import DEFAULT_CATALOG, ServiceCatalog
from .category import CategoryMapper
from .rules import DEFAULT_RULES, Rule, ScoreCard, score_email

LOGGER = logging.getLogger(__name__)

_MIN_AMOUNT = Decimal("0.99")
_MAX_AMOUNT = Decimal("500")
_FALLBACK_MIN = Decimal("1")

_AMOUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:charged|billed|paid)\s*[$€£](\d+(?:\.\d{2})?)"),
    re.compile(r"(?:amount|total|charge|bill|payment)[:\s]*[$€£](\d+(?:\.\d{2})?)"),
    re.compile(r"[$€£](\d+(?:\.\d{2})?)(?:\s*(?:per month|monthly|/month))?"),
    re.compile(r"(\d+(?:\.\d{2})?)\s*(?:usd|eur|gbp|aed|\$)"),
    re.compile(
        r"(?:subscription|plan|membership)\s*(?:fee|cost|price)[:\s]*[$€£]?(\d+(?:\.\d{2})?)"
    ),
    re.compile(r"(?:price|cost|fee)[:\s]*(\d+(?:\.\d{2})?)"),
    re.compile(r"(?:renew|renewal)[:\s]*[$€£]?(\d+(?:\.\d{2})?)"),
    re.compile(r"(?:^|\s)(\d{1,3}(?:\.\d{2})?)\s*(?:usd|dollars?|per\s+month|monthly)"),
)
_BARE_NUMBER = re.compile(r"(\d{1,3}(?:\.\d{2})?)")

_DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"next\s+(?:billing|payment|renewal)[:\s]*([a-z]+\s+\d{1,2},?\s+\d{4})"),
    re.compile(r"due\s+(?:date|on)[:\s]*([a-z]+\s+\d{1,2},?\s+\d{4})"),
    re.compile(r"renews?\s+(?:on)?[:\s]*([a-z]+\s+\d{1,2},?\s+\d{4})"),
    re.compile(r"(\d{1,2}/\d{1,2}/\d{4})"),
    re.compile(r"(\d{4}-\d{1,2}-\d{1,2})"),
)
_DATE_FORMATS = ("%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%m/%d/%Y", "%Y-%m-%d")

_SUBSCRIPTION_KEYWORDS = ("subscription", "membership", "plan", "billing", "invoice")
_GENERIC_SENDER_NAMES = ("noreply", "support", "billing", "team")
_DISPLAY_NAME = re.compile(r"^([^<]+)<")
_SENDER_DOMAIN = re.compile(r"@([^.]+)")
_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE = re.compile(r"\s+")

UNKNOWN_SERVICE = "Unknown Service"


@dataclass(slots=True)
class HeuristicClassifier:
    """Score an email against weighted indicator rules and extract details."""

    catalog: ServiceCatalog = DEFAULT_CATALOG
    rules: Sequence[Rule] = DEFAULT_RULES
    today: date | None = None
    _categories: CategoryMapper = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._categories = CategoryMapper(self.catalog)

    @property
    def provider_id(self) -> str:
        return "heuristic"

    @property
    def requires_pacing(self) -> bool:
        return False

    def classify(self, content: ExtractedContent) -> ClassificationResult:
        """Return the decision for ``content``; never ``None``."""
        subject = content.subject or ""
        sender = content.sender or ""
        text = f"{subject} {content.plain_text} {sender}".lower()
        card = score_email(text, sender, rules=self.rules, catalog=self.catalog)
        LOGGER.debug(
            "Scored %r from %r: subscription=%d promotional=%d cancellation=%d monthly=%d",
            subject,
            sender,
            card.subscription,
            card.promotional,
            card.cancellation,
            card.monthly_charge,
        )

        if card.cancellation >= 3:
            service_name = self.extract_service_name(sender, subject, text)
            return ClassificationResult(
                is_subscription=True,
                kind="cancellation",
                service_name=service_name,
                category=self._categories.categorize(service_name),
                confidence=_clamp(card.cancellation),
                rationale=card.matches,
                description=_describe(subject),
                source_subject=subject,
                source_sender=sender,
                source_date=content.date_received,
            )

        has_keywords = any(keyword in text for keyword in _SUBSCRIPTION_KEYWORDS)
        if not _passes_acceptance(card, text, has_keywords):
            return _reject(card, content, "failed acceptance test")

        service_name = self.extract_service_name(sender, subject, text)
        amount, currency = _extract_amount(text)
        is_free_tier = False

        if amount is None and card.is_known_service and has_keywords:
            amount = _fallback_amount(content.plain_text)
            if amount is None and "membership" in text and "invoice" in text:
                amount = self.catalog.membership_invoice_placeholder
                LOGGER.debug("Using placeholder amount for %s membership", service_name)

        if amount is None:
            if "free" not in text:
                return _reject(card, content, "no subscription amount found")
            amount = Decimal("0")
            currency = "USD"
            is_free_tier = True

        if not _passes_final_gate(card, text, service_name, amount, has_keywords):
            return _reject(card, content, "failed final validation")

        renewal = _extract_renewal_date(text, self.today or date.today())
        return ClassificationResult(
            is_subscription=True,
            kind="subscription",
            service_name=service_name,
            amount=amount,
            currency=currency,
            renewal_day=renewal.day,
            next_renewal_date=renewal,
            category=self._categories.categorize(service_name),
            confidence=_clamp(card.subscription),
            is_monthly_charge=card.monthly_charge >= 2,
            rationale=card.matches,
            has_payment_history=card.has_payment_history,
            has_consistent_renewal_date=card.has_consistent_renewal_date,
            is_free_tier=is_free_tier,
            description=_describe(subject),
            source_subject=subject,
            source_sender=sender,
            source_date=content.date_received,
        )

    def extract_service_name(self, sender: str, subject: str, text: str) -> str:
        """Resolve a display name for the service behind an email."""
        sender_lower = sender.lower()
        name = self.catalog.match_brand(sender_lower, subject.lower(), text)
        if name is None:
            name = self.catalog.match_trusted(sender_lower, text)
        if name is None:
            match = _DISPLAY_NAME.match(sender)
            display = match.group(1).strip().strip('"') if match else ""
            if display and not any(
                generic in display.lower() for generic in _GENERIC_SENDER_NAMES
            ):
                name = display
        if name is None:
            match = _SENDER_DOMAIN.search(sender)
            if match:
                name = match.group(1)

        cleaned = _WHITESPACE.sub(" ", _NON_ALPHANUMERIC.sub(" ", name or "")).strip()
        if not cleaned:
            return UNKNOWN_SERVICE
        return cleaned.title()


def _passes_acceptance(card: ScoreCard, text: str, has_keywords: bool) -> bool:
    score = card.subscription
    if score < 2:
        return False
    if not (card.promotional <= score or score >= 5):
        return False
    known = card.is_known_service
    return (
        card.monthly_charge >= 1
        or card.has_payment_history
        or card.has_consistent_renewal_date
        or score >= 4
        or (known and has_keywords)
        or ("membership" in text and "invoice" in text)
        or ("subscription" in text and "renewed" in text)
        or ("receipt" in text and known)
        or ("payment confirmation" in text and known)
        or (known and score >= 2)
        or (("billed" in text or "charged" in text) and score >= 3)
    )


def _passes_final_gate(
    card: ScoreCard,
    text: str,
    service_name: str,
    amount: Decimal,
    has_keywords: bool,
) -> bool:
    if len(service_name) < 2:
        return False
    if amount < 0 or amount > _MAX_AMOUNT:
        return False
    score = card.subscription
    if card.is_known_service and has_keywords:
        return score >= 2
    if "membership" in text and "invoice" in text and score >= 3:
        return True
    if "subscription" in text and "renewed" in text and score >= 3:
        return True
    return score >= 4


def _extract_amount(text: str) -> tuple[Decimal | None, Currency]:
    for pattern in _AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        value = _to_decimal(match.group(1))
        if value is not None and _MIN_AMOUNT < value < _MAX_AMOUNT:
            return value, _detect_currency(match.group(0))
    return None, "USD"


def _fallback_amount(body: str) -> Decimal | None:
    for raw in _BARE_NUMBER.findall(body):
        value = _to_decimal(raw)
        if value is not None and _FALLBACK_MIN <= value <= _MAX_AMOUNT:
            return value
    return None


def _detect_currency(fragment: str) -> Currency:
    fragment = fragment.lower()
    if "eur" in fragment or "€" in fragment:
        return "EUR"
    if "gbp" in fragment or "£" in fragment:
        return "GBP"
    if "aed" in fragment:
        return "AED"
    return "USD"


def _extract_renewal_date(text: str, today: date) -> date:
    for pattern in _DATE_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        parsed = _parse_date(match.group(1))
        if parsed is not None and parsed > today:
            return parsed
    return add_one_month(today)


def _parse_date(value: str) -> date | None:
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def _to_decimal(raw: str) -> Decimal | None:
    try:
        return Decimal(raw)
    except InvalidOperation:
        return None


def _clamp(score: int) -> int:
    return max(1, min(score, 10))


def _describe(subject: str) -> str:
    suffix = "..." if len(subject) > 50 else ""
    return f"Auto-detected from email: {subject[:50]}{suffix}"


def _reject(
    card: ScoreCard, content: ExtractedContent, reason: str
) -> ClassificationResult:
    LOGGER.debug("Rejected %r: %s", content.subject, reason)
    return ClassificationResult(
        is_subscription=False,
        kind="none",
        confidence=_clamp(card.subscription),
        rationale=(*card.matches, reason),
        source_subject=content.subject,
        source_sender=content.sender,
        source_date=content.date_received,
    )


__all__ = ["HeuristicClassifier", "UNKNOWN_SERVICE"]
