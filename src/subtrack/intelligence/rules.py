"""Weighted keyword and pattern rules for the heuristic classifier.

Each rule contributes to one of four scores. The rule table is plain data and
:func:`score_email` is a pure fold over it, so thresholds can be tuned without
touching control flow.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from .catalog import DEFAULT_CATALOG, ServiceCatalog

ScoreTarget = Literal["promotional", "subscription", "cancellation", "monthly_charge"]
Field = Literal["text", "sender"]
Mode = Literal["each", "any"]

PROMOTIONAL_INDICATORS: tuple[str, ...] = (
    "sale",
    "discount",
    "offer",
    "deal",
    "promo",
    "special",
    "limited time",
    "save",
    "off",
    "free trial",
    "try free",
    "start your free",
    "get started",
    "sign up",
    "subscribe now",
    "join today",
    "upgrade now",
    "unlock",
    "click here",
    "learn more",
    "find out",
    "discover",
    "explore",
    "dont miss",
    "don't miss",
    "hurry",
    "act now",
    "expires",
    "newsletter",
    "updates",
    "announcement",
    "introducing",
    "new feature",
    "coming soon",
    "beta",
    "early access",
    "invitation",
    "invite",
    "unsubscribe",
    "opt out",
    "manage preferences",
    "email preferences",
)

PAID_INDICATORS: tuple[str, ...] = (
    "payment successful",
    "payment confirmed",
    "payment received",
    "charged",
    "billed",
    "invoice",
    "receipt",
    "billing",
    "payment processed",
    "transaction complete",
    "payment method charged",
    "payment confirmation",
    "membership invoice",
    "your receipt",
    "payment receipt",
    "billing receipt",
    "invoice receipt",
    "transaction receipt",
    "renewal",
    "renewed",
    "subscription renewed",
    "auto-renewal",
    "next billing",
    "upcoming payment",
    "payment due",
    "recurring payment",
    "subscription continues",
    "plan continues",
    "auto-renew",
    "will be renewed",
    "subscription to",
    "membership expires",
    "transaction",
    "purchase",
    "order confirmation",
    "subscription active",
    "plan activated",
    "service continues",
    "monthly billing",
    "annual billing",
    "subscription payment",
    "your plan",
    "your subscription",
    "monthly charge",
    "annual fee",
    "subscription fee",
    "membership fee",
    "recurring charge",
    "subscription cost",
    "billing amount",
    "payment amount",
)

CANCELLATION_INDICATORS: tuple[str, ...] = (
    "subscription cancelled",
    "subscription canceled",
    "plan cancelled",
    "plan canceled",
    "membership cancelled",
    "membership canceled",
    "service cancelled",
    "service canceled",
    "account closed",
    "subscription ended",
    "plan ended",
    "service ended",
    "cancelled your subscription",
    "canceled your subscription",
    "subscription will end",
    "plan will end",
    "service will end",
    "final payment",
    "last billing",
    "final invoice",
    "no longer be charged",
    "billing has stopped",
    "payments have stopped",
    "auto-renewal disabled",
    "auto-renew disabled",
    "recurring billing stopped",
    "subscription termination",
    "account deactivated",
    "service discontinued",
)

MONTHLY_INDICATORS: tuple[str, ...] = (
    "monthly subscription",
    "monthly plan",
    "monthly billing",
    "monthly charge",
    "monthly payment",
    "monthly fee",
    "billed monthly",
    "charged monthly",
    "recurring monthly",
    "per month",
    "/month",
    "every month",
    "monthly recurring",
    "monthly membership",
    "monthly service",
)

# Matched against the sender only.
EXCLUDED_SENDERS: tuple[str, ...] = (
    "marketing",
    "promo",
    "deals",
    "offers",
    "newsletter",
    "updates",
    "news",
    "info",
    "hello",
    "hi",
    "team",
    "support",
)

MANAGEMENT_PHRASES: tuple[str, ...] = (
    "manage subscription",
    "cancel subscription",
    "billing details",
    "payment method",
)

STRONG_PROMOTIONAL_PHRASES: tuple[str, ...] = (
    "free trial",
    "try free",
    "sign up now",
    "get started free",
    "upgrade now",
)

SPECIFIC_AMOUNT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\$\d+\.\d{2}"),
    re.compile(r"\d+\.\d{2}\s*(?:usd|eur|gbp)"),
)

PAYMENT_HISTORY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:previous|last|prior)\s+(?:payment|charge|billing)\s*:?\s*\$?(\d+(?:\.\d{2})?)"
    ),
    re.compile(r"(?:charged|billed)\s+(?:last|previous)\s+month\s*:?\s*\$?(\d+(?:\.\d{2})?)"),
    re.compile(r"(?:recurring|monthly)\s+(?:charge|payment)\s*:?\s*\$?(\d+(?:\.\d{2})?)"),
    re.compile(r"(?:payment\s+history|billing\s+history|transaction\s+history)"),
)

RENEWAL_DATE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"(?:renews?|bills?|charges?)\s+(?:on\s+)?(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?"
        r"\s+(?:of\s+)?(?:each|every)\s+month"
    ),
    re.compile(r"(?:monthly|recurring)\s+(?:on\s+)?(?:the\s+)?(\d{1,2})(?:st|nd|rd|th)?"),
    re.compile(
        r"(?:next|upcoming)\s+(?:payment|charge|billing)\s*:?\s*([a-z]+\s+\d{1,2},?\s+\d{4})"
    ),
)


@dataclass(frozen=True, slots=True)
class KeywordRule:
    """Add ``weight`` for substring hits of ``keywords`` in ``field``."""

    name: str
    keywords: tuple[str, ...]
    weight: int
    target: ScoreTarget
    mode: Mode = "each"
    field: Field = "text"


@dataclass(frozen=True, slots=True)
class PatternRule:
    """Add ``weight`` for regex hits; optionally raise ``flag``."""

    name: str
    patterns: tuple[re.Pattern[str], ...]
    weight: int
    target: ScoreTarget
    mode: Mode = "each"
    flag: str | None = None


Rule = KeywordRule | PatternRule

DEFAULT_RULES: tuple[Rule, ...] = (
    KeywordRule("promotional", PROMOTIONAL_INDICATORS, 1, "promotional"),
    KeywordRule("paid", PAID_INDICATORS, 2, "subscription"),
    KeywordRule("cancellation", CANCELLATION_INDICATORS, 3, "cancellation"),
    KeywordRule("monthly", MONTHLY_INDICATORS, 2, "monthly_charge"),
    KeywordRule("excluded-sender", EXCLUDED_SENDERS, 1, "promotional", field="sender"),
    PatternRule("specific-amount", SPECIFIC_AMOUNT_PATTERNS, 2, "subscription", "any"),
    KeywordRule("management", MANAGEMENT_PHRASES, 2, "subscription", "any"),
    KeywordRule("strong-promotional", STRONG_PROMOTIONAL_PHRASES, 3, "promotional", "any"),
    PatternRule(
        "payment-history",
        PAYMENT_HISTORY_PATTERNS,
        2,
        "subscription",
        flag="has_payment_history",
    ),
    PatternRule(
        "renewal-date",
        RENEWAL_DATE_PATTERNS,
        2,
        "subscription",
        flag="has_consistent_renewal_date",
    ),
)


@dataclass(frozen=True, slots=True)
class ScoreCard:
    """Totals produced by folding the rule table over one email."""

    promotional: int = 0
    subscription: int = 0
    cancellation: int = 0
    monthly_charge: int = 0
    flags: frozenset[str] = frozenset()
    trusted_services: tuple[str, ...] = ()
    matches: tuple[str, ...] = ()

    @property
    def is_known_service(self) -> bool:
        return bool(self.trusted_services)

    @property
    def has_payment_history(self) -> bool:
        return "has_payment_history" in self.flags

    @property
    def has_consistent_renewal_date(self) -> bool:
        return "has_consistent_renewal_date" in self.flags


def score_email(
    text: str,
    sender: str,
    *,
    rules: Sequence[Rule] = DEFAULT_RULES,
    catalog: ServiceCatalog = DEFAULT_CATALOG,
) -> ScoreCard:
    """Fold ``rules`` over lower-cased ``text`` and ``sender``.

    Trusted services from ``catalog`` add one subscription point each when
    named in either the sender or the text.
    """
    text = text.lower()
    sender = sender.lower()
    totals = {"promotional": 0, "subscription": 0, "cancellation": 0, "monthly_charge": 0}
    flags: set[str] = set()
    matches: list[str] = []

    for rule in rules:
        hits = _rule_hits(rule, text, sender)
        if not hits:
            continue
        count = 1 if rule.mode == "any" else len(hits)
        totals[rule.target] += rule.weight * count
        if isinstance(rule, PatternRule) and rule.flag:
            flags.add(rule.flag)
        matches.extend(f"{rule.name}:{hit}" for hit in hits[:count])

    trusted = catalog.trusted_matches(sender, text)
    totals["subscription"] += len(trusted)
    matches.extend(f"trusted:{service}" for service in trusted)

    return ScoreCard(
        promotional=totals["promotional"],
        subscription=totals["subscription"],
        cancellation=totals["cancellation"],
        monthly_charge=totals["monthly_charge"],
        flags=frozenset(flags),
        trusted_services=trusted,
        matches=tuple(matches),
    )


def _rule_hits(rule: Rule, text: str, sender: str) -> list[str]:
    if isinstance(rule, KeywordRule):
        haystack = sender if rule.field == "sender" else text
        return [keyword for keyword in rule.keywords if keyword in haystack]
    return [pattern.pattern for pattern in rule.patterns if pattern.search(text)]


__all__ = [
    "DEFAULT_RULES",
    "KeywordRule",
    "PatternRule",
    "Rule",
    "ScoreCard",
    "score_email",
]
