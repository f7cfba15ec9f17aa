"""Cheap subject/sender screen applied before full classification."""

from __future__ import annotations

from collections.abc import Iterable

from ..core.models import RawEmail

SUBJECT_KEYWORDS: tuple[str, ...] = (
    "payment",
    "charged",
    "invoice",
    "receipt",
    "billing",
    "subscription",
    "renewal",
    "monthly",
    "annual",
    "membership",
    "plan upgraded",
    "plan renewed",
    "payment confirmation",
    "payment successful",
    "payment processed",
    "your receipt",
    "thank you for your payment",
    "payment notification",
    "auto-renewal",
    "recurring payment",
    "subscription active",
)

SENDER_HINTS: tuple[str, ...] = (
    "noreply",
    "billing",
    "payment",
    "support",
    "accounts",
    "no-reply",
    "stripe",
    "paypal",
    "paddle",
    "apple",
    "google",
    "microsoft",
    "netflix",
    "spotify",
    "adobe",
    "anthropic",
    "openai",
    "github",
    "webflow",
    "namecheap",
    "puregym",
    "leonardo",
    "fal.ai",
    "canva",
)

EXCLUDED_SUBJECT_KEYWORDS: tuple[str, ...] = (
    "newsletter",
    "digest",
    "update available",
    "new feature",
    "discount",
    "sale",
    "offer",
    "promotion",
    "free trial",
    "get started",
    "welcome to",
    "verify your",
    "confirm your",
    "password",
    "security alert",
    "login",
    "unsubscribe",
    "preferences",
    "settings",
    "activate",
    "setup",
)


def is_likely_subscription_email(subject: str, sender: str) -> bool:
    """Return ``True`` when headers alone suggest a billing email."""
    subject_lower = (subject or "").lower()
    sender_lower = (sender or "").lower()

    if any(keyword in subject_lower for keyword in EXCLUDED_SUBJECT_KEYWORDS):
        return False
    if any(keyword in subject_lower for keyword in SUBJECT_KEYWORDS):
        return True
    return any(hint in sender_lower for hint in SENDER_HINTS)


def prefilter(messages: Iterable[RawEmail]) -> list[RawEmail]:
    """Keep only messages whose headers pass :func:`is_likely_subscription_email`."""
    return [
        message
        for message in messages
        if is_likely_subscription_email(message.subject, message.sender)
    ]


__all__ = ["is_likely_subscription_email", "prefilter"]
