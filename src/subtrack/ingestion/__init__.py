"""Ingestion pipeline components."""

from .extractor import EmailContentExtractor
from .orchestrator import BatchOrchestrator
from .parser import GmailMessageParser, Rfc822Parser
from .prefilter import is_likely_subscription_email, prefilter
from .scanner import SubscriptionScanner

__all__ = [
    "BatchOrchestrator",
    "EmailContentExtractor",
    "GmailMessageParser",
    "Rfc822Parser",
    "SubscriptionScanner",
    "is_likely_subscription_email",
    "prefilter",
]
