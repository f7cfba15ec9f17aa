"""Protocol interfaces for decoupling components."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, Protocol

from .models import (
    ClassificationResult,
    ExtractedContent,
    ImportReport,
    MailAccount,
    StoredSubscription,
    SubscriptionCandidate,
    SubscriptionStats,
)


class MessageFormatError(ValueError):
    """Raised when a provider message resource has an unexpected shape."""


class ExtractionError(RuntimeError):
    """Raised when a single body part cannot be decoded."""


class ClassificationError(RuntimeError):
    """Raised when a message cannot be classified at all."""


class SubscriptionClassifier(Protocol):
    """Turns extracted email content into a subscription decision."""

    @property
    def provider_id(self) -> str:
        """Identifier recorded on every result."""
        raise NotImplementedError

    @property
    def requires_pacing(self) -> bool:
        """Whether calls hit a rate-limited external service."""
        raise NotImplementedError

    def classify(self, content: ExtractedContent) -> ClassificationResult | None:
        """Return a decision, or ``None`` when classification failed."""
        raise NotImplementedError


class SubscriptionRepository(Protocol):
    """Abstraction for subscription persistence."""

    def create(self, subscription: StoredSubscription) -> StoredSubscription:
        """Insert a subscription and return it with its identifier."""
        raise NotImplementedError

    def get(self, user_id: str, subscription_id: int) -> StoredSubscription | None:
        """Return one subscription owned by the user."""
        raise NotImplementedError

    def update(
        self, user_id: str, subscription_id: int, changes: Mapping[str, Any]
    ) -> StoredSubscription | None:
        """Apply field changes; ``None`` when the subscription is unknown."""
        raise NotImplementedError

    def deactivate(
        self, user_id: str, subscription_id: int, *, reason: str = ""
    ) -> StoredSubscription | None:
        """Mark a subscription inactive."""
        raise NotImplementedError

    def list_active(
        self, user_id: str, *, limit: int | None = None
    ) -> list[StoredSubscription]:
        """Return active subscriptions ordered by next renewal."""
        raise NotImplementedError

    def upcoming(self, user_id: str, limit: int = 5) -> list[StoredSubscription]:
        """Return the soonest active renewals."""
        raise NotImplementedError

    def active_service_names(self, user_id: str) -> set[str]:
        """Return the service names of the user's active subscriptions."""
        raise NotImplementedError

    def find_active_by_name(
        self, user_id: str, service_name: str
    ) -> StoredSubscription | None:
        """Return an active subscription whose name contains ``service_name``."""
        raise NotImplementedError

    def import_scan(
        self,
        user_id: str,
        candidates: Sequence[SubscriptionCandidate],
        cancellations: Sequence[ClassificationResult],
    ) -> ImportReport:
        """Apply cancellations and persist new candidates."""
        raise NotImplementedError

    def stats(
        self, user_id: str, currency: str, *, today: date | None = None
    ) -> SubscriptionStats:
        """Return spend totals for the user."""
        raise NotImplementedError

    def add_account(self, user_id: str, email: str) -> MailAccount:
        """Record a connected mail account."""
        raise NotImplementedError

    def list_accounts(self, user_id: str) -> list[MailAccount]:
        """Return the user's connected mail accounts."""
        raise NotImplementedError

    def close(self) -> None:
        """Close database connections if necessary."""
        raise NotImplementedError


class AccountConnector(Protocol):
    """Exchanges an OAuth authorization code for a connected mail account."""

    def connect(self, user_id: str, code: str) -> str:
        """Return the address of the newly connected account."""
        raise NotImplementedError


__all__ = [
    "AccountConnector",
    "ClassificationError",
    "ExtractionError",
    "MessageFormatError",
    "SubscriptionClassifier",
    "SubscriptionRepository",
]
