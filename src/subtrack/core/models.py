"""Core domain models used across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

ResultKind = Literal["subscription", "cancellation", "receipt", "renewal", "none"]
Currency = Literal["USD", "EUR", "GBP", "AED"]


@dataclass(slots=True, frozen=True)
class MimePart:
    """One node of a provider message body tree."""

    mime_type: str
    body_data: str | None = None
    children: tuple[MimePart, ...] = ()
    filename: str | None = None


@dataclass(slots=True, frozen=True)
class RawEmail:
    """Message as handed over by the mail provider collaborator."""

    message_id: str | None
    subject: str
    sender: str
    date_received: datetime | None
    payload: MimePart


@dataclass(slots=True, frozen=True)
class ExtractedContent:
    """Flattened, text-only view of a :class:`RawEmail`."""

    message_id: str | None
    subject: str
    sender: str
    date_received: datetime | None
    plain_text: str

    @property
    def content_length(self) -> int:
        """Number of characters of usable body text."""
        return len(self.plain_text)


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True, frozen=True)
class ClassificationResult:
    """Decision produced by either classifier for a single email."""

    is_subscription: bool
    kind: ResultKind
    service_name: str | None = None
    amount: Decimal | None = None
    currency: Currency | None = None
    renewal_day: int | None = None
    next_renewal_date: date | None = None
    category: str | None = None
    confidence: int = 1
    is_monthly_charge: bool = False
    rationale: tuple[str, ...] = ()
    has_payment_history: bool = False
    has_consistent_renewal_date: bool = False
    is_free_tier: bool = False
    description: str | None = None
    source_subject: str = ""
    source_sender: str = ""
    source_date: datetime | None = None
    provider: str = "heuristic"

    def __post_init__(self) -> None:
        if not self.is_subscription and (
            self.service_name is not None
            or self.amount is not None
            or self.category is not None
        ):
            raise ValueError("Rejected results must not carry service details")
        if self.amount is not None:
            if self.amount < 0:
                raise ValueError("amount must not be negative")
            if self.amount == 0 and not self.is_free_tier:
                raise ValueError("a zero amount is reserved for free-tier markers")
        if self.renewal_day is not None and not 1 <= self.renewal_day <= 31:
            raise ValueError("renewal_day must fall within 1..31")
        if not 1 <= self.confidence <= 10:
            raise ValueError("confidence must fall within 1..10")

    @property
    def merge_key(self) -> str | None:
        """Normalised service name used to group detections."""
        if self.service_name is None:
            return None
        return normalize_service_key(self.service_name)


@dataclass(slots=True)
class SubscriptionCandidate:
    """Merged detection ready to be shown to the user or persisted."""

    service_name: str
    amount: Decimal
    currency: Currency
    renewal_day: int
    next_renewal_date: date
    category: str
    description: str
    confidence: float
    is_recurring: bool
    payment_count: int
    source_subject: str
    source_sender: str
    source_date: datetime | None
    has_payment_history: bool = False
    has_consistent_renewal_date: bool = False

    @property
    def merge_key(self) -> str:
        """Normalised service name used to group detections."""
        return normalize_service_key(self.service_name)


@dataclass(slots=True, frozen=True)
class ScanError:
    """Per-message failure recorded during a batch."""

    message_id: str | None
    subject: str
    reason: str


@dataclass(slots=True)
class BatchResult:
    """Buckets accumulated while classifying one list of messages."""

    subscriptions: list[ClassificationResult] = field(default_factory=list)
    cancellations: list[ClassificationResult] = field(default_factory=list)
    non_subscriptions: list[ClassificationResult] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)
    processed: int = 0
    cancelled: bool = False

    def all_results(self) -> list[ClassificationResult]:
        """Return every classified result regardless of bucket."""
        return [*self.subscriptions, *self.cancellations, *self.non_subscriptions]


@dataclass(slots=True)
class MergeOutcome:
    """Result of collapsing detections into unique candidates."""

    candidates: list[SubscriptionCandidate]
    cancellations: list[ClassificationResult]
    already_existing: list[SubscriptionCandidate]
    cancelled_in_batch: list[SubscriptionCandidate]


@dataclass(slots=True, frozen=True)
class AccountScanSummary:
    """Per-account counts reported by a multi-account scan."""

    account: str
    subscriptions_found: int
    cancellations_found: int
    emails_processed: int
    errors: int


@dataclass(slots=True)
class ScanReport:
    """Outcome handed back to the HTTP layer after a scan."""

    detected_subscriptions: list[SubscriptionCandidate]
    cancellations: list[ClassificationResult]
    existing_count: int
    total_processed: int
    errors: list[ScanError] = field(default_factory=list)
    accounts: list[AccountScanSummary] = field(default_factory=list)
    cancelled: bool = False


# pylint: disable=too-many-instance-attributes
@dataclass(slots=True)
class StoredSubscription:
    """Subscription record persisted for a user."""

    id: int | None
    user_id: str
    service_name: str
    amount: Decimal
    currency: Currency
    renewal_day: int
    next_renewal_date: date | None
    category: str
    description: str
    is_active: bool
    detected_from_email: bool
    confidence: float
    is_recurring: bool
    payment_count: int
    last_payment_date: datetime | None
    cancellation_date: datetime | None
    cancellation_reason: str
    created_at: datetime


@dataclass(slots=True)
class ImportReport:
    """Outcome of persisting a reviewed scan."""

    imported: list[StoredSubscription]
    cancelled: list[StoredSubscription]
    errors: list[str]


@dataclass(slots=True, frozen=True)
class SubscriptionStats:
    """Aggregated spend figures for a user."""

    currency: Currency
    total_monthly: Decimal
    total_yearly: Decimal
    active_count: int
    upcoming_renewals: int


@dataclass(slots=True, frozen=True)
class MailAccount:
    """Mail account connected by a user for scanning."""

    id: int | None
    user_id: str
    email: str
    connected_at: datetime


def normalize_service_key(service_name: str) -> str:
    """Return the merge key for ``service_name`` (trimmed, lower-cased)."""
    return service_name.strip().lower()


__all__ = [
    "AccountScanSummary",
    "BatchResult",
    "ClassificationResult",
    "Currency",
    "ExtractedContent",
    "ImportReport",
    "MailAccount",
    "MergeOutcome",
    "MimePart",
    "RawEmail",
    "ResultKind",
    "ScanError",
    "ScanReport",
    "StoredSubscription",
    "SubscriptionCandidate",
    "SubscriptionStats",
    "normalize_service_key",
]
