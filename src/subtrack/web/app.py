"""FastAPI application exposing subscription tracking and email scanning."""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from datetime import UTC, date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from ..core import AppSettings, load_app_settings
from ..core.currency import SUPPORTED_CURRENCIES
from ..core.datetime_utils import (
    days_until,
    renewal_urgency,
    serialize_date,
    serialize_datetime,
)
from ..core.interfaces import AccountConnector, SubscriptionRepository
from ..core.models import (
    AccountScanSummary,
    ClassificationResult,
    Currency,
    RawEmail,
    ScanError,
    ScanReport,
    StoredSubscription,
    SubscriptionCandidate,
)
from ..ingestion import GmailMessageParser, SubscriptionScanner
from ..storage import SqliteSubscriptionRepository
from .security import ProcessedCodeCache

LOGGER = logging.getLogger(__name__)

DEFAULT_UPCOMING_LIMIT = 5
MAX_LIMIT = 100
_ENV_FILE_OVERRIDE_VAR = "SUBTRACK_ENV_FILE"
_DEFAULT_ENV_FILE = Path(".env")


# Request payloads ------------------------------------------------------------
class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ScanRequest(_CamelModel):
    """Gmail API ``format=full`` messages, for one mailbox or keyed by account."""

    messages: list[dict[str, Any]] = Field(default_factory=list)
    accounts: dict[str, list[dict[str, Any]]] | None = None


class CandidatePayload(_CamelModel):
    """A detected subscription the user chose to import."""

    service_name: str = Field(default="", alias="serviceName")
    amount: Decimal = Decimal("0")
    currency: Currency = "USD"
    renewal_day: int = Field(default=1, alias="renewalDay", ge=1, le=31)
    next_renewal_date: date | None = Field(default=None, alias="nextRenewalDate")
    category: str = "Other"
    description: str = ""
    confidence: float = 0.0
    is_recurring: bool = Field(default=False, alias="isRecurring")
    payment_count: int = Field(default=1, alias="paymentCount", ge=0)
    email_subject: str = Field(default="", alias="emailSubject")
    email_from: str = Field(default="", alias="emailFrom")

    def to_candidate(self) -> SubscriptionCandidate:
        return SubscriptionCandidate(
            service_name=self.service_name,
            amount=self.amount,
            currency=self.currency,
            renewal_day=self.renewal_day,
            next_renewal_date=self.next_renewal_date or date.today(),
            category=self.category,
            description=self.description,
            confidence=self.confidence,
            is_recurring=self.is_recurring,
            payment_count=self.payment_count,
            source_subject=self.email_subject,
            source_sender=self.email_from,
            source_date=None,
        )


class CancellationPayload(_CamelModel):
    """A detected cancellation the user confirmed."""

    service_name: str = Field(alias="serviceName", min_length=1)
    email_subject: str = Field(default="", alias="emailSubject")
    email_from: str = Field(default="", alias="emailFrom")

    def to_result(self) -> ClassificationResult:
        return ClassificationResult(
            is_subscription=True,
            kind="cancellation",
            service_name=self.service_name,
            source_subject=self.email_subject,
            source_sender=self.email_from,
        )


class ImportRequest(_CamelModel):
    subscriptions: list[CandidatePayload] = Field(default_factory=list)
    cancellations: list[CancellationPayload] = Field(default_factory=list)


class SubscriptionPayload(_CamelModel):
    """Manually entered subscription."""

    service_name: str = Field(alias="serviceName", min_length=1)
    amount: Decimal = Field(ge=0)
    currency: Currency = "USD"
    renewal_day: int = Field(alias="renewalDay", ge=1, le=31)
    category: str = "Other"
    description: str = ""


class SubscriptionUpdate(_CamelModel):
    service_name: str | None = Field(default=None, alias="serviceName", min_length=1)
    amount: Decimal | None = Field(default=None, ge=0)
    currency: Currency | None = None
    renewal_day: int | None = Field(default=None, alias="renewalDay", ge=1, le=31)
    category: str | None = None
    description: str | None = None


class ConnectRequest(_CamelModel):
    code: str = ""


def create_app(
    settings: AppSettings | None = None,
    repository: SubscriptionRepository | None = None,
    connector: AccountConnector | None = None,
    *,
    scanner: SubscriptionScanner | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings(env_file=_resolve_env_file())
    app = FastAPI(title="SubTrack API")

    processed_codes = ProcessedCodeCache(
        capacity=app_settings.web.processed_code_capacity
    )
    message_parser = GmailMessageParser()
    subscription_scanner = scanner or SubscriptionScanner(app_settings)

    # The database is opened on first use so importing the app stays cheap.
    repository_lock = threading.Lock()
    opened: list[SubscriptionRepository] = [repository] if repository is not None else []

    def get_repository() -> Iterator[SubscriptionRepository]:
        with repository_lock:
            if not opened:
                opened.append(SqliteSubscriptionRepository(app_settings.storage))
        yield opened[0]

    def get_user_id(
        x_user_id: str | None = Header(default=None),  # noqa: B008
    ) -> str:
        if not x_user_id or not x_user_id.strip():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing user identity.",
            )
        return x_user_id.strip()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Close the repository on app shutdown."""
        for opened_repository in opened:
            opened_repository.close()
        LOGGER.info("Repository closed")

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Report which classifier a scan would use."""
        return {
            "status": "ok",
            "classifier": subscription_scanner.active_classifier().provider_id,
        }

    # Scanning ----------------------------------------------------------------
    @app.post("/api/scan")
    def scan_messages(
        payload: ScanRequest,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Classify fetched messages and return reviewable detections."""
        existing = repo.active_service_names(user_id)
        parse_errors: list[ScanError] = []
        if payload.accounts is not None:
            by_account: dict[str, list[RawEmail]] = {}
            for account, resources in payload.accounts.items():
                emails, failures = message_parser.parse_each(resources)
                by_account[account] = emails
                parse_errors.extend(failures)
            report = subscription_scanner.scan_accounts(by_account, existing)
        else:
            emails, parse_errors = message_parser.parse_each(payload.messages)
            report = subscription_scanner.scan(emails, existing)
        report.errors = [*parse_errors, *report.errors]
        LOGGER.info(
            "Scan for user %s: %d detected, %d cancellations, %d processed",
            user_id,
            len(report.detected_subscriptions),
            len(report.cancellations),
            report.total_processed,
        )
        return _serialize_report(report)

    @app.post("/api/import")
    def import_detections(
        payload: ImportRequest,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Persist reviewed detections, applying cancellations first."""
        report = repo.import_scan(
            user_id,
            [item.to_candidate() for item in payload.subscriptions],
            [item.to_result() for item in payload.cancellations],
        )
        return {
            "success": True,
            "imported": len(report.imported),
            "cancelled": len(report.cancelled),
            "subscriptions": [_serialize_subscription(item) for item in report.imported],
            "cancelledSubscriptions": [
                _serialize_subscription(item) for item in report.cancelled
            ],
            "errors": report.errors,
        }

    # Subscriptions -----------------------------------------------------------
    @app.get("/api/subscriptions")
    def list_subscriptions(
        limit: int | None = Query(default=None, ge=1, le=MAX_LIMIT),  # noqa: B008
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Return active subscriptions ordered by next renewal."""
        return [
            _serialize_subscription(item)
            for item in repo.list_active(user_id, limit=limit)
        ]

    @app.post("/api/subscriptions", status_code=status.HTTP_201_CREATED)
    def create_subscription(
        payload: SubscriptionPayload,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Store a manually entered subscription."""
        record = StoredSubscription(
            id=None,
            user_id=user_id,
            service_name=payload.service_name.strip(),
            amount=payload.amount,
            currency=payload.currency,
            renewal_day=payload.renewal_day,
            next_renewal_date=None,
            category=payload.category,
            description=payload.description,
            is_active=True,
            detected_from_email=False,
            confidence=0.0,
            is_recurring=False,
            payment_count=1,
            last_payment_date=None,
            cancellation_date=None,
            cancellation_reason="",
            created_at=datetime.now(tz=UTC),
        )
        try:
            stored = repo.create(record)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
            ) from exc
        return _serialize_subscription(stored)

    @app.get("/api/subscriptions/stats")
    def subscription_stats(
        currency: str | None = None,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Return monthly and yearly totals in the requested currency."""
        display_currency = (currency or app_settings.web.display_currency).upper()
        if display_currency not in SUPPORTED_CURRENCIES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported currency {display_currency}",
            )
        stats = repo.stats(user_id, display_currency)
        return {
            "currency": stats.currency,
            "totalMonthly": float(stats.total_monthly),
            "totalYearly": float(stats.total_yearly),
            "activeCount": stats.active_count,
            "upcomingRenewals": stats.upcoming_renewals,
        }

    @app.get("/api/subscriptions/upcoming")
    def upcoming_renewals(
        limit: int = Query(default=DEFAULT_UPCOMING_LIMIT, ge=1, le=MAX_LIMIT),  # noqa: B008
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Return the next renewals with their urgency."""
        today = date.today()
        items: list[dict[str, Any]] = []
        for subscription in repo.upcoming(user_id, limit):
            serialized = _serialize_subscription(subscription)
            if subscription.next_renewal_date is not None:
                days = days_until(subscription.next_renewal_date, today)
                serialized["daysUntilRenewal"] = days
                serialized["urgency"] = renewal_urgency(days)
            items.append(serialized)
        return items

    @app.put("/api/subscriptions/{subscription_id}")
    def update_subscription(
        subscription_id: int,
        payload: SubscriptionUpdate,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Apply a partial update to one subscription."""
        changes = payload.model_dump(exclude_none=True)
        updated = repo.update(user_id, subscription_id, changes)
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Subscription not found.",
            )
        return _serialize_subscription(updated)

    @app.delete("/api/subscriptions/{subscription_id}")
    def delete_subscription(
        subscription_id: int,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Deactivate a subscription; the record is kept for history."""
        removed = repo.deactivate(user_id, subscription_id, reason="Removed by user")
        if removed is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Subscription not found.",
            )
        return {"success": True, "id": subscription_id}

    # Mail accounts -----------------------------------------------------------
    @app.get("/api/accounts")
    def list_accounts(
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> list[dict[str, Any]]:
        """Return the user's connected mail accounts."""
        return [
            {
                "id": account.id,
                "email": account.email,
                "connectedAt": serialize_datetime(account.connected_at),
            }
            for account in repo.list_accounts(user_id)
        ]

    @app.post("/api/accounts/connect")
    def connect_account(
        payload: ConnectRequest,
        user_id: str = Depends(get_user_id),  # noqa: B008
        repo: SubscriptionRepository = Depends(get_repository),  # noqa: B008
    ) -> dict[str, Any]:
        """Exchange an authorization code for a newly connected account."""
        code = payload.code.strip()
        if not code:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Authorization code is required.",
            )
        if connector is None:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Account connection is not configured.",
            )

        key = processed_codes.claim(user_id, code)
        accounts = repo.list_accounts(user_id)
        if len(accounts) >= app_settings.web.max_accounts:
            processed_codes.forget(key)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f"Maximum {app_settings.web.max_accounts} accounts allowed."
                ),
            )

        try:
            email = connector.connect(user_id, code)
        except Exception as exc:  # pylint: disable=broad-except
            processed_codes.forget(key)
            LOGGER.error("Account connection failed for user %s: %s", user_id, exc)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Failed to connect account. Please try again.",
            ) from exc

        normalized = email.strip().lower()
        if any(account.email.lower() == normalized for account in accounts):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Account {email} is already connected.",
            )
        account = repo.add_account(user_id, email.strip())
        LOGGER.info("Connected account %s for user %s", account.email, user_id)
        return {
            "success": True,
            "account": {
                "id": account.id,
                "email": account.email,
                "connectedAt": serialize_datetime(account.connected_at),
            },
        }

    return app


def _serialize_report(report: ScanReport) -> dict[str, Any]:
    return {
        "detectedSubscriptions": [
            _serialize_candidate(candidate) for candidate in report.detected_subscriptions
        ],
        "cancellations": [
            _serialize_cancellation(result) for result in report.cancellations
        ],
        "existingCount": report.existing_count,
        "totalProcessed": report.total_processed,
        "errors": [_serialize_error(error) for error in report.errors],
        "accounts": [_serialize_account_summary(item) for item in report.accounts],
        "cancelled": report.cancelled,
    }


def _serialize_candidate(candidate: SubscriptionCandidate) -> dict[str, Any]:
    return {
        "serviceName": candidate.service_name,
        "amount": float(candidate.amount),
        "currency": candidate.currency,
        "renewalDay": candidate.renewal_day,
        "nextRenewalDate": serialize_date(candidate.next_renewal_date),
        "category": candidate.category,
        "description": candidate.description,
        "confidence": candidate.confidence,
        "isRecurring": candidate.is_recurring,
        "paymentCount": candidate.payment_count,
        "emailSubject": candidate.source_subject,
        "emailFrom": candidate.source_sender,
        "emailDate": serialize_datetime(candidate.source_date),
    }


def _serialize_cancellation(result: ClassificationResult) -> dict[str, Any]:
    return {
        "serviceName": result.service_name,
        "confidence": result.confidence,
        "emailSubject": result.source_subject,
        "emailFrom": result.source_sender,
        "emailDate": serialize_datetime(result.source_date),
    }


def _serialize_error(error: ScanError) -> dict[str, Any]:
    return {
        "messageId": error.message_id,
        "subject": error.subject,
        "error": error.reason,
    }


def _serialize_account_summary(summary: AccountScanSummary) -> dict[str, Any]:
    return {
        "account": summary.account,
        "subscriptionsFound": summary.subscriptions_found,
        "cancellationsFound": summary.cancellations_found,
        "emailsProcessed": summary.emails_processed,
        "errors": summary.errors,
    }


def _serialize_subscription(subscription: StoredSubscription) -> dict[str, Any]:
    return {
        "id": subscription.id,
        "serviceName": subscription.service_name,
        "amount": float(subscription.amount),
        "currency": subscription.currency,
        "renewalDay": subscription.renewal_day,
        "nextRenewalDate": serialize_date(subscription.next_renewal_date),
        "category": subscription.category,
        "description": subscription.description,
        "isActive": subscription.is_active,
        "detectedFromEmail": subscription.detected_from_email,
        "confidence": subscription.confidence,
        "isRecurring": subscription.is_recurring,
        "paymentCount": subscription.payment_count,
        "lastPaymentDate": serialize_datetime(subscription.last_payment_date),
        "cancellationDate": serialize_datetime(subscription.cancellation_date),
        "cancellationReason": subscription.cancellation_reason,
        "createdAt": serialize_datetime(subscription.created_at),
    }


def _resolve_env_file() -> Path:
    override = os.getenv(_ENV_FILE_OVERRIDE_VAR)
    if override:
        return Path(override)
    return _DEFAULT_ENV_FILE


__all__ = ["create_app"]
