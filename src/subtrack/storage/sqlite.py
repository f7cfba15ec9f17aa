"""SQLite-backed subscription repository implementation."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping, Sequence
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from types import TracebackType
from typing import Any, cast

from ..core.config import StorageSettings
from ..core.currency import SUPPORTED_CURRENCIES, monthly_total
from ..core.datetime_utils import (
    next_renewal,
    parse_date,
    parse_datetime,
    serialize_date,
    serialize_datetime,
)
from ..core.interfaces import SubscriptionRepository
from ..core.models import (
    ClassificationResult,
    Currency,
    ImportReport,
    MailAccount,
    StoredSubscription,
    SubscriptionCandidate,
    SubscriptionStats,
)

LOGGER = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(days=30)

_SELECT_COLUMNS = """
    id,
    user_id,
    service_name,
    amount,
    currency,
    renewal_day,
    next_renewal_date,
    category,
    description,
    is_active,
    detected_from_email,
    confidence,
    is_recurring,
    payment_count,
    last_payment_date,
    cancellation_date,
    cancellation_reason,
    created_at
"""

# Columns a caller may change through :meth:`SqliteSubscriptionRepository.update`.
_UPDATABLE_COLUMNS = frozenset(
    {
        "service_name",
        "amount",
        "currency",
        "renewal_day",
        "next_renewal_date",
        "category",
        "description",
    }
)


class SqliteSubscriptionRepository(SubscriptionRepository):
    """Persist subscriptions and connected accounts using SQLite."""

    def __init__(self, settings: StorageSettings) -> None:
        """Open the database and apply the bundled schema migrations."""
        self._settings = settings
        db_path = Path(settings.db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._apply_migrations()

    # Context manager helpers -------------------------------------------------
    def __enter__(self) -> SqliteSubscriptionRepository:
        """Enter context manager scope."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Ensure the connection is closed when exiting context manager."""
        self.close()

    # Subscriptions -----------------------------------------------------------
    def create(self, subscription: StoredSubscription) -> StoredSubscription:
        """Insert ``subscription`` and return it with its new identifier."""
        if not subscription.service_name.strip():
            raise ValueError("Service name is required")
        if subscription.currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency {subscription.currency}")
        if subscription.amount < 0:
            raise ValueError("Amount must not be negative")

        renewal = subscription.next_renewal_date or next_renewal(
            subscription.renewal_day
        )
        with self._connection:
            cursor = self._connection.execute(
                """
                INSERT INTO subscriptions (
                    user_id,
                    service_name,
                    amount,
                    currency,
                    renewal_day,
                    next_renewal_date,
                    category,
                    description,
                    is_active,
                    detected_from_email,
                    confidence,
                    is_recurring,
                    payment_count,
                    last_payment_date,
                    cancellation_date,
                    cancellation_reason,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    subscription.user_id,
                    subscription.service_name.strip(),
                    str(subscription.amount),
                    subscription.currency,
                    subscription.renewal_day,
                    serialize_date(renewal),
                    subscription.category,
                    subscription.description,
                    int(subscription.is_active),
                    int(subscription.detected_from_email),
                    subscription.confidence,
                    int(subscription.is_recurring),
                    subscription.payment_count,
                    serialize_datetime(subscription.last_payment_date),
                    serialize_datetime(subscription.cancellation_date),
                    subscription.cancellation_reason,
                    serialize_datetime(subscription.created_at),
                ),
            )
        new_id = cursor.lastrowid
        LOGGER.debug(
            "Created subscription %s (%s) for user %s",
            new_id,
            subscription.service_name,
            subscription.user_id,
        )
        stored = self.get(subscription.user_id, int(new_id or 0))
        if stored is None:  # pragma: no cover - row was just inserted
            raise RuntimeError("Inserted subscription could not be read back")
        return stored

    def get(self, user_id: str, subscription_id: int) -> StoredSubscription | None:
        """Return one subscription owned by ``user_id``."""
        row = self._connection.execute(
            f"SELECT {_SELECT_COLUMNS} FROM subscriptions WHERE id = ? AND user_id = ?",
            (subscription_id, user_id),
        ).fetchone()
        return _row_to_subscription(row) if row is not None else None

    def update(
        self,
        user_id: str,
        subscription_id: int,
        changes: Mapping[str, Any],
    ) -> StoredSubscription | None:
        """Apply ``changes`` and return the updated record, if it exists."""
        unknown = set(changes) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "currency" in changes and changes["currency"] not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency {changes['currency']}")
        if self.get(user_id, subscription_id) is None:
            return None

        values = dict(changes)
        if "renewal_day" in values and "next_renewal_date" not in values:
            values["next_renewal_date"] = next_renewal(int(values["renewal_day"]))
        if not values:
            return self.get(user_id, subscription_id)

        assignments = ", ".join(f"{column} = ?" for column in values)
        params = [_to_column_value(value) for value in values.values()]
        with self._connection:
            self._connection.execute(
                f"UPDATE subscriptions SET {assignments} WHERE id = ? AND user_id = ?",
                (*params, subscription_id, user_id),
            )
        return self.get(user_id, subscription_id)

    def deactivate(
        self,
        user_id: str,
        subscription_id: int,
        *,
        reason: str = "",
    ) -> StoredSubscription | None:
        """Mark a subscription inactive, recording when and why."""
        with self._connection:
            cursor = self._connection.execute(
                """
                UPDATE subscriptions
                SET is_active = 0, cancellation_date = ?, cancellation_reason = ?
                WHERE id = ? AND user_id = ?
                """,
                (
                    serialize_datetime(datetime.now(tz=UTC)),
                    reason,
                    subscription_id,
                    user_id,
                ),
            )
        if cursor.rowcount == 0:
            return None
        LOGGER.info("Deactivated subscription %s: %s", subscription_id, reason or "-")
        return self.get(user_id, subscription_id)

    def list_active(
        self, user_id: str, *, limit: int | None = None
    ) -> list[StoredSubscription]:
        """Return active subscriptions ordered by next renewal date."""
        query = f"""
            SELECT {_SELECT_COLUMNS}
            FROM subscriptions
            WHERE user_id = ? AND is_active = 1
            ORDER BY next_renewal_date IS NULL, next_renewal_date, id
        """
        params: tuple[Any, ...] = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)
        rows = self._connection.execute(query, params).fetchall()
        return [_row_to_subscription(row) for row in rows]

    def upcoming(self, user_id: str, limit: int = 5) -> list[StoredSubscription]:
        """Return the next ``limit`` active renewals."""
        return self.list_active(user_id, limit=limit)

    def active_service_names(self, user_id: str) -> set[str]:
        """Return the service names of the user's active subscriptions."""
        rows = self._connection.execute(
            "SELECT service_name FROM subscriptions WHERE user_id = ? AND is_active = 1",
            (user_id,),
        ).fetchall()
        return {row["service_name"] for row in rows}

    def find_active_by_name(
        self, user_id: str, service_name: str
    ) -> StoredSubscription | None:
        """Return the first active subscription whose name contains ``service_name``."""
        needle = service_name.strip().lower()
        if not needle:
            return None
        row = self._connection.execute(
            f"""
            SELECT {_SELECT_COLUMNS}
            FROM subscriptions
            WHERE user_id = ? AND is_active = 1 AND instr(lower(service_name), ?) > 0
            ORDER BY id
            LIMIT 1
            """,
            (user_id, needle),
        ).fetchone()
        return _row_to_subscription(row) if row is not None else None

    def import_scan(
        self,
        user_id: str,
        candidates: Sequence[SubscriptionCandidate],
        cancellations: Sequence[ClassificationResult],
    ) -> ImportReport:
        """Deactivate cancelled services, then insert new candidates."""
        report = ImportReport(imported=[], cancelled=[], errors=[])

        for cancellation in cancellations:
            if not cancellation.service_name:
                continue
            existing = self.find_active_by_name(user_id, cancellation.service_name)
            if existing is None or existing.id is None:
                continue
            cancelled = self.deactivate(
                user_id,
                existing.id,
                reason=f"Cancelled via email: {cancellation.source_subject}",
            )
            if cancelled is not None:
                report.cancelled.append(cancelled)

        for candidate in candidates:
            name = candidate.service_name.strip()
            if not name or candidate.amount <= 0:
                report.errors.append(f"Missing required fields for {name or 'Unknown'}")
                continue
            if self.find_active_by_name(user_id, name) is not None:
                report.errors.append(f"{name} already exists")
                continue
            try:
                stored = self.create(_candidate_to_subscription(user_id, candidate))
            except (ValueError, sqlite3.Error) as exc:
                LOGGER.warning("Failed to import %s: %s", name, exc)
                report.errors.append(f"Failed to import {name}: {exc}")
                continue
            report.imported.append(stored)

        LOGGER.info(
            "Import for user %s: %d imported, %d cancelled, %d errors",
            user_id,
            len(report.imported),
            len(report.cancelled),
            len(report.errors),
        )
        return report

    def stats(
        self, user_id: str, currency: str, *, today: date | None = None
    ) -> SubscriptionStats:
        """Return spend totals in ``currency`` plus the renewals due within 30 days."""
        if currency not in SUPPORTED_CURRENCIES:
            raise ValueError(f"Unsupported currency {currency}")
        active = self.list_active(user_id)
        total = monthly_total(active, currency)
        horizon = (today or date.today()) + UPCOMING_WINDOW
        upcoming = sum(
            1
            for subscription in active
            if subscription.next_renewal_date is not None
            and subscription.next_renewal_date <= horizon
        )
        return SubscriptionStats(
            currency=cast(Currency, currency),
            total_monthly=total,
            total_yearly=total * 12,
            active_count=len(active),
            upcoming_renewals=upcoming,
        )

    # Mail accounts -----------------------------------------------------------
    def add_account(self, user_id: str, email: str) -> MailAccount:
        """Record a newly connected mail account."""
        connected_at = datetime.now(tz=UTC)
        with self._connection:
            cursor = self._connection.execute(
                "INSERT INTO mail_accounts (user_id, email, connected_at) VALUES (?, ?, ?)",
                (user_id, email, serialize_datetime(connected_at)),
            )
        return MailAccount(
            id=cursor.lastrowid,
            user_id=user_id,
            email=email,
            connected_at=connected_at,
        )

    def list_accounts(self, user_id: str) -> list[MailAccount]:
        """Return the user's connected mail accounts, oldest first."""
        rows = self._connection.execute(
            """
            SELECT id, user_id, email, connected_at
            FROM mail_accounts
            WHERE user_id = ?
            ORDER BY id
            """,
            (user_id,),
        ).fetchall()
        return [
            MailAccount(
                id=row["id"],
                user_id=row["user_id"],
                email=row["email"],
                connected_at=parse_datetime(row["connected_at"]) or datetime.now(tz=UTC),
            )
            for row in rows
        ]

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._connection.close()

    # Internal helpers --------------------------------------------------------
    def _apply_migrations(self) -> None:
        schema_dir = Path(__file__).resolve().parent / "schema"
        for migration in sorted(schema_dir.glob("*.sql")):
            LOGGER.debug("Applying migration %s", migration.name)
            with self._connection:
                self._connection.executescript(migration.read_text(encoding="utf-8"))


def _candidate_to_subscription(
    user_id: str, candidate: SubscriptionCandidate
) -> StoredSubscription:
    return StoredSubscription(
        id=None,
        user_id=user_id,
        service_name=candidate.service_name.strip(),
        amount=candidate.amount,
        currency=candidate.currency,
        renewal_day=candidate.renewal_day,
        next_renewal_date=candidate.next_renewal_date,
        category=candidate.category or "Other",
        description=candidate.description or "Auto-detected from Gmail",
        is_active=True,
        detected_from_email=True,
        confidence=candidate.confidence,
        is_recurring=candidate.is_recurring,
        payment_count=candidate.payment_count,
        last_payment_date=candidate.source_date or datetime.now(tz=UTC),
        cancellation_date=None,
        cancellation_reason="",
        created_at=datetime.now(tz=UTC),
    )


def _to_column_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return serialize_datetime(value)
    if isinstance(value, date):
        return serialize_date(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _row_to_subscription(row: sqlite3.Row) -> StoredSubscription:
    return StoredSubscription(
        id=row["id"],
        user_id=row["user_id"],
        service_name=row["service_name"],
        amount=Decimal(row["amount"]),
        currency=row["currency"],
        renewal_day=row["renewal_day"],
        next_renewal_date=parse_date(row["next_renewal_date"]),
        category=row["category"],
        description=row["description"],
        is_active=bool(row["is_active"]),
        detected_from_email=bool(row["detected_from_email"]),
        confidence=row["confidence"],
        is_recurring=bool(row["is_recurring"]),
        payment_count=row["payment_count"],
        last_payment_date=parse_datetime(row["last_payment_date"]),
        cancellation_date=parse_datetime(row["cancellation_date"]),
        cancellation_reason=row["cancellation_reason"],
        created_at=parse_datetime(row["created_at"]) or datetime.now(tz=UTC),
    )


__all__ = ["SqliteSubscriptionRepository", "UPCOMING_WINDOW"]
