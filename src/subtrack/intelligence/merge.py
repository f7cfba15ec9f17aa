"""Collapse repeated detections into one candidate per service."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from ..core.datetime_utils import add_one_month
from ..core.models import (
    ClassificationResult,
    MergeOutcome,
    SubscriptionCandidate,
    normalize_service_key,
)
from .category import categorize

LOGGER = logging.getLogger(__name__)

_AMOUNT_TOLERANCE = Decimal("0.01")


class MergeEngine:
    """The single place where duplicate detections are suppressed."""

    def __init__(self, *, today: date | None = None) -> None:
        self._today = today

    def merge(
        self,
        results: Iterable[ClassificationResult],
        existing_active_names: Iterable[str] = (),
    ) -> MergeOutcome:
        """Merge one batch of classification results."""
        return self.merge_many([results], existing_active_names)

    def merge_many(
        self,
        batches: Iterable[Iterable[ClassificationResult]],
        existing_active_names: Iterable[str] = (),
    ) -> MergeOutcome:
        """Merge several batches (e.g. one per account) as a single pool."""
        groups: dict[str, list[ClassificationResult]] = {}
        cancellations: dict[str, ClassificationResult] = {}

        for batch in batches:
            for result in batch:
                key = result.merge_key
                if not key:
                    continue
                if result.kind == "cancellation":
                    cancellations[key] = result
                elif result.is_subscription and result.amount and result.amount > 0:
                    groups.setdefault(key, []).append(result)

        existing_keys = {normalize_service_key(name) for name in existing_active_names}
        candidates: list[SubscriptionCandidate] = []
        already_existing: list[SubscriptionCandidate] = []
        cancelled_in_batch: list[SubscriptionCandidate] = []

        for key, group in groups.items():
            candidate = self._to_candidate(group)
            if key in cancellations:
                LOGGER.debug("Dropping %s: cancelled in the same scan", key)
                cancelled_in_batch.append(candidate)
            elif key in existing_keys:
                LOGGER.debug("Dropping %s: already tracked", key)
                already_existing.append(candidate)
            else:
                candidates.append(candidate)

        return MergeOutcome(
            candidates=candidates,
            cancellations=list(cancellations.values()),
            already_existing=already_existing,
            cancelled_in_batch=cancelled_in_batch,
        )

    def _to_candidate(self, group: Sequence[ClassificationResult]) -> SubscriptionCandidate:
        best = group[0]
        for result in group[1:]:
            if result.confidence > best.confidence:
                best = result

        amounts = [result.amount for result in group if result.amount is not None]
        is_recurring = len(amounts) > 1 and all(
            abs(amount - amounts[0]) < _AMOUNT_TOLERANCE for amount in amounts
        )
        renewal = best.next_renewal_date or add_one_month(self._today or date.today())
        service_name = best.service_name or ""

        return SubscriptionCandidate(
            service_name=service_name,
            amount=best.amount or Decimal("0"),
            currency=best.currency or "USD",
            renewal_day=best.renewal_day or renewal.day,
            next_renewal_date=renewal,
            category=best.category or categorize(service_name),
            description=best.description or "",
            confidence=float(best.confidence),
            is_recurring=is_recurring,
            payment_count=len(group),
            source_subject=best.source_subject,
            source_sender=best.source_sender,
            source_date=best.source_date,
            has_payment_history=any(result.has_payment_history for result in group),
            has_consistent_renewal_date=any(
                result.has_consistent_renewal_date for result in group
            ),
        )


__all__ = ["MergeEngine"]
