"""High level scan service tying classification and merging together."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping, Sequence

from ..core.config import AppSettings
from ..core.interfaces import SubscriptionClassifier
from ..core.models import AccountScanSummary, BatchResult, RawEmail, ScanReport
from ..intelligence.heuristic import HeuristicClassifier
from ..intelligence.merge import MergeEngine
from ..intelligence.oracle import OracleClassifier
from .orchestrator import BatchOrchestrator
from .prefilter import prefilter

LOGGER = logging.getLogger(__name__)


class SubscriptionScanner:
    """Detect subscriptions in fetched messages for one user."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        oracle: OracleClassifier | None = None,
        heuristic: HeuristicClassifier | None = None,
        orchestrator: BatchOrchestrator | None = None,
        merge_engine: MergeEngine | None = None,
    ) -> None:
        self._settings = settings
        self._oracle = oracle if oracle is not None else OracleClassifier(settings.oracle)
        self._heuristic = heuristic or HeuristicClassifier()
        self._orchestrator = orchestrator or BatchOrchestrator(
            group_size=settings.scan.group_size,
            pause_seconds=settings.scan.pause_seconds,
            group_pause_seconds=settings.scan.group_pause_seconds,
        )
        self._merge_engine = merge_engine or MergeEngine()

    def active_classifier(self) -> SubscriptionClassifier:
        """Return the oracle when configured, otherwise the heuristic."""
        if self._oracle.is_configured():
            return self._oracle
        return self._heuristic

    def scan(
        self,
        messages: Iterable[RawEmail],
        existing_names: Iterable[str] = (),
        *,
        cancel_event: threading.Event | None = None,
    ) -> ScanReport:
        """Classify one mailbox worth of messages and merge the detections."""
        batch = self._run(list(messages), cancel_event)
        outcome = self._merge_engine.merge(batch.all_results(), existing_names)
        return ScanReport(
            detected_subscriptions=outcome.candidates,
            cancellations=outcome.cancellations,
            existing_count=len(outcome.already_existing),
            total_processed=batch.processed,
            errors=list(batch.errors),
            cancelled=batch.cancelled,
        )

    def scan_accounts(
        self,
        messages_by_account: Mapping[str, Iterable[RawEmail]],
        existing_names: Iterable[str] = (),
        *,
        cancel_event: threading.Event | None = None,
    ) -> ScanReport:
        """Scan several accounts and merge their detections globally."""
        batches: list[BatchResult] = []
        summaries: list[AccountScanSummary] = []
        for account, messages in messages_by_account.items():
            if cancel_event is not None and cancel_event.is_set():
                break
            LOGGER.info("Scanning account %s", account)
            batch = self._run(list(messages), cancel_event)
            batches.append(batch)
            summaries.append(
                AccountScanSummary(
                    account=account,
                    subscriptions_found=len(batch.subscriptions),
                    cancellations_found=len(batch.cancellations),
                    emails_processed=batch.processed,
                    errors=len(batch.errors),
                )
            )

        outcome = self._merge_engine.merge_many(
            [batch.all_results() for batch in batches], existing_names
        )
        return ScanReport(
            detected_subscriptions=outcome.candidates,
            cancellations=outcome.cancellations,
            existing_count=len(outcome.already_existing),
            total_processed=sum(batch.processed for batch in batches),
            errors=[error for batch in batches for error in batch.errors],
            accounts=summaries,
            cancelled=any(batch.cancelled for batch in batches)
            or (cancel_event is not None and cancel_event.is_set()),
        )

    def _run(
        self, messages: Sequence[RawEmail], cancel_event: threading.Event | None
    ) -> BatchResult:
        if self._settings.scan.prefilter_enabled:
            kept = prefilter(messages)
            LOGGER.info("Pre-filter kept %d of %d messages", len(kept), len(messages))
            messages = kept
        limit = self._settings.scan.max_messages
        if limit is not None:
            messages = messages[:limit]
        return self._orchestrator.run_batch(
            messages, self.active_classifier(), cancel_event=cancel_event
        )


__all__ = ["SubscriptionScanner"]
