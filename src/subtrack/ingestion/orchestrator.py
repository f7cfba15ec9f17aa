"""Run fetched messages through a classifier in paced groups."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence

from ..core.interfaces import SubscriptionClassifier
from ..core.models import BatchResult, ClassificationResult, RawEmail, ScanError
from .extractor import EmailContentExtractor

LOGGER = logging.getLogger(__name__)


class BatchOrchestrator:
    """Classify messages sequentially and bucket the outcomes.

    Messages are processed in groups of ``group_size``. Classifiers that call a
    rate-limited service are paced: ``pause_seconds`` after every message and
    ``group_pause_seconds`` between groups. A failure on one message is recorded
    in :attr:`BatchResult.errors` and never aborts the batch.
    """

    def __init__(
        self,
        extractor: EmailContentExtractor | None = None,
        *,
        group_size: int = 3,
        pause_seconds: float = 0.5,
        group_pause_seconds: float = 2.0,
        sleep: Callable[[float], None] | None = None,
        progress_callback: Callable[[str], None] | None = None,
    ) -> None:
        if group_size <= 0:
            raise ValueError("group_size must be positive")
        self._extractor = extractor or EmailContentExtractor()
        self._group_size = group_size
        self._pause_seconds = pause_seconds
        self._group_pause_seconds = group_pause_seconds
        self._sleep = sleep
        self._progress_callback = progress_callback

    def run_batch(
        self,
        messages: Sequence[RawEmail],
        classifier: SubscriptionClassifier,
        *,
        cancel_event: threading.Event | None = None,
    ) -> BatchResult:
        """Classify ``messages`` and return the accumulated buckets."""
        result = BatchResult()
        paced = classifier.requires_pacing
        total_groups = (len(messages) + self._group_size - 1) // self._group_size
        LOGGER.info(
            "Classifying %d messages with %s in %d groups",
            len(messages),
            classifier.provider_id,
            total_groups,
        )

        for group_index, start in enumerate(range(0, len(messages), self._group_size)):
            group = messages[start : start + self._group_size]
            LOGGER.debug("Processing group %d/%d", group_index + 1, total_groups)

            for message in group:
                if cancel_event is not None and cancel_event.is_set():
                    LOGGER.info(
                        "Batch cancelled after %d of %d messages",
                        result.processed,
                        len(messages),
                    )
                    result.cancelled = True
                    return result

                if self._progress_callback:
                    self._progress_callback(
                        f"Classifying message {result.processed + 1}: {message.subject}"
                    )
                self._classify_one(message, classifier, result)
                result.processed += 1

                if paced and self._pause_seconds > 0:
                    self._pause(self._pause_seconds, cancel_event)

            has_more = start + self._group_size < len(messages)
            if paced and has_more and self._group_pause_seconds > 0:
                self._pause(self._group_pause_seconds, cancel_event)

        LOGGER.info(
            "Batch complete: %d subscriptions, %d cancellations, %d rejected, %d errors",
            len(result.subscriptions),
            len(result.cancellations),
            len(result.non_subscriptions),
            len(result.errors),
        )
        return result

    def _pause(self, seconds: float, cancel_event: threading.Event | None) -> None:
        # Waiting on the event wakes up as soon as the batch is cancelled.
        if self._sleep is not None:
            self._sleep(seconds)
        elif cancel_event is not None:
            cancel_event.wait(seconds)
        else:
            time.sleep(seconds)

    def _classify_one(
        self,
        message: RawEmail,
        classifier: SubscriptionClassifier,
        result: BatchResult,
    ) -> None:
        try:
            content = self._extractor.extract(message)
            outcome = classifier.classify(content)
        except Exception as exc:  # pylint: disable=broad-except
            LOGGER.error(
                "Failed to classify message %s: %s",
                message.message_id,
                exc,
                exc_info=True,
            )
            reason = str(exc) or type(exc).__name__
            result.errors.append(ScanError(message.message_id, message.subject, reason))
            return

        if outcome is None:
            LOGGER.warning("No classification for message %s", message.message_id)
            result.errors.append(
                ScanError(message.message_id, message.subject, "Analysis failed")
            )
            return

        _route(outcome, result)


def _route(outcome: ClassificationResult, result: BatchResult) -> None:
    if outcome.kind == "cancellation":
        result.cancellations.append(outcome)
    elif not outcome.is_subscription or outcome.amount is None:
        result.non_subscriptions.append(outcome)
    else:
        result.subscriptions.append(outcome)


__all__ = ["BatchOrchestrator"]
