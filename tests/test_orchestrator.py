"""Tests for paced batch classification."""

from __future__ import annotations

import base64
import threading
import time
from decimal import Decimal

import httpx
import pytest

from subtrack.core.config import OracleSettings
from subtrack.core.models import ClassificationResult, ExtractedContent, MimePart, RawEmail
from subtrack.ingestion import BatchOrchestrator
from subtrack.intelligence import OpenAIChatClient, OracleClassifier


def _message(index: int, body: str = "body") -> RawEmail:
    data = base64.urlsafe_b64encode(body.encode("utf-8")).decode("ascii")
    return RawEmail(
        message_id=f"m-{index}",
        subject=f"Subject {index}",
        sender="billing@example.com",
        date_received=None,
        payload=MimePart(mime_type="text/plain", body_data=data),
    )


class ScriptedClassifier:
    """Classifier returning a scripted outcome per body text."""

    def __init__(self, *, paced: bool = False) -> None:
        self.paced = paced
        self.seen: list[str] = []

    @property
    def provider_id(self) -> str:
        return "scripted"

    @property
    def requires_pacing(self) -> bool:
        return self.paced

    def classify(self, content: ExtractedContent) -> ClassificationResult | None:
        self.seen.append(content.plain_text)
        if content.plain_text == "boom":
            raise RuntimeError("classifier exploded")
        if content.plain_text == "none":
            return None
        if content.plain_text == "cancel":
            return ClassificationResult(
                is_subscription=True, kind="cancellation", service_name="Netflix"
            )
        if content.plain_text == "reject":
            return ClassificationResult(is_subscription=False, kind="none")
        return ClassificationResult(
            is_subscription=True,
            kind="subscription",
            service_name="Spotify",
            amount=Decimal("9.99"),
            currency="USD",
        )


def test_results_are_routed_into_buckets() -> None:
    messages = [
        _message(1, "sub"),
        _message(2, "cancel"),
        _message(3, "reject"),
        _message(4, "sub"),
    ]

    result = BatchOrchestrator().run_batch(messages, ScriptedClassifier())

    assert len(result.subscriptions) == 2
    assert len(result.cancellations) == 1
    assert len(result.non_subscriptions) == 1
    assert result.errors == []
    assert result.processed == 4
    assert not result.cancelled


def test_failures_are_isolated_per_message() -> None:
    messages = [_message(1, "boom"), _message(2, "none"), _message(3, "sub")]

    result = BatchOrchestrator().run_batch(messages, ScriptedClassifier())

    assert [error.message_id for error in result.errors] == ["m-1", "m-2"]
    assert result.errors[0].reason == "classifier exploded"
    assert result.errors[1].reason == "Analysis failed"
    assert len(result.subscriptions) == 1
    assert result.processed == 3


def test_paced_classifier_sleeps_between_messages_and_groups() -> None:
    sleeps: list[float] = []
    orchestrator = BatchOrchestrator(
        group_size=2, pause_seconds=0.5, group_pause_seconds=2.0, sleep=sleeps.append
    )

    orchestrator.run_batch(
        [_message(index, "sub") for index in range(3)], ScriptedClassifier(paced=True)
    )

    assert sleeps == [0.5, 0.5, 2.0, 0.5]


def test_unpaced_classifier_never_sleeps() -> None:
    sleeps: list[float] = []
    orchestrator = BatchOrchestrator(sleep=sleeps.append)

    orchestrator.run_batch([_message(index, "sub") for index in range(5)], ScriptedClassifier())

    assert sleeps == []


def test_cancel_event_stops_before_next_message() -> None:
    cancel = threading.Event()
    classifier = ScriptedClassifier()
    messages = [_message(index, "sub") for index in range(4)]

    def progress(_: str) -> None:
        if len(classifier.seen) == 1:
            cancel.set()

    orchestrator = BatchOrchestrator(progress_callback=progress)
    result = orchestrator.run_batch(messages, classifier, cancel_event=cancel)

    assert result.cancelled
    assert result.processed == 2
    assert len(classifier.seen) == 2


def test_cancel_during_group_pause_wakes_promptly() -> None:
    cancel = threading.Event()
    classifier = ScriptedClassifier(paced=True)

    def progress(_: str) -> None:
        if classifier.seen:
            return
        threading.Timer(0.05, cancel.set).start()

    orchestrator = BatchOrchestrator(
        group_size=1,
        pause_seconds=0,
        group_pause_seconds=30.0,
        progress_callback=progress,
    )
    started = time.monotonic()
    result = orchestrator.run_batch(
        [_message(index, "sub") for index in range(3)], classifier, cancel_event=cancel
    )

    assert time.monotonic() - started < 5
    assert result.cancelled
    assert result.processed == 1


def test_oracle_timeout_is_recorded_as_message_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def timing_out_post(url: str, **kwargs):
        raise httpx.ConnectTimeout("timed out")

    monkeypatch.setattr(httpx, "post", timing_out_post)
    settings = OracleSettings(api_key="sk-test", max_retries=0)
    oracle = OracleClassifier(settings, client=OpenAIChatClient(settings))
    sleeps: list[float] = []

    result = BatchOrchestrator(sleep=sleeps.append).run_batch(
        [_message(1, "Your plan renews at $9.99/month")], oracle
    )

    assert [error.message_id for error in result.errors] == ["m-1"]
    assert result.errors[0].reason == "Analysis failed"
    assert result.subscriptions == []
    assert result.processed == 1
