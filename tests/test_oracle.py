"""Tests for the LLM-backed classifier and its HTTP client."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from subtrack.core.config import OracleSettings
from subtrack.core.interfaces import ClassificationError
from subtrack.core.models import ExtractedContent
from subtrack.intelligence import LLMError, OpenAIChatClient, OracleClassifier

TODAY = date(2025, 1, 15)


class StubLLM:
    """Stub LLM client returning predefined payloads."""

    def __init__(self, response: str | None, *, raise_error: bool = False) -> None:
        self.response = response
        self.raise_error = raise_error
        self.calls: list[tuple[str, str]] = []

    @property
    def provider_id(self) -> str:
        return "stub-model"

    def complete_json(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.raise_error:
            raise LLMError("stub failure")
        assert self.response is not None
        return self.response


def _content(body: str = "Your Claude Pro subscription for $20/month was charged.") -> ExtractedContent:
    return ExtractedContent(
        message_id="m-1",
        subject="Claude Pro subscription payment",
        sender="Anthropic <billing@anthropic.com>",
        date_received=None,
        plain_text=body,
    )


def _oracle(response: str | None, **kwargs) -> OracleClassifier:
    settings = OracleSettings(api_key="sk-test", body_char_limit=200)
    return OracleClassifier(settings, client=StubLLM(response, **kwargs), today=TODAY)


def _verdict(**overrides) -> str:
    verdict = {
        "isSubscription": True,
        "type": "subscription",
        "serviceName": "Anthropic Claude",
        "amount": 20.0,
        "currency": "USD",
        "nextRenewalDate": "2025-02-03",
        "category": "Software & Productivity",
        "confidence": 9,
        "isMonthlyCharge": True,
        "reasons": ["explicit charge"],
    }
    verdict.update(overrides)
    return json.dumps(verdict)


def test_valid_verdict_is_converted() -> None:
    oracle = _oracle(_verdict())

    result = oracle.classify(_content())

    assert result is not None
    assert result.is_subscription
    assert result.service_name == "Anthropic Claude"
    assert result.amount == Decimal("20.0")
    assert result.next_renewal_date == date(2025, 2, 3)
    assert result.renewal_day == 3
    assert result.confidence == 9
    assert result.rationale == ("explicit charge",)
    assert result.provider == "stub-model"


def test_prompts_carry_catalog_and_truncated_body() -> None:
    oracle = _oracle(_verdict())
    oracle.classify(_content(body="x" * 1000))

    client = oracle.client
    assert isinstance(client, StubLLM)
    system_prompt, user_prompt = client.calls[0]
    assert "Web Services & Hosting" in system_prompt
    assert "AED" in system_prompt
    assert "Claude Pro subscription payment" in user_prompt
    assert "x" * 200 in user_prompt
    assert "x" * 201 not in user_prompt


def test_malformed_json_returns_none() -> None:
    assert _oracle("not json at all").classify(_content()) is None


def test_missing_required_field_returns_none() -> None:
    payload = json.dumps({"serviceName": "Netflix", "confidence": 5})

    assert _oracle(payload).classify(_content()) is None


def test_string_boolean_is_rejected() -> None:
    assert _oracle(_verdict(isSubscription="yes")).classify(_content()) is None


def test_transport_error_returns_none() -> None:
    assert _oracle(None, raise_error=True).classify(_content()) is None


def test_non_subscription_carries_no_details() -> None:
    result = _oracle(
        _verdict(isSubscription=False, serviceName="Shop", amount=None)
    ).classify(_content())

    assert result is not None
    assert not result.is_subscription
    assert result.service_name is None
    assert result.amount is None


def test_subscription_without_usable_amount_is_rejected() -> None:
    for amount in (None, 0, 650):
        result = _oracle(_verdict(amount=amount)).classify(_content())
        assert result is not None
        assert not result.is_subscription


def test_cancellation_verdict_keeps_service() -> None:
    result = _oracle(
        _verdict(type="cancellation", serviceName="Netflix", amount=None, category=None)
    ).classify(_content())

    assert result is not None
    assert result.kind == "cancellation"
    assert result.service_name == "Netflix"
    assert result.category == "Entertainment & Media"


def test_generic_category_is_rederived() -> None:
    result = _oracle(_verdict(serviceName="Spotify", category="Other")).classify(
        _content()
    )

    assert result is not None
    assert result.category == "Music & Audio"


def test_renewal_day_and_default_renewal() -> None:
    by_day = _oracle(_verdict(nextRenewalDate=None, renewalDay=20)).classify(_content())
    defaulted = _oracle(_verdict(nextRenewalDate="soon")).classify(_content())

    assert by_day is not None and by_day.next_renewal_date == date(2025, 1, 20)
    assert defaulted is not None and defaulted.next_renewal_date == date(2025, 2, 15)


def test_confidence_is_clamped() -> None:
    result = _oracle(_verdict(confidence=42)).classify(_content())

    assert result is not None
    assert result.confidence == 10


def test_unconfigured_oracle_is_reported() -> None:
    oracle = OracleClassifier(OracleSettings())

    assert not oracle.is_configured()
    assert oracle.classify(_content()) is None


class _FakeResponse:
    def __init__(self, payload: dict, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("POST", "https://llm.example/v1/chat/completions")
            raise httpx.HTTPStatusError(
                "boom",
                request=request,
                response=httpx.Response(self.status_code, request=request),
            )

    def json(self) -> dict:
        return self._payload


def test_chat_client_posts_json_request(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict = {}

    def fake_post(url: str, **kwargs):
        captured["url"] = url
        captured.update(kwargs)
        return _FakeResponse({"choices": [{"message": {"content": '{"ok": true}'}}]})

    monkeypatch.setattr(httpx, "post", fake_post)
    settings = OracleSettings(
        base_url="https://llm.example/v1", api_key="sk-test", model="tiny"
    )

    content = OpenAIChatClient(settings).complete_json("system", "user")

    assert content == '{"ok": true}'
    assert captured["url"] == "https://llm.example/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer sk-test"
    assert captured["json"]["model"] == "tiny"
    assert captured["json"]["response_format"] == {"type": "json_object"}


def test_chat_client_retries_then_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    attempts: list[str] = []
    sleeps: list[float] = []

    def fake_post(url: str, **kwargs):
        attempts.append(url)
        return _FakeResponse({}, status_code=503)

    monkeypatch.setattr(httpx, "post", fake_post)
    settings = OracleSettings(api_key="sk-test", max_retries=2)

    with pytest.raises(LLMError):
        OpenAIChatClient(settings, sleep=sleeps.append).complete_json("s", "u")

    assert len(attempts) == 3
    assert sleeps == [2, 4]


def test_chat_client_rejects_response_without_choices(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(httpx, "post", lambda url, **kwargs: _FakeResponse({}))

    with pytest.raises(LLMError):
        OpenAIChatClient(OracleSettings(api_key="sk-test")).complete_json("s", "u")


def test_missing_api_key_raises_classification_error() -> None:
    client = OpenAIChatClient(OracleSettings(api_key=None))

    with pytest.raises(ClassificationError):
        client.complete_json("s", "u")


def test_request_timeout_is_a_classification_failure(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    attempts: list[str] = []

    def timing_out_post(url: str, **kwargs):
        attempts.append(url)
        raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr(httpx, "post", timing_out_post)
    settings = OracleSettings(api_key="sk-test", max_retries=1, timeout_seconds=1)
    client = OpenAIChatClient(settings, sleep=lambda _: None)
    oracle = OracleClassifier(settings, client=client, today=TODAY)

    assert oracle.classify(_content()) is None
    assert len(attempts) == 2
