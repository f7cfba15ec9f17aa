"""Classifier backed by an external LLM oracle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationError

from ..core.config import OracleSettings
from ..core.datetime_utils import add_one_month, next_renewal, parse_date
from ..core.models import ClassificationResult, Currency, ExtractedContent
from .catalog import DEFAULT_CATALOG, ServiceCatalog
from .category import CategoryMapper
from .llm import LLMClient, LLMError, OpenAIChatClient
from .prompts import build_system_prompt, build_user_prompt

LOGGER = logging.getLogger(__name__)

_MAX_AMOUNT = Decimal("500")


class OracleVerdict(BaseModel):
    """JSON object the oracle must return for each email."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    is_subscription: StrictBool = Field(alias="isSubscription")
    kind: Literal["subscription", "cancellation", "receipt", "renewal"] | None = Field(
        default=None, alias="type"
    )
    service_name: str | None = Field(default=None, alias="serviceName")
    amount: Decimal | None = None
    currency: Currency | None = None
    next_renewal_date: str | None = Field(default=None, alias="nextRenewalDate")
    renewal_day: int | None = Field(default=None, alias="renewalDay")
    category: str | None = None
    confidence: float
    is_monthly_charge: bool = Field(default=False, alias="isMonthlyCharge")
    description: str | None = None
    reasons: list[str] = Field(default_factory=list)


@dataclass(slots=True)
class OracleClassifier:
    """Classify emails with one stateless oracle request each."""

    settings: OracleSettings
    client: LLMClient | None = None
    catalog: ServiceCatalog = DEFAULT_CATALOG
    today: date | None = None
    _categories: CategoryMapper = field(init=False, repr=False)
    _system_prompt: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.client is None and self.settings.api_key:
            self.client = OpenAIChatClient(self.settings)
        self._categories = CategoryMapper(self.catalog)
        self._system_prompt = build_system_prompt(self.catalog)

    def is_configured(self) -> bool:
        """Return ``True`` when an oracle credential is available."""
        return bool(self.settings.api_key) and self.client is not None

    @property
    def provider_id(self) -> str:
        if self.client is None:
            return "oracle:unconfigured"
        return self.client.provider_id

    @property
    def requires_pacing(self) -> bool:
        return True

    def classify(self, content: ExtractedContent) -> ClassificationResult | None:
        """Return the oracle's decision, or ``None`` when it cannot be obtained."""
        if not self.is_configured() or self.client is None:
            LOGGER.warning("Oracle classification requested without credentials")
            return None

        user_prompt = build_user_prompt(
            content, body_char_limit=self.settings.body_char_limit
        )
        LOGGER.debug(
            "Classifying %r from %r (%d chars)",
            content.subject,
            content.sender,
            content.content_length,
        )
        try:
            raw = self.client.complete_json(self._system_prompt, user_prompt)
            verdict = OracleVerdict.model_validate_json(raw)
        except LLMError as exc:
            LOGGER.warning("Oracle request failed for %s: %s", content.message_id, exc)
            return None
        except ValidationError as exc:
            LOGGER.warning(
                "Oracle returned an invalid verdict for %s: %s",
                content.message_id,
                exc.errors(include_url=False),
            )
            return None

        return self._to_result(verdict, content)

    def _to_result(
        self, verdict: OracleVerdict, content: ExtractedContent
    ) -> ClassificationResult:
        confidence = max(1, min(round(verdict.confidence), 10))
        reasons = tuple(reason.strip() for reason in verdict.reasons if reason.strip())
        service_name = (verdict.service_name or "").strip()

        if not verdict.is_subscription:
            return self._reject(content, confidence, reasons)
        if not service_name:
            return self._reject(content, confidence, (*reasons, "missing service name"))

        category = self._categories.normalize(verdict.category, service_name)
        amount = verdict.amount if verdict.amount and verdict.amount > 0 else None

        if verdict.kind == "cancellation":
            return ClassificationResult(
                is_subscription=True,
                kind="cancellation",
                service_name=service_name,
                amount=amount,
                currency=verdict.currency,
                category=category,
                confidence=confidence,
                rationale=reasons,
                description=verdict.description,
                source_subject=content.subject,
                source_sender=content.sender,
                source_date=content.date_received,
                provider=self.provider_id,
            )

        if amount is None or amount >= _MAX_AMOUNT:
            return self._reject(content, confidence, (*reasons, "no usable amount"))

        renewal = self._resolve_renewal(verdict)
        return ClassificationResult(
            is_subscription=True,
            kind=verdict.kind or "subscription",
            service_name=service_name,
            amount=amount,
            currency=verdict.currency or "USD",
            renewal_day=renewal.day,
            next_renewal_date=renewal,
            category=category,
            confidence=confidence,
            is_monthly_charge=verdict.is_monthly_charge,
            rationale=reasons,
            description=verdict.description,
            source_subject=content.subject,
            source_sender=content.sender,
            source_date=content.date_received,
            provider=self.provider_id,
        )

    def _resolve_renewal(self, verdict: OracleVerdict) -> date:
        today = self.today or date.today()
        try:
            parsed = parse_date(verdict.next_renewal_date)
        except ValueError:
            LOGGER.debug("Ignoring unparsable renewal date %r", verdict.next_renewal_date)
            parsed = None
        if parsed is not None:
            return parsed
        if verdict.renewal_day is not None and 1 <= verdict.renewal_day <= 31:
            return next_renewal(verdict.renewal_day, today)
        return add_one_month(today)

    def _reject(
        self,
        content: ExtractedContent,
        confidence: int,
        reasons: tuple[str, ...],
    ) -> ClassificationResult:
        return ClassificationResult(
            is_subscription=False,
            kind="none",
            confidence=confidence,
            rationale=reasons,
            source_subject=content.subject,
            source_sender=content.sender,
            source_date=content.date_received,
            provider=self.provider_id,
        )


__all__ = ["OracleClassifier", "OracleVerdict"]
