"""Adapter around an LLM that classifies ambiguous conversations."""

from __future__ import annotations

import json
import logging
import math
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from triage_engine.core.interfaces import ClassificationError
from triage_engine.core.models import (
    INTENT_CATEGORIES,
    SENTIMENT_LABELS,
    SemanticClassification,
    SemanticFailure,
    SemanticOutcome,
    SemanticRequest,
    SemanticSuccess,
    SentimentLabel,
)

from .llm import LLMClient, LLMError
from .prompts import build_classification_prompt

LOGGER = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?", re.IGNORECASE)


class SemanticResponse(BaseModel):
    """Shape of the JSON object the model is asked to return."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: str | None = None
    priority_score: float | None = Field(default=None, alias="priorityScore")
    sentiment: str | None = None
    requires_human_review: bool = Field(default=False, alias="requiresHumanReview")
    confidence: float | None = None

    @field_validator("category", "sentiment", mode="before")
    @classmethod
    def normalise_label(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return None

    @field_validator("priority_score", "confidence", mode="before")
    @classmethod
    def drop_non_numeric(cls, value: object) -> object:
        # unusable numbers fall back to defaults rather than failing the reply
        if isinstance(value, bool):
            return None
        if isinstance(value, str):
            try:
                value = float(value.strip())
            except ValueError:
                return None
        if isinstance(value, int | float) and math.isfinite(value):
            return value
        return None

    @field_validator("requires_human_review", mode="before")
    @classmethod
    def coerce_flag(cls, value: object) -> bool:
        if isinstance(value, str):
            return value.strip().lower() in {"true", "yes", "1"}
        return bool(value)


def strip_code_fences(raw: str) -> str:
    """Remove markdown code-fence markers wrapping a JSON payload."""
    return _FENCE_PATTERN.sub("", raw).strip()


def parse_semantic_response(
    raw: str, request: SemanticRequest, *, model: str
) -> SemanticClassification:
    """Turn raw model text into a :class:`SemanticClassification`."""
    try:
        payload = json.loads(strip_code_fences(raw))
    except json.JSONDecodeError as exc:
        raise ClassificationError("Semantic output was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ClassificationError("Semantic output must be a JSON object")

    try:
        parsed = SemanticResponse.model_validate(payload)
    except ValidationError as exc:
        raise ClassificationError(f"Semantic output failed validation: {exc}") from exc

    category = request.rule_category
    if parsed.category in INTENT_CATEGORIES:
        category = parsed.category  # type: ignore[assignment]

    sentiment: SentimentLabel = "neutral"
    if parsed.sentiment in SENTIMENT_LABELS:
        sentiment = parsed.sentiment  # type: ignore[assignment]

    score = parsed.priority_score
    if score is None:
        score = request.rule_score
    confidence = 0.5 if parsed.confidence is None else parsed.confidence

    return SemanticClassification(
        category=category,
        priority_score=int(round(max(0.0, min(float(score), 100.0)))),
        sentiment=sentiment,
        requires_human_review=parsed.requires_human_review,
        confidence=max(0.0, min(float(confidence), 1.0)),
        model=model,
    )


class LLMSemanticClassifier:
    """Ask an LLM to classify a conversation; failures become data."""

    def __init__(self, llm_client: LLMClient) -> None:
        self._llm_client = llm_client

    def classify(self, request: SemanticRequest) -> SemanticOutcome:
        """Make exactly one attempt and never raise."""
        prompt = build_classification_prompt(request)
        try:
            raw_output = self._llm_client.generate(prompt)
            classification = parse_semantic_response(
                raw_output, request, model=self._llm_client.provider_id
            )
        except (LLMError, ClassificationError) as exc:
            LOGGER.warning(
                "Semantic classification failed, using rule-based result: %s", exc
            )
            return SemanticFailure(error=str(exc))
        except Exception as exc:  # noqa: BLE001 - collaborator failures degrade
            LOGGER.warning(
                "Semantic classifier raised unexpectedly, using rule-based result: %s",
                exc,
            )
            return SemanticFailure(error=str(exc))

        LOGGER.info(
            "Semantic classification category=%s score=%s confidence=%.2f",
            classification.category,
            classification.priority_score,
            classification.confidence,
        )
        return SemanticSuccess(classification=classification)


__all__ = [
    "LLMSemanticClassifier",
    "SemanticResponse",
    "parse_semantic_response",
    "strip_code_fences",
]
