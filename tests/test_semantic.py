"""Tests for the semantic classifier adapter."""

from __future__ import annotations

import pytest

from triage_engine.core.interfaces import ClassificationError
from triage_engine.core.models import SemanticFailure, SemanticRequest, SemanticSuccess
from triage_engine.intelligence.llm import LLMError
from triage_engine.intelligence.prompts import build_classification_prompt
from triage_engine.intelligence.semantic import (
    LLMSemanticClassifier,
    parse_semantic_response,
    strip_code_fences,
)


class StubLLM:
    """Stub LLM client returning a predefined payload."""

    def __init__(self, response: str | None, *, raise_error: bool = False) -> None:
        self.response = response
        self.raise_error = raise_error
        self.prompts: list[str] = []

    @property
    def provider_id(self) -> str:
        return "stub-model"

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.raise_error:
            raise LLMError("stub failure")
        assert self.response is not None
        return self.response


def _request() -> SemanticRequest:
    return SemanticRequest(
        subject="Parcel question",
        message_previews=("From: jane@example.com - Where is my parcel?",),
        rule_score=55,
        rule_category="delivery_deadline",
    )


def test_strip_code_fences() -> None:
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'


def test_parse_accepts_markdown_wrapped_json() -> None:
    raw = (
        "```json\n"
        '{"category": "order_issue", "priorityScore": 72, "sentiment": "negative",'
        ' "requiresHumanReview": true, "confidence": 0.8}\n'
        "```"
    )

    result = parse_semantic_response(raw, _request(), model="stub")

    assert result.category == "order_issue"
    assert result.priority_score == 72
    assert result.sentiment == "negative"
    assert result.requires_human_review
    assert result.confidence == 0.8
    assert result.model == "stub"


def test_parse_clamps_and_falls_back_to_rule_values() -> None:
    raw = '{"category": "nonsense", "priorityScore": 150, "confidence": 3}'

    result = parse_semantic_response(raw, _request(), model="stub")

    assert result.category == "delivery_deadline"
    assert result.priority_score == 100
    assert result.sentiment == "neutral"
    assert result.confidence == 1.0


def test_parse_uses_rule_score_when_missing() -> None:
    result = parse_semantic_response('{"category": "complaint"}', _request(), model="m")

    assert result.priority_score == 55
    assert result.confidence == 0.5


def test_parse_falls_back_per_field_on_bad_values() -> None:
    raw = (
        '{"category": 7, "priorityScore": "high", "sentiment": "negative",'
        ' "requiresHumanReview": null, "confidence": "unsure"}'
    )

    result = parse_semantic_response(raw, _request(), model="stub")

    assert result.category == "delivery_deadline"
    assert result.priority_score == 55
    assert result.sentiment == "negative"
    assert not result.requires_human_review
    assert result.confidence == 0.5


def test_parse_accepts_numeric_strings_and_text_flags() -> None:
    raw = '{"priorityScore": " 64 ", "requiresHumanReview": "true"}'

    result = parse_semantic_response(raw, _request(), model="stub")

    assert result.priority_score == 64
    assert result.requires_human_review


@pytest.mark.parametrize("raw",["not json", "[1, 2]", "\"text\""])
def test_parse_rejects_unusable_output(raw: str) -> None:
    with pytest.raises(ClassificationError):
        parse_semantic_response(raw, _request(), model="stub")


def test_classifier_returns_success() -> None:
    llm = StubLLM('{"category": "complaint", "priorityScore": 60}')

    outcome = LLMSemanticClassifier(llm).classify(_request())

    assert isinstance(outcome, SemanticSuccess)
    assert not outcome.used_fallback
    assert outcome.classification.category == "complaint"
    assert outcome.classification.model == "stub-model"
    assert len(llm.prompts) == 1


def test_classifier_failure_is_returned_as_data() -> None:
    llm = StubLLM(None, raise_error=True)

    outcome = LLMSemanticClassifier(llm).classify(_request())

    assert isinstance(outcome, SemanticFailure)
    assert outcome.used_fallback
    assert "stub failure" in outcome.error
    assert len(llm.prompts) == 1


def test_classifier_malformed_output_is_a_failure() -> None:
    outcome = LLMSemanticClassifier(StubLLM("I think it is a complaint")).classify(
        _request()
    )

    assert isinstance(outcome, SemanticFailure)


def test_prompt_includes_request_details() -> None:
    prompt = build_classification_prompt(_request())

    assert 'Subject: "Parcel question"' in prompt
    assert "[1] From: jane@example.com - Where is my parcel?" in prompt
    assert "Rule-based pre-score: 55/100" in prompt
    assert '"refund_cancellation"' in prompt
