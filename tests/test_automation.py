"""Tests for automation tagging and the auto-send gate."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from triage_engine.core.config import AutomationSettings
from triage_engine.core.models import (
    ClassificationResult,
    ExtractedEntities,
    RiskFlags,
    Template,
)
from triage_engine.intelligence.automation import (
    CHECK_BUSINESS_HOURS,
    CHECK_DAILY_LIMIT,
    assess_automation,
    evaluate_auto_send,
    is_within_business_hours,
)

MORNING = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


def _classification(**overrides: object) -> ClassificationResult:
    values: dict[str, object] = {
        "sender_type": "customer",
        "intent_category": "general_question",
        "intent_confidence": 0.9,
        "automation_tag": "auto_resolve",
        "automation_confidence": 0.9,
        "automation_reason": "test",
        "extracted_entities": ExtractedEntities(),
        "sentiment_label": "neutral",
        "emotion_tags": (),
        "risk_flags": RiskFlags(),
    }
    values.update(overrides)
    return ClassificationResult(**values)  # type: ignore[arg-type]


def _template(**overrides: object) -> Template:
    values: dict[str, object] = {
        "id": "faq-hours",
        "category": "general_faq",
        "body_text": "We are open {support_hours}.",
        "auto_send_enabled": True,
    }
    values.update(overrides)
    return Template(**values)  # type: ignore[arg-type]


def _settings(**overrides: object) -> AutomationSettings:
    return AutomationSettings(auto_send_global_enabled=True, **overrides)


def test_chargeback_always_escalates() -> None:
    assessment = assess_automation(
        "general_question",
        0.99,
        "positive",
        RiskFlags(contains_chargeback_mention=True),
        _settings(),
    )

    assert assessment.tag == "escalate"
    assert assessment.confidence == 1.0


def test_legal_threat_escalates_over_never_send_category() -> None:
    assessment = assess_automation(
        "complaint", 0.2, "negative", RiskFlags(contains_legal_threat=True), _settings()
    )

    assert assessment.tag == "escalate"
    assert assessment.confidence == 1.0


def test_negative_review_with_very_negative_sentiment_escalates() -> None:
    assessment = assess_automation(
        "general_question",
        0.9,
        "very_negative",
        RiskFlags(contains_negative_review=True),
        _settings(),
    )

    assert assessment.tag == "escalate"
    assert assessment.confidence == 0.95


@pytest.mark.parametrize(
    ("category", "confidence", "sentiment", "tag", "expected_confidence"),
    [
        ("refund_cancellation", 0.95, "neutral", "human_required", 1.0),
        ("general_question", 0.95, "very_negative", "human_required", 0.9),
        ("general_question", 0.6, "neutral", "human_required", 0.6),
        ("general_question", 0.9, "neutral", "auto_resolve", 0.9),
        ("general_question", 0.9, "negative", "auto_reply", 0.9),
        ("presales_question", 0.9, "neutral", "auto_reply", 0.9),
        ("order_issue", 0.9, "neutral", "human_required", 0.5),
    ],
)
def test_automation_tag_rules(
    category: str,
    confidence: float,
    sentiment: str,
    tag: str,
    expected_confidence: float,
) -> None:
    assessment = assess_automation(
        category,  # type: ignore[arg-type]
        confidence,
        sentiment,  # type: ignore[arg-type]
        RiskFlags(),
        _settings(),
    )

    assert assessment.tag == tag
    assert assessment.confidence == expected_confidence
    assert assessment.reason


def test_gate_passes_when_every_check_passes() -> None:
    decision = evaluate_auto_send(
        _template(), _classification(), _settings(), now=MORNING, sent_today=0
    )

    assert decision.can_auto_send
    assert decision.failed_checks == ()
    assert len(decision.checks_performed) == 7
    assert decision.reason == "All safety checks passed"


def test_disabled_template_never_auto_sends() -> None:
    decision = evaluate_auto_send(
        _template(auto_send_enabled=False),
        _classification(),
        _settings(),
        now=MORNING,
        sent_today=0,
    )

    assert not decision.can_auto_send
    assert decision.failed_checks == ("Template auto-send is disabled",)


def test_daily_cap_fails_on_its_own() -> None:
    settings = _settings(business_hours_enabled=True, max_per_day=5)

    decision = evaluate_auto_send(
        _template(), _classification(), settings, now=MORNING, sent_today=5
    )

    assert not decision.can_auto_send
    assert len(decision.checks_performed) == 8
    assert CHECK_BUSINESS_HOURS in decision.checks_performed
    assert CHECK_DAILY_LIMIT in decision.checks_performed
    assert decision.failed_checks == ("Daily auto-send limit reached (5/5)",)


def test_every_failure_is_recorded() -> None:
    decision = evaluate_auto_send(
        _template(auto_send_enabled=False, safety_level="risky"),
        _classification(
            intent_category="complaint",
            automation_confidence=0.4,
            risk_flags=RiskFlags(contains_legal_threat=True, requires_refund=True),
        ),
        AutomationSettings(),
        now=MORNING,
        sent_today=0,
    )

    assert len(decision.failed_checks) == 7
    assert decision.reason.startswith("Failed checks: Global auto-send is disabled")


def test_template_threshold_overrides_default() -> None:
    decision = evaluate_auto_send(
        _template(auto_send_confidence_threshold=0.95),
        _classification(automation_confidence=0.9),
        _settings(),
        now=MORNING,
        sent_today=0,
    )

    assert decision.failed_checks == (
        "Automation confidence 0.9 below threshold 0.95",
    )


def test_zero_template_threshold_uses_default() -> None:
    decision = evaluate_auto_send(
        _template(auto_send_confidence_threshold=0.0),
        _classification(automation_confidence=0.5),
        _settings(),
        now=MORNING,
        sent_today=0,
    )

    assert decision.failed_checks == (
        "Automation confidence 0.5 below threshold 0.85",
    )


def test_outside_business_hours_fails() -> None:
    evening = datetime(2026, 3, 10, 20, 0, tzinfo=UTC)

    decision = evaluate_auto_send(
        _template(),
        _classification(),
        _settings(business_hours_enabled=True),
        now=evening,
        sent_today=0,
    )

    assert decision.failed_checks == ("Outside configured business hours",)


def test_business_hours_use_configured_timezone() -> None:
    # 08:30 UTC is 09:30 in Paris during winter time
    early = datetime(2026, 1, 10, 8, 30, tzinfo=UTC)
    settings = _settings(
        business_hours_enabled=True, business_hours_timezone="Europe/Paris"
    )

    decision = evaluate_auto_send(
        _template(), _classification(), settings, now=early, sent_today=0
    )

    assert decision.can_auto_send


def test_unknown_business_hours_timezone_blocks() -> None:
    settings = _settings(
        business_hours_enabled=True, business_hours_timezone="Mars/Olympus"
    )

    decision = evaluate_auto_send(
        _template(), _classification(), settings, now=MORNING, sent_today=0
    )

    assert not decision.can_auto_send
    assert decision.failed_checks == (
        "Unknown business hours timezone Mars/Olympus",
    )


@pytest.mark.parametrize(
    ("hour", "minute", "expected"),
    [(23, 0, True), (5, 59, True), (6, 0, True), (12, 0, False), (21, 59, False)],
)
def test_overnight_business_hours(hour: int, minute: int, expected: bool) -> None:
    now = datetime(2026, 3, 10, hour, minute, tzinfo=UTC)

    assert is_within_business_hours(now, "22:00", "06:00") is expected
