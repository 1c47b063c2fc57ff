"""Tests for template matching, rendering and auto-send preparation."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from triage_engine.core.config import AppSettings, AutomationSettings, TemplateSettings
from triage_engine.core.context import TriageContext
from triage_engine.core.interfaces import AutoSendBlockedError, TemplateRenderError
from triage_engine.core.models import (
    ClassificationResult,
    ExtractedEntities,
    RiskFlags,
    Template,
)
from triage_engine.intelligence.templates import (
    extract_variables,
    prepare_auto_send,
    record_template_usage,
    render_template,
    sanitize_html,
    select_template,
    substitute_variables,
    validate_template_variables,
)
from triage_engine.storage import InMemoryAutoSendCounter

NOW = datetime(2026, 3, 10, 10, 0, tzinfo=UTC)


def _classification(**overrides: object) -> ClassificationResult:
    values: dict[str, object] = {
        "sender_type": "customer",
        "intent_category": "delivery_deadline",
        "intent_confidence": 0.9,
        "automation_tag": "auto_reply",
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
        "id": "tracking",
        "category": "delivery",
        "subject": "Your order {order_id}",
        "body_text": "Dear {customer_name}, order {order_id} is on its way.",
        "available_variables": ("customer_name", "order_id"),
        "required_variables": ("order_id",),
    }
    values.update(overrides)
    return Template(**values)  # type: ignore[arg-type]


def test_extract_variables_skips_escaped_braces() -> None:
    text = "Hi {name}, order {order_id} {{literal}} thanks {name}"

    assert extract_variables(text) == ["name", "order_id"]
    assert extract_variables(None) == []


def test_substitution_replaces_only_declared_variables() -> None:
    text = "Dear {name}, your code is {secret}. Use {{ for braces."

    result = substitute_variables(text, {"name": "Ann", "secret": "x"}, ["name"])

    assert result == "Dear Ann, your code is {secret}. Use { for braces."


def test_substituted_values_are_not_expanded_again() -> None:
    text = "Hi {customer_name}, order {order_number}"

    result = substitute_variables(
        text,
        {"customer_name": "{order_number}", "order_number": "123"},
        ["customer_name", "order_number"],
    )

    assert result == "Hi {order_number}, order 123"


def test_customer_text_with_placeholders_renders_verbatim() -> None:
    rendered = render_template(
        _template(), {"customer_name": "{{order_id}", "order_id": "12345"}
    )

    assert rendered.body_text == "Dear {{order_id}, order 12345 is on its way."


def test_render_reproduces_text_with_tokens_replaced() -> None:
    rendered = render_template(
        _template(), {"customer_name": "Sam", "order_id": "12345"}
    )

    assert rendered.subject == "Your order 12345"
    assert rendered.body_text == "Dear Sam, order 12345 is on its way."
    assert rendered.warnings == ()


def test_missing_required_variable_raises() -> None:
    with pytest.raises(TemplateRenderError) as excinfo:
        render_template(_template(), {"customer_name": "Sam"})

    assert excinfo.value.missing == ("order_id",)
    assert "order_id" in str(excinfo.value)


def test_render_reports_optional_and_extra_variables() -> None:
    rendered = render_template(_template(), {"order_id": "1", "colour": "red"})

    assert rendered.warnings == (
        "Missing optional variables: customer_name",
        "Extra variables provided but not used: colour",
    )


def test_system_variables_fill_in_under_caller_values() -> None:
    template = _template(
        body_text="Thanks, {company_signature} ({current_year})",
        available_variables=("company_signature", "current_year"),
        required_variables=(),
    )

    rendered = render_template(
        template, {}, settings=TemplateSettings(signature="The Team"), now=NOW
    )
    overridden = render_template(
        template,
        {"company_signature": "Alex"},
        settings=TemplateSettings(),
        now=NOW,
    )

    assert rendered.body_text == "Thanks, The Team (2026)"
    assert overridden.body_text == "Thanks, Alex (2026)"


def test_validation_report() -> None:
    report = validate_template_variables(_template(), {"order_id": "1", "x": "y"})

    assert report.valid
    assert report.missing_optional == ("customer_name",)
    assert report.extra == ("x",)


def test_html_body_is_sanitized() -> None:
    html = '<p onclick="steal()">Hi {customer_name}</p><script>alert(1)</script>'
    template = _template(body_html=html)

    rendered = render_template(template, {"customer_name": "Sam", "order_id": "1"})

    assert rendered.body_html == "<p>Hi Sam</p>"
    assert sanitize_html('<iframe src="x"></iframe><b>ok</b>') == "<b>ok</b>"


def test_category_match_beats_general_faq() -> None:
    faq = _template(id="faq", category="general_faq", safety_level="safe")
    specific = _template(
        id="delivery",
        trigger_intent_categories=("delivery_deadline",),
        safety_level="moderate",
    )

    match = select_template(_classification(), [faq, specific], "where is it")

    assert match is not None
    assert match.template.id == "delivery"
    assert match.score == 12
    assert "Category match: delivery_deadline" in match.reason


def test_trigger_keywords_only_score_when_present() -> None:
    template = _template(category="general_faq", trigger_keywords=("Tracking",))

    with_keyword = select_template(
        _classification(), [template], "Any tracking number?"
    )
    without_keyword = select_template(_classification(), [template], "Hello")

    assert with_keyword is not None and with_keyword.score == 10
    assert without_keyword is not None and without_keyword.score == 8


def test_exclusion_keywords_disqualify_template() -> None:
    template = _template(
        trigger_intent_categories=("delivery_deadline",),
        exclude_if_present=("damaged",),
    )

    assert (
        select_template(_classification(), [template], "It arrived damaged") is None
    )


def test_auto_send_threshold_bonus() -> None:
    template = _template(
        trigger_intent_categories=("delivery_deadline",),
        auto_send_enabled=True,
        auto_send_confidence_threshold=0.8,
    )

    match = select_template(_classification(), [template])

    assert match is not None
    assert match.score == 10 + 5 + 3


def test_zero_score_and_inactive_templates_are_not_matches() -> None:
    risky = _template(safety_level="risky")
    inactive = _template(
        active=False, trigger_intent_categories=("delivery_deadline",)
    )

    assert select_template(_classification(), [risky, inactive]) is None


def test_record_usage_returns_new_template() -> None:
    template = _template()

    used = record_template_usage(template, NOW)

    assert used.use_count == 1
    assert used.last_used_at == NOW
    assert template.use_count == 0


def _context(max_per_day: int = 5) -> TriageContext:
    settings = AppSettings(
        automation=AutomationSettings(
            auto_send_global_enabled=True, max_per_day=max_per_day
        )
    )
    return TriageContext(
        settings=settings,
        send_counter=InMemoryAutoSendCounter(),
        clock=lambda: NOW,
    )


def test_prepare_auto_send_renders_and_reserves() -> None:
    context = _context()
    template = _template(auto_send_enabled=True)

    rendered = prepare_auto_send(
        template, _classification(), {"order_id": "42"}, context
    )

    assert rendered.body_text == "Dear {customer_name}, order 42 is on its way."
    assert context.send_counter.current(NOW.date()) == 1


def test_prepare_auto_send_refuses_when_gate_fails() -> None:
    context = _context()

    with pytest.raises(AutoSendBlockedError) as excinfo:
        prepare_auto_send(_template(), _classification(), {"order_id": "42"}, context)

    assert not excinfo.value.decision.can_auto_send
    assert context.send_counter.current(NOW.date()) == 0


def test_prepare_auto_send_does_not_reserve_on_render_failure() -> None:
    context = _context()

    with pytest.raises(TemplateRenderError):
        prepare_auto_send(
            _template(auto_send_enabled=True), _classification(), {}, context
        )

    assert context.send_counter.current(NOW.date()) == 0


def test_prepare_auto_send_respects_daily_cap() -> None:
    context = _context(max_per_day=1)
    template = _template(auto_send_enabled=True)

    prepare_auto_send(template, _classification(), {"order_id": "1"}, context)
    with pytest.raises(AutoSendBlockedError) as excinfo:
        prepare_auto_send(template, _classification(), {"order_id": "2"}, context)

    assert excinfo.value.decision.failed_checks == (
        "Daily auto-send limit reached (1/1)",
    )
