"""Reply template matching, rendering and auto-send preparation."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import datetime

from triage_engine.core.config import TemplateSettings
from triage_engine.core.context import TriageContext
from triage_engine.core.datetime_utils import send_day
from triage_engine.core.interfaces import AutoSendBlockedError, TemplateRenderError
from triage_engine.core.models import (
    AutomationDecision,
    ClassificationResult,
    RenderedTemplate,
    Template,
    TemplateMatch,
)

from .automation import CHECK_DAILY_LIMIT, evaluate_auto_send
from .signals import contains_any

LOGGER = logging.getLogger(__name__)

GENERAL_FAQ_CATEGORY = "general_faq"

_VARIABLE_PATTERN = re.compile(r"(?<!\{)\{([A-Za-z0-9_]+)\}(?!\})")
_SUBSTITUTION_PATTERN = re.compile(r"\{\{|\{([A-Za-z0-9_]+)\}")
_DANGEROUS_TAGS = ("script", "style", "iframe", "object", "embed")
_EVENT_HANDLER_QUOTED = re.compile(r"\son\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_EVENT_HANDLER_BARE = re.compile(r"\son\w+\s*=\s*[^\s>]*", re.IGNORECASE)
_DATA_ATTRIBUTE = re.compile(r"\sdata-[a-z-]+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_LINK_TAG = re.compile(r"<link\b[^>]*>", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class VariableValidation:
    """Comparison of supplied variables against a template's declarations."""

    missing_required: tuple[str, ...]
    missing_optional: tuple[str, ...]
    extra: tuple[str, ...]

    @property
    def valid(self) -> bool:
        return not self.missing_required


def extract_variables(text: str | None) -> list[str]:
    """Return unique ``{name}`` placeholders in order of first appearance."""
    if not text:
        return []
    return list(dict.fromkeys(_VARIABLE_PATTERN.findall(text)))


def default_variables(settings: TemplateSettings, now: datetime) -> dict[str, str]:
    """System variables every template may reference."""
    return {
        "company_signature": settings.signature,
        "company_name": settings.company_name,
        "support_hours": settings.support_hours,
        "support_email": settings.support_email,
        "current_date": now.strftime("%d/%m/%Y"),
        "current_year": str(now.year),
    }


def substitute_variables(
    text: str | None,
    variables: Mapping[str, object],
    available: Iterable[str],
) -> str:
    """Replace declared placeholders in one pass; ``{{`` becomes a literal ``{``.

    Substituted values are never rescanned, so a value containing ``{name}``
    is emitted as-is.
    """
    if not text:
        return ""
    declared = set(available)

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name is None:
            return "{"
        value = variables.get(name) if name in declared else None
        return match.group(0) if value is None else str(value)

    return _SUBSTITUTION_PATTERN.sub(_replace, text)


def validate_template_variables(
    template: Template, variables: Mapping[str, object]
) -> VariableValidation:
    """Report missing required, missing optional and undeclared variables."""
    provided = {name for name, value in variables.items() if value is not None}
    required = template.required_variables
    return VariableValidation(
        missing_required=tuple(name for name in required if name not in provided),
        missing_optional=tuple(
            name
            for name in template.available_variables
            if name not in required and name not in provided
        ),
        extra=tuple(
            name for name in variables if name not in template.available_variables
        ),
    )


def sanitize_html(html: str | None) -> str:
    """Strip active content from an HTML body while keeping basic formatting."""
    if not html:
        return ""
    sanitized = html
    for tag in _DANGEROUS_TAGS:
        pattern = re.compile(
            rf"<{tag}\b[^<]*(?:(?!</{tag}>)<[^<]*)*</{tag}>", re.IGNORECASE
        )
        sanitized = pattern.sub("", sanitized)
    sanitized = _LINK_TAG.sub("", sanitized)
    sanitized = _EVENT_HANDLER_QUOTED.sub("", sanitized)
    sanitized = _EVENT_HANDLER_BARE.sub("", sanitized)
    return _DATA_ATTRIBUTE.sub("", sanitized)


def render_template(
    template: Template,
    variables: Mapping[str, object],
    *,
    settings: TemplateSettings | None = None,
    now: datetime | None = None,
    sanitize: bool = True,
) -> RenderedTemplate:
    """Render ``template`` or raise :class:`TemplateRenderError`.

    When ``settings`` and ``now`` are given the system variables are merged
    underneath the caller's values. Missing required variables are never
    defaulted.
    """
    values: dict[str, object] = {}
    if settings is not None and now is not None:
        values.update(default_variables(settings, now))
    values.update(variables)

    validation = validate_template_variables(template, values)
    if not validation.valid:
        raise TemplateRenderError(validation.missing_required)

    warnings: list[str] = []
    if validation.missing_optional:
        warnings.append(
            "Missing optional variables: " + ", ".join(validation.missing_optional)
        )
    caller_extra = [name for name in validation.extra if name in variables]
    if caller_extra:
        warnings.append(
            "Extra variables provided but not used: " + ", ".join(caller_extra)
        )

    available = template.available_variables
    body_html = None
    if template.body_html:
        body_html = substitute_variables(template.body_html, values, available)
        if sanitize:
            body_html = sanitize_html(body_html)

    return RenderedTemplate(
        subject=substitute_variables(template.subject, values, available),
        body_text=substitute_variables(template.body_text, values, available),
        body_html=body_html,
        warnings=tuple(warnings),
    )


def _lowered(keywords: Iterable[str]) -> list[str]:
    return [keyword.lower() for keyword in keywords if keyword]


def _score_template(
    template: Template, classification: ClassificationResult, email_text: str
) -> tuple[int, list[str]] | None:
    if template.exclude_if_present and contains_any(
        _lowered(template.exclude_if_present), email_text
    ):
        return None

    score = 0
    reasons: list[str] = []
    if classification.intent_category in template.trigger_intent_categories:
        score += 10
        reasons.append(f"Category match: {classification.intent_category}")
    elif template.category == GENERAL_FAQ_CATEGORY:
        score += 3
        reasons.append("General FAQ template")

    if template.trigger_keywords and contains_any(
        _lowered(template.trigger_keywords), email_text
    ):
        score += 2
        reasons.append("Trigger keyword present")

    if template.safety_level == "safe":
        score += 5
        reasons.append("Safe template")
    elif template.safety_level == "moderate":
        score += 2
        reasons.append("Moderate safety")

    threshold = template.auto_send_confidence_threshold
    if template.auto_send_enabled and threshold:
        if classification.automation_confidence >= threshold:
            score += 3
            reasons.append("Meets auto-send confidence threshold")
    return score, reasons


def select_template(
    classification: ClassificationResult,
    templates: Iterable[Template],
    email_text: str = "",
) -> TemplateMatch | None:
    """Pick the highest-scoring active template; earlier templates win ties."""
    lowered_text = email_text.lower()
    best: TemplateMatch | None = None
    for template in templates:
        if not template.active:
            continue
        scored = _score_template(template, classification, lowered_text)
        if scored is None:
            continue
        score, reasons = scored
        if best is None or score > best.score:
            best = TemplateMatch(
                template=template, score=score, reason="; ".join(reasons)
            )
    if best is None or best.score == 0:
        return None
    return best


def record_template_usage(template: Template, used_at: datetime) -> Template:
    """Return a copy of ``template`` with its usage counter advanced."""
    return replace(template, use_count=template.use_count + 1, last_used_at=used_at)


def prepare_auto_send(
    template: Template,
    classification: ClassificationResult,
    variables: Mapping[str, object],
    context: TriageContext,
) -> RenderedTemplate:
    """Re-check the gate, render, then claim a daily send slot.

    Raises :class:`AutoSendBlockedError` when the gate refuses or the slot is
    lost to a concurrent sender, and :class:`TemplateRenderError` when a
    required variable is missing.
    """
    settings = context.settings
    now = context.now()
    day = send_day(now, settings.automation.business_hours_timezone)

    decision = evaluate_auto_send(
        template,
        classification,
        settings.automation,
        now=now,
        sent_today=context.send_counter.current(day),
    )
    if not decision.can_auto_send:
        raise AutoSendBlockedError(decision)

    rendered = render_template(
        template, variables, settings=settings.templates, now=now
    )

    limit = settings.automation.max_per_day
    if not context.send_counter.reserve(day, limit):
        refused = AutomationDecision(
            checks_performed=decision.checks_performed,
            failed_checks=(f"Daily auto-send limit reached ({limit}/{limit})",),
            reason=f"Failed checks: {CHECK_DAILY_LIMIT} lost to a concurrent send",
        )
        LOGGER.info("Auto-send slot for template %s was taken", template.id)
        raise AutoSendBlockedError(refused)

    LOGGER.info("Prepared auto-send for template %s", template.id)
    return rendered


__all__ = [
    "GENERAL_FAQ_CATEGORY",
    "VariableValidation",
    "default_variables",
    "extract_variables",
    "prepare_auto_send",
    "record_template_usage",
    "render_template",
    "sanitize_html",
    "select_template",
    "substitute_variables",
    "validate_template_variables",
]
