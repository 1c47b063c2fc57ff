"""Automation tag assignment and the fail-closed auto-send gate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from triage_engine.core.config import AutomationSettings
from triage_engine.core.datetime_utils import to_zone
from triage_engine.core.models import (
    AutomationDecision,
    AutomationTag,
    ClassificationResult,
    IntentCategory,
    RiskFlags,
    SentimentLabel,
    Template,
)

LOGGER = logging.getLogger(__name__)

SAFE_CATEGORIES: tuple[IntentCategory, ...] = (
    "general_question",
    "presales_question",
    "technical_product_help",
)
SELF_SERVICE_CATEGORIES: tuple[IntentCategory, ...] = ("general_question",)

CHECK_GLOBAL = "Global auto-send enabled"
CHECK_BUSINESS_HOURS = "Within business hours"
CHECK_TEMPLATE = "Template auto-send enabled"
CHECK_CATEGORY = "Category allowed for auto-send"
CHECK_CONFIDENCE = "Confidence threshold met"
CHECK_SAFETY = "Template safety level"
CHECK_RISK = "No risk flags"
CHECK_DAILY_LIMIT = "Daily auto-send limit"


@dataclass(frozen=True, slots=True)
class AutomationAssessment:
    """Automation tag with its confidence and an operator-facing reason."""

    tag: AutomationTag
    confidence: float
    reason: str


def assess_automation(
    intent_category: IntentCategory,
    intent_confidence: float,
    sentiment_label: SentimentLabel,
    risk_flags: RiskFlags,
    settings: AutomationSettings,
) -> AutomationAssessment:
    """Decide how far a conversation may be automated.

    Legal threats and chargebacks override every other outcome.
    """
    threshold = settings.auto_send_confidence_threshold

    if risk_flags.contains_legal_threat:
        return AutomationAssessment(
            "escalate",
            1.0,
            "Legal threat detected - requires immediate human review",
        )
    if risk_flags.contains_chargeback_mention:
        return AutomationAssessment(
            "escalate",
            1.0,
            "Chargeback mention detected - requires immediate human review",
        )
    if risk_flags.contains_negative_review and sentiment_label == "very_negative":
        return AutomationAssessment(
            "escalate",
            0.95,
            "Negative review threat with very negative sentiment - "
            "requires human attention",
        )
    if intent_category in settings.never_auto_send_categories:
        return AutomationAssessment(
            "human_required",
            1.0,
            f"Category '{intent_category}' requires human review per configuration",
        )
    if sentiment_label == "very_negative":
        return AutomationAssessment(
            "human_required",
            0.9,
            "Very negative sentiment detected - human empathy required",
        )
    if intent_confidence < threshold:
        return AutomationAssessment(
            "human_required",
            intent_confidence,
            f"Intent confidence ({intent_confidence:.2f}) below threshold "
            f"({threshold})",
        )
    if intent_category in SAFE_CATEGORIES:
        if intent_category in SELF_SERVICE_CATEGORIES and sentiment_label != "negative":
            return AutomationAssessment(
                "auto_resolve",
                intent_confidence,
                "Simple FAQ question with high confidence - can be auto-resolved",
            )
        return AutomationAssessment(
            "auto_reply",
            intent_confidence,
            "Safe FAQ category with sufficient confidence - can send automated reply",
        )
    return AutomationAssessment(
        "human_required",
        0.5,
        "Does not meet criteria for automation - requires human review",
    )


def _minutes(value: str) -> int | None:
    hours, _, minutes = value.partition(":")
    if not hours.isdigit() or not minutes.isdigit():
        return None
    return int(hours) * 60 + int(minutes)


def is_within_business_hours(now: datetime, start: str, end: str) -> bool:
    """Return whether ``now`` falls in the window; ``start > end`` wraps midnight."""
    start_minutes = _minutes(start)
    end_minutes = _minutes(end)
    if start_minutes is None or end_minutes is None or start_minutes == end_minutes:
        return True
    current = now.hour * 60 + now.minute
    if start_minutes < end_minutes:
        return start_minutes <= current <= end_minutes
    return current >= start_minutes or current <= end_minutes


def _risk_failures(classification: ClassificationResult) -> list[str]:
    flags = classification.risk_flags
    failures: list[str] = []
    if flags.contains_legal_threat:
        failures.append("Classification contains legal threat")
    if flags.contains_chargeback_mention:
        failures.append("Classification contains chargeback mention")
    very_negative = classification.sentiment_label == "very_negative"
    if flags.contains_negative_review and very_negative:
        failures.append("Classification contains negative review threat")
    if flags.requires_refund:
        failures.append("Classification requires refund")
    return failures


# pylint: disable=too-many-arguments
def evaluate_auto_send(
    template: Template,
    classification: ClassificationResult,
    settings: AutomationSettings,
    *,
    now: datetime,
    sent_today: int,
) -> AutomationDecision:
    """Run every gate check and record each failure; never raises."""
    performed: list[str] = []
    failed: list[str] = []

    performed.append(CHECK_GLOBAL)
    if not settings.auto_send_global_enabled:
        failed.append("Global auto-send is disabled")

    if settings.business_hours_enabled:
        performed.append(CHECK_BUSINESS_HOURS)
        local_now = to_zone(now, settings.business_hours_timezone)
        if local_now is None:
            failed.append(
                f"Unknown business hours timezone {settings.business_hours_timezone}"
            )
        elif not is_within_business_hours(
            local_now, settings.business_hours_from, settings.business_hours_to
        ):
            failed.append("Outside configured business hours")

    performed.append(CHECK_TEMPLATE)
    if not template.auto_send_enabled:
        failed.append("Template auto-send is disabled")

    performed.append(CHECK_CATEGORY)
    if classification.intent_category in settings.never_auto_send_categories:
        failed.append(
            f"Category {classification.intent_category} is in never auto-send list"
        )

    performed.append(CHECK_CONFIDENCE)
    threshold = template.auto_send_confidence_threshold
    # a zero or negative template threshold means "use the default"
    if threshold is None or threshold <= 0:
        threshold = settings.auto_send_confidence_threshold
    if classification.automation_confidence < threshold:
        failed.append(
            f"Automation confidence {classification.automation_confidence} "
            f"below threshold {threshold}"
        )

    performed.append(CHECK_SAFETY)
    if template.safety_level == "risky":
        failed.append("Template is marked as risky")

    performed.append(CHECK_RISK)
    failed.extend(_risk_failures(classification))

    performed.append(CHECK_DAILY_LIMIT)
    if sent_today >= settings.max_per_day:
        failed.append(
            f"Daily auto-send limit reached ({sent_today}/{settings.max_per_day})"
        )

    reason = (
        "All safety checks passed"
        if not failed
        else f"Failed checks: {'; '.join(failed)}"
    )
    decision = AutomationDecision(
        checks_performed=tuple(performed),
        failed_checks=tuple(failed),
        reason=reason,
    )
    if not decision.can_auto_send:
        LOGGER.info("Auto-send refused for template %s: %s", template.id, reason)
    return decision


__all__ = [
    "SAFE_CATEGORIES",
    "AutomationAssessment",
    "assess_automation",
    "evaluate_auto_send",
    "is_within_business_hours",
]
