"""Weighted multi-dimension priority scoring for classified conversations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from triage_engine.core.config import BandThresholds, PrioritySettings, ScoringWeights
from triage_engine.core.datetime_utils import days_between, ensure_utc
from triage_engine.core.models import (
    ClassificationResult,
    ConversationSnapshot,
    DimensionScores,
    EmailContent,
    PriorityBand,
    PriorityResult,
    ScoringConfidence,
)

from .signals import contains_any, parse_deadline, parse_money_amount

LOGGER = logging.getLogger(__name__)

_CRITICAL_BLOCKERS = (
    "doesn't work",
    "not working",
    "can't use",
    "cannot use",
    "broken",
    "payment failed",
    "payment issue",
    "not delivered",
    "never arrived",
)
_SIGNIFICANT_BLOCKERS = (
    "missing",
    "wrong item",
    "damaged",
    "defective",
    "incorrect",
    "partial",
)
_MINOR_BLOCKERS = ("unclear", "confusing", "instructions", "how to", "question about")
_URGENCY_WORDS = ("urgent", "emergency", "asap", "immediately")
_EVENT_WORDS = ("wedding", "birthday", "event")
_SOON_WORDS = ("soon", "quick response", "time sensitive")
_REPEAT_CUSTOMER = (
    "previous order",
    "last order",
    "ordered before",
    "regular customer",
    "always order",
)
_CHANNEL_ESCALATION = (
    "already contacted",
    "no response",
    "tried calling",
    "called multiple times",
    "posted on social media",
    "left review",
    "filed complaint",
)
_REPEATED_CONTACT = (
    "sent previous email",
    "replied but no answer",
    "second email",
    "third time",
    "following up again",
)
_PASSIVE_WAITING = (
    "hope to hear soon",
    "waiting to hear",
    "still waiting",
    "follow up",
    "checking in",
)
_CATEGORY_LABELS = {
    "refund_cancellation": "High priority category: refund/cancellation",
    "delivery_deadline": "High priority category: delivery deadline",
    "complaint": "Priority category: complaint",
    "order_issue": "Priority category: order issue",
    "technical_product_help": "Medium priority category: technical help",
    "presales_question": "Low priority category: pre-sales",
    "general_question": "Low priority category: general inquiry",
}


def _max_amount(classification: ClassificationResult) -> float:
    amounts = [
        parse_money_amount(raw)
        for raw in classification.extracted_entities.money_amounts
    ]
    return max((amount for amount in amounts if amount > 0), default=0.0)


def score_risk_churn(
    classification: ClassificationResult, email: EmailContent
) -> float:
    """Score churn risk from 0 to 3."""
    flags = classification.risk_flags
    if flags.contains_legal_threat or flags.contains_chargeback_mention:
        return 3
    body = email.body.lower()
    if "cancel all future orders" in body:
        return 3
    if flags.contains_negative_review:
        return 2
    if "never ordering again" in body or "never order again" in body:
        return 2
    if flags.requires_refund and _max_amount(classification) > 100:
        return 2
    if classification.intent_category == "complaint" and (
        classification.sentiment_label in ("negative", "very_negative")
    ):
        return 1
    if classification.intent_category == "refund_cancellation":
        return 1
    return 0


def score_time_sensitivity(
    classification: ClassificationResult, email: EmailContent, *, now: datetime
) -> float:
    """Score deadline pressure from 0 to 3."""
    text = f"{email.body} {email.subject}".lower()
    reference = ensure_utc(now) or now
    score: float = 0

    for raw in classification.extracted_entities.deadline_dates:
        deadline = parse_deadline(raw, reference=reference)
        if deadline is None:
            continue
        hours_until = (deadline - reference).total_seconds() / 3600
        if 0 < hours_until <= 24:
            return 3
        if 24 < hours_until <= 168:
            score = max(score, 2)

    if contains_any(_URGENCY_WORDS, text):
        score = max(score, 3)
    if contains_any(_EVENT_WORDS, text):
        score = max(score, 2)
    if contains_any(_SOON_WORDS, text):
        score = max(score, 1)
    if classification.intent_category == "delivery_deadline":
        score = max(score, 2)

    # importance is a weak signal: it only strengthens an existing score
    if (email.importance or "").lower() == "high" and score > 0:
        score = min(3, score + 0.5)
    return score


def score_sentiment(classification: ClassificationResult) -> float:
    """Score negative sentiment intensity from 0 to 3."""
    emotions = {tag.lower() for tag in classification.emotion_tags}
    label = classification.sentiment_label
    if label == "very_negative":
        return 3 if emotions & {"angry", "frustrated"} else 2.5
    if label == "negative":
        return 2 if emotions & {"disappointed", "upset"} else 1.5
    if label == "neutral" and emotions & {"concerned", "worried", "confused"}:
        return 1
    return 0


def score_operational_blocker(
    classification: ClassificationResult, email: EmailContent
) -> float:
    """Score how badly the issue blocks the customer, 0 to 3."""
    body = email.body.lower()
    if contains_any(_CRITICAL_BLOCKERS, body):
        return 3
    if contains_any(_SIGNIFICANT_BLOCKERS, body):
        return 2
    if classification.intent_category == "order_issue":
        return 2
    if classification.intent_category == "technical_product_help":
        return 2 if contains_any(("urgent", "critical"), body) else 1
    if contains_any(_MINOR_BLOCKERS, body):
        return 1
    return 0


def score_value_band(
    classification: ClassificationResult, email: EmailContent
) -> float:
    """Score customer or order value, 0 to 3."""
    max_amount = _max_amount(classification)
    if max_amount > 100:
        return 3
    if contains_any(_REPEAT_CUSTOMER, email.body.lower()):
        return 3
    if 25 <= max_amount <= 100:
        return 2
    if 0 < max_amount < 25:
        return 1
    if classification.extracted_entities.order_id:
        return 1
    return 0


def score_age_followups(conversation: ConversationSnapshot, *, now: datetime) -> float:
    """Score conversation age and follow-up count, 0 to 3."""
    age = days_between(conversation.first_message_at, now)
    follow_ups = max(conversation.message_count, 1) - 1

    if age >= 14 or (age >= 7 and follow_ups >= 3):
        return 3
    if 7 <= age < 14 or (3 <= age < 7 and follow_ups >= 2):
        return 2
    if 3 <= age < 7 or (1 <= age < 3 and follow_ups >= 1):
        return 1
    return 0


def score_escalation(email: EmailContent) -> float:
    """Score channel-escalation signals, 0 to 3."""
    text = f"{email.body} {email.subject}".lower()
    if contains_any(_CHANNEL_ESCALATION, text):
        return 3
    if contains_any(_REPEATED_CONTACT, text):
        return 2
    if contains_any(_PASSIVE_WAITING, text):
        return 1
    return 0


def category_base_score(category: str, settings: PrioritySettings) -> float:
    """Look up the configured base points for an intent category."""
    return settings.category_base_scores.get(category, 0)


def determine_priority_band(score: float, thresholds: BandThresholds) -> PriorityBand:
    """Map a priority score onto P0-P3, checking the highest band first."""
    if score >= thresholds.p0:
        return "P0"
    if score >= thresholds.p1:
        return "P1"
    if score >= thresholds.p2:
        return "P2"
    return "P3"


def determine_scoring_confidence(
    classification: ClassificationResult,
) -> ScoringConfidence:
    """Rate how much the score can be trusted."""
    intent = classification.intent_confidence
    automation = classification.automation_confidence
    entities = classification.extracted_entities.populated_count()
    if intent >= 0.8 and automation >= 0.8 and entities >= 2:
        return "high"
    if intent < 0.5 or automation < 0.5 or entities == 0:
        return "low"
    return "medium"


@dataclass(frozen=True)
class _Contribution:
    dimension: str
    contribution: float
    describe: Callable[[], str]


# pylint: disable=too-many-arguments
def top_drivers(
    scores: DimensionScores,
    weights: ScoringWeights,
    classification: ClassificationResult,
    conversation: ConversationSnapshot,
    *,
    now: datetime,
    limit: int = 3,
) -> tuple[str, ...]:
    """Describe the largest weighted contributors to the score."""
    flags = classification.risk_flags
    entities = classification.extracted_entities
    max_amount = _max_amount(classification)
    age_days = int(days_between(conversation.first_message_at, now))
    follow_ups = max(conversation.message_count, 1) - 1

    def risk() -> str:
        if scores.risk >= 3:
            if flags.contains_legal_threat:
                return "High churn risk: legal threat detected"
            if flags.contains_chargeback_mention:
                return "High churn risk: chargeback mention"
            return "High churn risk: cancel all orders mentioned"
        if scores.risk >= 2:
            if flags.contains_negative_review:
                return "Churn risk: negative review threat"
            if flags.requires_refund:
                return "Churn risk: high-value refund request"
            return "Churn risk: customer threatening to leave"
        return "Moderate churn risk: complaint with negative sentiment"

    def time() -> str:
        if entities.deadline_dates and scores.time >= 3:
            return "Time sensitive: deadline within 24 hours"
        if entities.deadline_dates and scores.time >= 2:
            return "Time sensitive: deadline within one week"
        if scores.time >= 3:
            return "Urgent: immediate attention required"
        return "Time sensitive: quick response needed"

    def sentiment() -> str:
        if scores.sentiment >= 3:
            return "Strong negative sentiment: customer very angry"
        if scores.sentiment >= 2:
            return "Negative sentiment: customer frustrated"
        return "Negative sentiment: customer concerned"

    def blocker() -> str:
        if scores.blocker >= 3:
            return "Critical blocker: product/service unusable"
        if scores.blocker >= 2:
            return "Operational blocker: significant issue"
        return "Minor blocker: inconvenience reported"

    def value() -> str:
        if max_amount > 100:
            return f"High value customer: order over £{max_amount:.0f}"
        if scores.value >= 3:
            return "High value: repeat customer detected"
        if max_amount >= 25:
            return f"Medium value customer: order £{max_amount:.0f}"
        if entities.order_id:
            return "Paying customer: has order ID"
        return "Customer value identified"

    def age() -> str:
        if age_days >= 14:
            return f"Old conversation: {age_days} days old"
        if follow_ups >= 3:
            return f"Multiple follow-ups: {follow_ups} messages"
        if age_days >= 7:
            return f"Aged conversation: {age_days} days old"
        if follow_ups >= 1:
            return f"Follow-up: {follow_ups + 1} messages in thread"
        return "Conversation age factor"

    def escalation() -> str:
        if scores.escalation >= 3:
            return "Escalated: customer tried other channels"
        if scores.escalation >= 2:
            return "Escalated: repeated contact attempts"
        return "Escalation signals: waiting for response"

    def category() -> str:
        key = classification.intent_category
        return _CATEGORY_LABELS.get(key, f"Category: {key}")

    contributions = (
        _Contribution("risk", scores.risk * weights.risk, risk),
        _Contribution("time", scores.time * weights.time, time),
        _Contribution("sentiment", scores.sentiment * weights.sentiment, sentiment),
        _Contribution("blocker", scores.blocker * weights.blocker, blocker),
        _Contribution("value", scores.value * weights.value, value),
        _Contribution("age", scores.age * weights.age, age),
        _Contribution(
            "escalation", scores.escalation * weights.escalation, escalation
        ),
        _Contribution("category", scores.category_base, category),
    )
    ranked = sorted(
        (item for item in contributions if item.contribution > 0),
        key=lambda item: item.contribution,
        reverse=True,
    )
    return tuple(item.describe() for item in ranked[:limit])


def score_dimensions(
    classification: ClassificationResult,
    email: EmailContent,
    conversation: ConversationSnapshot,
    settings: PrioritySettings,
    *,
    now: datetime,
) -> DimensionScores:
    """Compute every dimension score independently."""
    return DimensionScores(
        risk=score_risk_churn(classification, email),
        time=score_time_sensitivity(classification, email, now=now),
        sentiment=score_sentiment(classification),
        blocker=score_operational_blocker(classification, email),
        value=score_value_band(classification, email),
        age=score_age_followups(conversation, now=now),
        escalation=score_escalation(email),
        category_base=category_base_score(classification.intent_category, settings),
    )


def weighted_total(scores: DimensionScores, weights: ScoringWeights) -> float:
    """Combine dimension scores with their weights plus the category base."""
    total = (
        weights.risk * scores.risk
        + weights.time * scores.time
        + weights.sentiment * scores.sentiment
        + weights.blocker * scores.blocker
        + weights.value * scores.value
        + weights.age * scores.age
        + weights.escalation * scores.escalation
        + scores.category_base
    )
    return round(total, 2)


def calculate_priority(
    classification: ClassificationResult,
    email: EmailContent,
    conversation: ConversationSnapshot,
    settings: PrioritySettings,
    *,
    now: datetime,
) -> PriorityResult:
    """Return the full priority result; a pure function of its arguments."""
    scores = score_dimensions(classification, email, conversation, settings, now=now)
    total = weighted_total(scores, settings.weights)
    result = PriorityResult(
        priority_score=total,
        priority_band=determine_priority_band(total, settings.band_thresholds),
        dimension_scores=scores,
        top_drivers=top_drivers(
            scores, settings.weights, classification, conversation, now=now
        ),
        scoring_confidence=determine_scoring_confidence(classification),
    )
    LOGGER.debug(
        "Priority score=%s band=%s drivers=%s",
        result.priority_score,
        result.priority_band,
        "; ".join(result.top_drivers),
    )
    return result


__all__ = [
    "calculate_priority",
    "category_base_score",
    "determine_priority_band",
    "determine_scoring_confidence",
    "score_age_followups",
    "score_dimensions",
    "score_escalation",
    "score_operational_blocker",
    "score_risk_churn",
    "score_sentiment",
    "score_time_sensitivity",
    "score_value_band",
    "top_drivers",
    "weighted_total",
]
