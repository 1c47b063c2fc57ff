"""Deterministic rule-based classifier."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from triage_engine.core.config import TriageSettings
from triage_engine.core.models import (
    IntentCategory,
    RuleClassification,
    SentimentAnalysis,
)

from .signals import (
    NEGATIVE_WORDS,
    REFUND_KEYWORDS,
    analyze_sentiment,
    contains_any,
    count_matches,
    extract_order_id,
)

LOGGER = logging.getLogger(__name__)

ORDER_NUMBER_POINTS = 20
RISK_KEYWORD_POINTS = 30
REFUND_POINTS = 20
URGENCY_POINTS = 10
NEGATIVE_WORD_POINTS = 5
NEGATIVE_WORD_CAP = 15
UNREAD_POINTS = 5
MULTI_MESSAGE_POINTS = 5
CATEGORY_POINTS = 15

DEFAULT_CATEGORY: IntentCategory = "general_question"

HIGH_URGENCY_PHRASES = (
    "urgent",
    "asap",
    "immediately",
    "angry",
    "furious",
    "disgusted",
    "unacceptable",
    "never again",
    "appalling",
    "disgraceful",
)


@dataclass(frozen=True)
class _CategoryRule:
    key: IntentCategory
    keywords: tuple[str, ...]


# Declaration order is the tie-break order.
CATEGORY_RULES: tuple[_CategoryRule, ...] = (
    _CategoryRule(
        key="refund_cancellation",
        keywords=(
            *REFUND_KEYWORDS,
            "cancel",
            "cancellation",
            "full refund",
            "partial refund",
        ),
    ),
    _CategoryRule(
        key="complaint",
        keywords=(
            "complaint",
            "complain",
            "disappointed",
            "terrible",
            "unacceptable",
            "poor quality",
            "awful",
            "not happy",
        ),
    ),
    _CategoryRule(
        key="order_issue",
        keywords=(
            "damaged",
            "broken",
            "cracked",
            "faulty",
            "defective",
            "wrong item",
            "wrong product",
            "incorrect item",
            "not what i ordered",
            "missing item",
            "return",
            "exchange",
            "replacement",
        ),
    ),
    _CategoryRule(
        key="delivery_deadline",
        keywords=(
            "where is my order",
            "where's my order",
            "not arrived",
            "hasn't arrived",
            "not delivered",
            "never arrived",
            "lost parcel",
            "lost in post",
            "haven't received",
            "not received",
            "tracking",
            "delivery",
            "delayed",
            "overdue",
        ),
    ),
    _CategoryRule(
        key="technical_product_help",
        keywords=(
            "how to",
            "how do i",
            "help with",
            "instructions",
            "not working",
            "doesn't work",
            "stopped working",
            "set up",
            "install",
        ),
    ),
    _CategoryRule(
        key="presales_question",
        keywords=(
            "before i buy",
            "before buying",
            "in stock",
            "back in stock",
            "do you sell",
            "interested in",
            "price of",
            "discount code",
        ),
    ),
    _CategoryRule(
        key="general_question",
        keywords=(
            "question",
            "query",
            "enquiry",
            "inquiry",
            "information",
            "opening hours",
            "asking about",
            "can you tell me",
            "wondering",
        ),
    ),
)


class RuleClassifier:
    """Score and categorise conversation text without external calls."""

    def __init__(
        self,
        settings: TriageSettings,
        rules: Sequence[_CategoryRule] | None = None,
    ) -> None:
        self._settings = settings
        self._rules = tuple(rules) if rules is not None else CATEGORY_RULES

    def classify(
        self, text: str, *, unread_count: int = 0, message_count: int = 1
    ) -> RuleClassification:
        """Return the rule score, category and sentiment for ``text``."""
        lowered = text.lower()
        score = 0
        requires_human_review = False
        matched_risk_keyword: str | None = None
        tags: list[str] = []

        if extract_order_id(text, self._settings.order_number_prefixes):
            score += ORDER_NUMBER_POINTS
            tags.append("has_order_number")

        if self._settings.risk_scoring:
            for keyword in self._settings.risk_keywords:
                if keyword.lower() in lowered:
                    score += RISK_KEYWORD_POINTS
                    requires_human_review = True
                    matched_risk_keyword = keyword
                    tags.append(f"risk_keyword:{keyword}")
                    break

            if contains_any(REFUND_KEYWORDS, lowered):
                score += REFUND_POINTS
                requires_human_review = True
                tags.append("refund_request")

        if self._settings.time_sensitivity and contains_any(
            HIGH_URGENCY_PHRASES, lowered
        ):
            score += URGENCY_POINTS
            tags.append("high_priority_phrase")

        if self._settings.sentiment_analysis:
            negative_count = count_matches(NEGATIVE_WORDS, lowered)
            if negative_count:
                score += min(negative_count * NEGATIVE_WORD_POINTS, NEGATIVE_WORD_CAP)
                tags.append(f"negative_words:{negative_count}")

        if unread_count > 0:
            score += UNREAD_POINTS
            tags.append(f"unread:{unread_count}")

        if message_count > 1:
            score += MULTI_MESSAGE_POINTS
            tags.append(f"multi_message:{message_count}")

        category, matches = self._detect_category(lowered)
        if matches:
            score += CATEGORY_POINTS
            tags.append(f"category_boost:{category}")

        sentiment = (
            analyze_sentiment(text)
            if self._settings.sentiment_analysis
            else SentimentAnalysis(label="neutral", score=0.0)
        )

        result = RuleClassification(
            score=max(0, min(score, 100)),
            category=category,
            intent_confidence=_confidence_for_matches(matches),
            sentiment=sentiment,
            requires_human_review=requires_human_review,
            matched_risk_keyword=matched_risk_keyword,
            tags=tuple(tags),
        )
        LOGGER.debug(
            "Rule classification score=%s category=%s tags=%s",
            result.score,
            result.category,
            ",".join(result.tags),
        )
        return result

    def _detect_category(self, lowered: str) -> tuple[IntentCategory, int]:
        best: IntentCategory = DEFAULT_CATEGORY
        best_matches = 0
        for rule in self._rules:
            matches = count_matches(rule.keywords, lowered)
            if matches > best_matches:
                best = rule.key
                best_matches = matches
        return best, best_matches


def _confidence_for_matches(matches: int) -> float:
    if matches == 0:
        return 0.5
    return round(min(0.9, 0.6 + 0.1 * (matches - 1)), 2)


__all__ = ["CATEGORY_RULES", "HIGH_URGENCY_PHRASES", "RuleClassifier"]
