"""Resolve rule and semantic classifications into one result."""

from __future__ import annotations

from typing import assert_never

from triage_engine.core.models import (
    MergedClassification,
    RuleClassification,
    SemanticClassification,
    SemanticFailure,
    SemanticOutcome,
    SemanticSuccess,
    SentimentAnalysis,
)

from .signals import score_for_label


def merge_classifications(
    rule: RuleClassification, semantic: SemanticOutcome | None
) -> MergedClassification:
    """Let a semantic result replace the rule result, never relaxing review."""
    match semantic:
        case SemanticSuccess(classification=classification):
            return _from_semantic(rule, classification)
        case SemanticFailure() | None:
            return _from_rules(rule)
        case _:
            assert_never(semantic)


def _from_rules(rule: RuleClassification) -> MergedClassification:
    return MergedClassification(
        category=rule.category,
        score=_clip(rule.score),
        sentiment=rule.sentiment,
        requires_human_review=rule.requires_human_review,
        intent_confidence=rule.intent_confidence,
        source="rules",
    )


def _from_semantic(
    rule: RuleClassification, semantic: SemanticClassification
) -> MergedClassification:
    sentiment = SentimentAnalysis(
        label=semantic.sentiment,
        score=score_for_label(semantic.sentiment),
        emotion_tags=rule.sentiment.emotion_tags,
    )
    return MergedClassification(
        category=semantic.category,
        score=_clip(semantic.priority_score),
        sentiment=sentiment,
        requires_human_review=semantic.requires_human_review
        or rule.requires_human_review,
        intent_confidence=semantic.confidence,
        source="semantic",
    )


def _clip(score: int) -> int:
    return max(0, min(score, 100))


__all__ = ["merge_classifications"]
