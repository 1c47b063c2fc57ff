"""Prompt templates for LLM-driven classification."""

from __future__ import annotations

from textwrap import dedent

from triage_engine.core.models import INTENT_CATEGORIES, SemanticRequest


def build_classification_prompt(request: SemanticRequest) -> str:
    """Compose a JSON-only triage prompt for an ambiguous conversation."""
    categories = " | ".join(f'"{category}"' for category in INTENT_CATEGORIES)
    messages = (
        "\n".join(
            f"[{index}] {preview}"
            for index, preview in enumerate(request.message_previews, start=1)
        )
        or "(no messages)"
    )
    subject = request.subject or "(no subject)"

    header = dedent(
        f"""
        You are a customer service triage assistant for an e-commerce business.
        Classify this customer email thread. Respond with ONLY a valid JSON
        object, no explanation and no markdown.

        Subject: "{subject}"
        Messages:
        """
    ).strip()
    footer = dedent(
        f"""
        Rule-based pre-score: {request.rule_score}/100
        Rule-based category: {request.rule_category}

        Respond with exactly:
        {{
          "category": {categories},
          "priorityScore": 0-100,
          "sentiment": "positive" | "neutral" | "negative",
          "requiresHumanReview": true | false,
          "confidence": 0.0-1.0
        }}
        """
    ).strip()

    return f"{header}\n{messages}\n\n{footer}"


__all__ = ["build_classification_prompt"]
