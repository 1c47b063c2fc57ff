"""Core domain models used across the triage pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

IntentCategory = Literal[
    "refund_cancellation",
    "complaint",
    "order_issue",
    "delivery_deadline",
    "technical_product_help",
    "presales_question",
    "general_question",
    "other",
]
INTENT_CATEGORIES: tuple[IntentCategory, ...] = (
    "refund_cancellation",
    "complaint",
    "order_issue",
    "delivery_deadline",
    "technical_product_help",
    "presales_question",
    "general_question",
    "other",
)

SenderType = Literal[
    "customer",
    "supplier",
    "internal",
    "automated_system",
    "spam_marketing",
    "unknown",
]

SentimentLabel = Literal[
    "very_negative", "negative", "neutral", "positive", "very_positive"
]
SENTIMENT_LABELS: tuple[SentimentLabel, ...] = (
    "very_negative",
    "negative",
    "neutral",
    "positive",
    "very_positive",
)

AutomationTag = Literal["auto_resolve", "auto_reply", "human_required", "escalate"]
PriorityBand = Literal["P0", "P1", "P2", "P3"]
TriageBand = Literal["low", "medium", "high", "urgent"]
ScoringConfidence = Literal["low", "medium", "high"]
SafetyLevel = Literal["safe", "moderate", "risky"]

_BAND_LABELS: dict[str, TriageBand] = {
    "P0": "urgent",
    "P1": "high",
    "P2": "medium",
    "P3": "low",
}


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class EmailContent:
    """Inbound email text handed to the classifier."""

    subject: str
    body: str
    from_address: str
    from_name: str | None = None
    to_addresses: tuple[str, ...] = ()
    received_at: datetime | None = None
    has_attachments: bool = False
    importance: str | None = None

    @property
    def text(self) -> str:
        """Subject and body joined for signal extraction."""
        return f"{self.subject}\n{self.body}"


@dataclass(frozen=True, slots=True)
class ExtractedEntities:
    """Structured entities pulled out of email text."""

    order_id: str | None = None
    customer_name: str | None = None
    deadline_dates: tuple[str, ...] = ()
    money_amounts: tuple[str, ...] = ()
    product_names: tuple[str, ...] = ()
    has_address_info: bool = False

    def populated_count(self) -> int:
        """Count how many of order id, deadlines, amounts and name are present."""
        return sum(
            (
                bool(self.order_id),
                bool(self.deadline_dates),
                bool(self.money_amounts),
                bool(self.customer_name),
            )
        )


@dataclass(frozen=True, slots=True)
class RiskFlags:
    """Independent risk booleans raised by keyword detection."""

    contains_legal_threat: bool = False
    contains_chargeback_mention: bool = False
    contains_negative_review: bool = False
    requires_refund: bool = False

    @property
    def requires_escalation(self) -> bool:
        """Legal threats and chargebacks always go to a human immediately."""
        return self.contains_legal_threat or self.contains_chargeback_mention


@dataclass(frozen=True, slots=True)
class SentimentAnalysis:
    """Sentiment label, signed score and emotion tags."""

    label: SentimentLabel
    score: float
    emotion_tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class Signals:
    """Everything the extractor derives from a block of text."""

    entities: ExtractedEntities
    risk_flags: RiskFlags
    negative_word_count: int
    positive_word_count: int


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Single artifact consumed by scoring, the gate and template matching."""

    sender_type: SenderType
    intent_category: IntentCategory
    intent_confidence: float
    automation_tag: AutomationTag
    automation_confidence: float
    automation_reason: str
    extracted_entities: ExtractedEntities
    sentiment_label: SentimentLabel
    emotion_tags: tuple[str, ...]
    risk_flags: RiskFlags
    requires_human_review: bool = False
    sentiment_score: float = 0.0


@dataclass(frozen=True, slots=True)
class MessagePreview:
    """Trimmed view of one message in a conversation."""

    subject: str | None
    body_preview: str | None
    from_address: str | None
    received_at: datetime | None = None


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class ConversationSnapshot:
    """Conversation metadata read from the message store."""

    id: str
    subject: str | None
    message_count: int = 1
    unread_count: int = 0
    first_message_at: datetime | None = None
    latest_message_at: datetime | None = None
    primary_customer_email: str | None = None
    verified_customer: bool = False
    known_order_numbers: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DimensionScores:
    """Per-dimension priority sub-scores."""

    risk: float = 0
    time: float = 0
    sentiment: float = 0
    blocker: float = 0
    value: float = 0
    age: float = 0
    escalation: float = 0
    category_base: float = 0


@dataclass(frozen=True, slots=True)
class PriorityResult:
    """Weighted priority score with band, drivers and confidence."""

    priority_score: float
    priority_band: PriorityBand
    dimension_scores: DimensionScores
    top_drivers: tuple[str, ...]
    scoring_confidence: ScoringConfidence

    @property
    def band_label(self) -> TriageBand:
        """Return the urgent/high/medium/low name for the band."""
        return _BAND_LABELS[self.priority_band]


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class Template:
    """Operator-authored reply template with matching and safety metadata."""

    id: str
    category: str
    body_text: str
    subject: str | None = None
    body_html: str | None = None
    safety_level: SafetyLevel = "safe"
    auto_send_enabled: bool = False
    auto_send_confidence_threshold: float | None = None
    trigger_intent_categories: tuple[str, ...] = ()
    trigger_keywords: tuple[str, ...] = ()
    exclude_if_present: tuple[str, ...] = ()
    available_variables: tuple[str, ...] = ()
    required_variables: tuple[str, ...] = ()
    active: bool = True
    use_count: int = 0
    last_used_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class TemplateMatch:
    """Winning template together with its score and reasons."""

    template: Template
    score: int
    reason: str


@dataclass(frozen=True, slots=True)
class RenderedTemplate:
    """Template output after variable substitution."""

    subject: str
    body_text: str
    body_html: str | None = None
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AutomationDecision:
    """Outcome of the auto-send gate; recomputed on every attempt."""

    checks_performed: tuple[str, ...]
    failed_checks: tuple[str, ...]
    reason: str

    @property
    def can_auto_send(self) -> bool:
        """True only when no check failed."""
        return not self.failed_checks


@dataclass(frozen=True, slots=True)
class RuleClassification:
    """Deterministic classifier output."""

    score: int
    category: IntentCategory
    intent_confidence: float
    sentiment: SentimentAnalysis
    requires_human_review: bool
    matched_risk_keyword: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SemanticClassification:
    """Language-model classifier output."""

    category: IntentCategory
    priority_score: int
    sentiment: SentimentLabel
    requires_human_review: bool
    confidence: float
    model: str


@dataclass(frozen=True, slots=True)
class SemanticRequest:
    """Payload describing a conversation to the semantic classifier."""

    subject: str
    message_previews: tuple[str, ...]
    rule_score: int
    rule_category: IntentCategory


@dataclass(frozen=True, slots=True)
class SemanticSuccess:
    """Semantic classifier returned a usable result."""

    classification: SemanticClassification
    used_fallback: bool = field(default=False, init=False)


@dataclass(frozen=True, slots=True)
class SemanticFailure:
    """Semantic classifier failed; the rule result must be used instead."""

    error: str
    used_fallback: bool = field(default=True, init=False)


SemanticOutcome = SemanticSuccess | SemanticFailure


@dataclass(frozen=True, slots=True)
class MergedClassification:
    """Rule and semantic results resolved into one view."""

    category: IntentCategory
    score: int
    sentiment: SentimentAnalysis
    requires_human_review: bool
    intent_confidence: float
    source: Literal["rules", "semantic"]


# pylint: disable=too-many-instance-attributes
@dataclass(frozen=True, slots=True)
class TriageOutcome:
    """Everything one triage pass produces for a conversation."""

    conversation_id: str
    classification: ClassificationResult
    priority: PriorityResult
    triage_score: int
    triage_band: TriageBand
    rule_score: int
    used_semantic: bool
    semantic_error: str | None = None
    quarantined: bool = False
    tags: tuple[str, ...] = ()


__all__ = [
    "INTENT_CATEGORIES",
    "SENTIMENT_LABELS",
    "AutomationDecision",
    "AutomationTag",
    "ClassificationResult",
    "ConversationSnapshot",
    "DimensionScores",
    "EmailContent",
    "ExtractedEntities",
    "IntentCategory",
    "MergedClassification",
    "MessagePreview",
    "PriorityBand",
    "PriorityResult",
    "RenderedTemplate",
    "RiskFlags",
    "RuleClassification",
    "SafetyLevel",
    "ScoringConfidence",
    "SemanticClassification",
    "SemanticFailure",
    "SemanticOutcome",
    "SemanticRequest",
    "SemanticSuccess",
    "SenderType",
    "SentimentAnalysis",
    "SentimentLabel",
    "Signals",
    "Template",
    "TemplateMatch",
    "TriageBand",
    "TriageOutcome",
]
