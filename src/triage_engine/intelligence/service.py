"""End-to-end triage pipeline for a single conversation."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, replace

from triage_engine.core.config import AppSettings
from triage_engine.core.context import TriageContext
from triage_engine.core.datetime_utils import days_between
from triage_engine.core.interfaces import AutoSendCounter, ConversationStore
from triage_engine.core.models import (
    ClassificationResult,
    ConversationSnapshot,
    EmailContent,
    ExtractedEntities,
    MergedClassification,
    MessagePreview,
    RiskFlags,
    RuleClassification,
    SemanticFailure,
    SemanticOutcome,
    SemanticRequest,
    SemanticSuccess,
    SentimentAnalysis,
    TriageBand,
    TriageOutcome,
)
from triage_engine.storage import InMemoryAutoSendCounter, SqliteAutoSendCounter

from .automation import assess_automation
from .llm import build_llm_client
from .merge import merge_classifications
from .priority import calculate_priority
from .rules import RuleClassifier
from .semantic import LLMSemanticClassifier
from .signals import detect_risk_flags, extract_entities, identify_sender_type

LOGGER = logging.getLogger(__name__)

QUARANTINE_SCORE = 60
_PREVIEW_LENGTH = 200


def conservative_classification() -> ClassificationResult:
    """Result used when classification itself fails."""
    return ClassificationResult(
        sender_type="unknown",
        intent_category="other",
        intent_confidence=0.3,
        automation_tag="human_required",
        automation_confidence=0.0,
        automation_reason="Classification failed - defaulting to human review",
        extracted_entities=ExtractedEntities(),
        sentiment_label="neutral",
        emotion_tags=(),
        risk_flags=RiskFlags(),
        requires_human_review=True,
        sentiment_score=0.0,
    )


def triage_band_for_score(score: int) -> TriageBand:
    """Map a 0-100 triage score onto its band."""
    if score >= 76:
        return "urgent"
    if score >= 51:
        return "high"
    if score >= 21:
        return "medium"
    return "low"


@dataclass(frozen=True, slots=True)
class _PipelineResult:
    classification: ClassificationResult
    rule: RuleClassification
    merged: MergedClassification
    adjusted_score: int
    semantic: SemanticOutcome | None
    quarantined: bool
    tags: tuple[str, ...]


class TriageService:
    """Classify, score and tag conversations using a caller-owned context."""

    def __init__(self, context: TriageContext) -> None:
        self._context = context
        self._settings = context.settings
        self._rules = RuleClassifier(context.settings.triage)

    def classify_email(
        self,
        email: EmailContent,
        *,
        unread_count: int = 0,
        message_count: int = 1,
    ) -> ClassificationResult:
        """Classify a single email; never raises."""
        try:
            result = self._run(
                email,
                unread_count=unread_count,
                message_count=message_count,
                conversation=None,
                previews=(),
            )
        except Exception:  # noqa: BLE001 - every email must be classified
            LOGGER.exception(
                "Classification failed for email from %s", email.from_address
            )
            return conservative_classification()
        return result.classification

    def triage(
        self,
        conversation: ConversationSnapshot,
        messages: Sequence[MessagePreview],
    ) -> TriageOutcome:
        """Run the full pipeline for ``conversation`` and its recent messages."""
        email = _conversation_email(conversation, messages)
        window = messages[: self._settings.triage.message_window]
        previews = tuple(_format_preview(message) for message in window)
        now = self._context.now()

        try:
            result = self._run(
                email,
                unread_count=conversation.unread_count,
                message_count=conversation.message_count,
                conversation=conversation,
                previews=previews,
            )
        except Exception:  # noqa: BLE001 - every conversation must be classified
            LOGGER.exception(
                "Classification failed for conversation %s", conversation.id
            )
            classification = conservative_classification()
            priority = calculate_priority(
                classification, email, conversation, self._settings.priority, now=now
            )
            return TriageOutcome(
                conversation_id=conversation.id,
                classification=classification,
                priority=priority,
                triage_score=0,
                triage_band="low",
                rule_score=0,
                used_semantic=False,
                tags=("classification_failed",),
            )

        priority = calculate_priority(
            result.classification,
            email,
            conversation,
            self._settings.priority,
            now=now,
        )
        semantic_error = (
            result.semantic.error
            if isinstance(result.semantic, SemanticFailure)
            else None
        )
        outcome = TriageOutcome(
            conversation_id=conversation.id,
            classification=result.classification,
            priority=priority,
            triage_score=result.merged.score,
            triage_band=triage_band_for_score(result.merged.score),
            rule_score=result.adjusted_score,
            used_semantic=isinstance(result.semantic, SemanticSuccess),
            semantic_error=semantic_error,
            quarantined=result.quarantined,
            tags=result.tags,
        )
        LOGGER.info(
            "Triaged conversation %s score=%s band=%s priority=%s automation=%s",
            conversation.id,
            outcome.triage_score,
            outcome.triage_band,
            priority.priority_band,
            outcome.classification.automation_tag,
        )
        return outcome

    def triage_conversation(
        self, conversation_id: str, store: ConversationStore
    ) -> TriageOutcome:
        """Load a conversation from ``store``, triage it and persist the outcome."""
        conversation = store.fetch_conversation(conversation_id)
        if conversation is None:
            raise LookupError(f"Unknown conversation: {conversation_id}")
        messages = store.fetch_recent_messages(
            conversation_id, self._settings.triage.message_window
        )
        outcome = self.triage(conversation, messages)
        store.persist_triage(conversation_id, outcome)
        return outcome

    # pylint: disable=too-many-locals
    def _run(
        self,
        email: EmailContent,
        *,
        unread_count: int,
        message_count: int,
        conversation: ConversationSnapshot | None,
        previews: tuple[str, ...],
    ) -> _PipelineResult:
        triage_settings = self._settings.triage
        text = email.text

        rule = self._rules.classify(
            text, unread_count=unread_count, message_count=message_count
        )
        tags = list(rule.tags)
        verified = conversation is not None and conversation.verified_customer

        adjusted = rule.score
        if verified and triage_settings.customer_value_scoring:
            adjusted += triage_settings.verified_customer_boost
            tags.append("verified_customer")
        if conversation is not None:
            age_points = self._age_points(conversation)
            if age_points:
                adjusted += age_points
                tags.append(f"age_weight:{age_points}")
        adjusted = max(0, min(adjusted, 100))

        semantic = self._maybe_classify_semantically(
            email.subject, previews or (_truncate(email.body),), rule, adjusted
        )
        merged = merge_classifications(replace(rule, score=adjusted), semantic)
        if not triage_settings.sentiment_analysis:
            merged = replace(
                merged, sentiment=SentimentAnalysis(label="neutral", score=0.0)
            )

        entities = extract_entities(text, triage_settings.order_number_prefixes)
        known_orders = conversation.known_order_numbers if conversation else ()
        quarantined = (
            conversation is not None
            and not verified
            and not known_orders
            and entities.order_id is None
            and merged.score < QUARANTINE_SCORE
        )
        if quarantined:
            tags.append("uncertain:not_verified")
            LOGGER.info("Quarantined unverified sender %s", email.from_address)

        classification = self._build_classification(
            email, merged, entities, quarantined=quarantined
        )
        return _PipelineResult(
            classification=classification,
            rule=rule,
            merged=merged,
            adjusted_score=adjusted,
            semantic=semantic,
            quarantined=quarantined,
            tags=tuple(tags),
        )

    def _age_points(self, conversation: ConversationSnapshot) -> int:
        per_day = self._settings.triage.age_weight_points_per_day
        if per_day <= 0 or conversation.first_message_at is None:
            return 0
        age_days = days_between(conversation.first_message_at, self._context.now())
        points = math.floor(max(age_days, 0.0) * per_day)
        return min(self._settings.triage.max_age_points, points)

    def _maybe_classify_semantically(
        self,
        subject: str,
        previews: tuple[str, ...],
        rule: RuleClassification,
        score: int,
    ) -> SemanticOutcome | None:
        classifier = self._context.semantic_classifier
        triage_settings = self._settings.triage
        if classifier is None:
            return None
        if not triage_settings.ambiguous_low <= score <= triage_settings.ambiguous_high:
            return None

        LOGGER.info("Ambiguous score %s, consulting semantic classifier", score)
        request = SemanticRequest(
            subject=subject,
            message_previews=previews,
            rule_score=score,
            rule_category=rule.category,
        )
        try:
            return classifier.classify(request)
        except Exception as exc:  # noqa: BLE001 - degrade to rules
            LOGGER.warning("Semantic classifier raised: %s", exc)
            return SemanticFailure(error=str(exc))

    def _build_classification(
        self,
        email: EmailContent,
        merged: MergedClassification,
        entities: ExtractedEntities,
        *,
        quarantined: bool,
    ) -> ClassificationResult:
        risk_flags = detect_risk_flags(email.text)
        automation = assess_automation(
            merged.category,
            merged.intent_confidence,
            merged.sentiment.label,
            risk_flags,
            self._settings.automation,
        )
        requires_review = (
            merged.requires_human_review
            or quarantined
            or risk_flags.requires_escalation
            or risk_flags.requires_refund
        )
        return ClassificationResult(
            sender_type=identify_sender_type(
                email,
                customer_domains=self._settings.automation.customer_domains,
                excluded_senders=self._settings.automation.excluded_senders,
            ),
            intent_category=merged.category,
            intent_confidence=merged.intent_confidence,
            automation_tag=automation.tag,
            automation_confidence=automation.confidence,
            automation_reason=automation.reason,
            extracted_entities=entities,
            sentiment_label=merged.sentiment.label,
            emotion_tags=merged.sentiment.emotion_tags,
            risk_flags=risk_flags,
            requires_human_review=requires_review,
            sentiment_score=merged.sentiment.score,
        )


def _truncate(text: str | None) -> str:
    return (text or "")[:_PREVIEW_LENGTH]


def _format_preview(message: MessagePreview) -> str:
    sender = message.from_address or "unknown"
    return f"From: {sender} - {_truncate(message.body_preview)}"


def _conversation_email(
    conversation: ConversationSnapshot, messages: Sequence[MessagePreview]
) -> EmailContent:
    body = "\n".join(
        part
        for message in messages
        for part in (message.subject, message.body_preview)
        if part
    )
    latest = messages[0] if messages else None
    from_address = (
        (latest.from_address if latest else None)
        or conversation.primary_customer_email
        or ""
    )
    return EmailContent(
        subject=conversation.subject or "",
        body=body,
        from_address=from_address,
        received_at=conversation.latest_message_at,
    )


def build_context(
    settings: AppSettings, counter: AutoSendCounter | None = None
) -> TriageContext:
    """Create the per-run context, selecting an LLM from ``settings.llm``."""
    llm_client = build_llm_client(settings.llm)
    classifier = LLMSemanticClassifier(llm_client) if llm_client else None
    if classifier is None:
        LOGGER.info("No LLM provider configured; using rule-based classification only")
    if counter is None:
        db_path = settings.storage.counter_db_path
        counter = (
            SqliteAutoSendCounter(db_path) if db_path else InMemoryAutoSendCounter()
        )
    return TriageContext(
        settings=settings,
        send_counter=counter,
        semantic_classifier=classifier,
    )


__all__ = [
    "QUARANTINE_SCORE",
    "TriageService",
    "build_context",
    "conservative_classification",
    "triage_band_for_score",
]
