"""Protocol interfaces and error types shared by pipeline components."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import TYPE_CHECKING, Protocol

from .models import (
    ConversationSnapshot,
    MessagePreview,
    SemanticOutcome,
    SemanticRequest,
    Template,
    TriageOutcome,
)

if TYPE_CHECKING:
    from .models import AutomationDecision


class ClassificationError(RuntimeError):
    """Raised inside the semantic adapter when a response cannot be used."""


class TemplateRenderError(ValueError):
    """Raised when a template cannot be rendered completely."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = tuple(missing)
        super().__init__(f"Missing required variables: {', '.join(self.missing)}")


class AutoSendBlockedError(RuntimeError):
    """Raised when an auto-send attempt is refused by the safety gate."""

    def __init__(self, decision: AutomationDecision) -> None:
        self.decision = decision
        super().__init__(decision.reason)


class SemanticClassifier(Protocol):
    """External classifier consulted when the rule score is ambiguous."""

    def classify(self, request: SemanticRequest) -> SemanticOutcome:
        """Return a success or failure result; never raise."""
        raise NotImplementedError


class ConversationStore(Protocol):
    """Read/write access to conversations and their messages."""

    def fetch_conversation(self, conversation_id: str) -> ConversationSnapshot | None:
        """Return conversation metadata, or ``None`` when unknown."""
        raise NotImplementedError

    def fetch_recent_messages(
        self, conversation_id: str, limit: int
    ) -> Sequence[MessagePreview]:
        """Return up to ``limit`` messages, newest first."""
        raise NotImplementedError

    def persist_triage(self, conversation_id: str, outcome: TriageOutcome) -> None:
        """Store classification and priority fields on the conversation."""
        raise NotImplementedError


class TemplateStore(Protocol):
    """Source of operator-maintained reply templates."""

    def list_active_templates(self) -> Sequence[Template]:
        """Return every template currently marked active."""
        raise NotImplementedError


class AutoSendCounter(Protocol):
    """Daily auto-send counter shared by concurrent senders."""

    def current(self, day: date) -> int:
        """Return the number of auto-sends recorded for ``day``."""
        raise NotImplementedError

    def reserve(self, day: date, limit: int) -> bool:
        """Atomically claim one send slot; return ``False`` at the cap."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any underlying resources."""
        raise NotImplementedError


__all__ = [
    "AutoSendBlockedError",
    "AutoSendCounter",
    "ClassificationError",
    "ConversationStore",
    "SemanticClassifier",
    "TemplateRenderError",
    "TemplateStore",
]
