"""Classification, scoring and automation services."""

from triage_engine.core.interfaces import (
    AutoSendBlockedError,
    ClassificationError,
    TemplateRenderError,
)

from .automation import assess_automation, evaluate_auto_send
from .llm import AnthropicClient, LLMClient, LLMError, OllamaClient, build_llm_client
from .merge import merge_classifications
from .priority import calculate_priority
from .rules import RuleClassifier
from .semantic import LLMSemanticClassifier
from .service import TriageService, build_context
from .signals import extract_signals
from .templates import prepare_auto_send, render_template, select_template

__all__ = [
    "AnthropicClient",
    "AutoSendBlockedError",
    "ClassificationError",
    "LLMClient",
    "LLMError",
    "LLMSemanticClassifier",
    "OllamaClient",
    "RuleClassifier",
    "TemplateRenderError",
    "TriageService",
    "assess_automation",
    "build_context",
    "build_llm_client",
    "calculate_priority",
    "evaluate_auto_send",
    "extract_signals",
    "merge_classifications",
    "prepare_auto_send",
    "render_template",
    "select_template",
]
