"""Application configuration models and loader utilities."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Literal, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field, field_validator, model_validator

_TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}$")


def _split_csv(value: Any) -> Any:
    """Accept comma-separated strings for list-valued settings."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class LlmSettings(BaseModel):
    """Settings for the semantic classifier's language model."""

    provider: Literal["anthropic", "ollama", "none"] = Field(
        default="none", description="Backing LLM provider; 'none' disables it"
    )
    base_url: str = Field(
        default="http://localhost:11434", description="Ollama server URL"
    )
    model: str = Field(
        default="claude-haiku-4-5-20251001", description="Model identifier"
    )
    api_key: str | None = Field(default=None, description="Provider API key")
    timeout_seconds: float = Field(
        default=20, gt=0, description="Request timeout for LLM calls"
    )
    temperature: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for LLM completions",
    )
    max_output_tokens: int | None = Field(
        default=256,
        ge=32,
        description="Maximum tokens to request from the provider",
    )


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )


class TriageSettings(BaseModel):
    """Rule classifier inputs and semantic-call policy."""

    ambiguous_low: int = Field(
        default=50, ge=0, le=100, description="Lower bound of the semantic band"
    )
    ambiguous_high: int = Field(
        default=75, ge=0, le=100, description="Upper bound of the semantic band"
    )
    risk_keywords: list[str] = Field(
        default_factory=lambda: [
            "chargeback",
            "legal",
            "solicitor",
            "lawyer",
            "trading standards",
            "consumer rights",
            "court",
            "fraud",
            "scam",
            "threatening",
            "ombudsman",
            "watchdog",
        ],
        description="Ordered risk keywords; the first hit is recorded",
    )
    order_number_prefixes: list[str] = Field(
        default_factory=lambda: ["MRS", "NRS"],
        description="Shop-specific order number prefixes (prefix + 5 digits)",
    )
    risk_scoring: bool = Field(default=True, description="Score risk keywords")
    time_sensitivity: bool = Field(
        default=True, description="Score high-urgency phrases"
    )
    sentiment_analysis: bool = Field(
        default=True, description="Score negative words and compute sentiment"
    )
    customer_value_scoring: bool = Field(
        default=True, description="Boost verified customers"
    )
    verified_customer_boost: int = Field(default=30, ge=0)
    age_weight_points_per_day: float = Field(default=0, ge=0)
    max_age_points: int = Field(default=30, ge=0)
    message_window: int = Field(
        default=5, ge=1, description="Recent messages sent to the classifier"
    )

    @field_validator("risk_keywords", "order_number_prefixes", mode="before")
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _split_csv(value)

    @model_validator(mode="after")
    def check_band(self) -> TriageSettings:
        if self.ambiguous_low > self.ambiguous_high:
            raise ValueError("ambiguous_low must not exceed ambiguous_high")
        return self


class ScoringWeights(BaseModel):
    """Multipliers applied to each 0-3 dimension score."""

    risk: float = Field(default=5, ge=0)
    time: float = Field(default=4, ge=0)
    sentiment: float = Field(default=4, ge=0)
    blocker: float = Field(default=4, ge=0)
    value: float = Field(default=3, ge=0)
    age: float = Field(default=3, ge=0)
    escalation: float = Field(default=3, ge=0)


class BandThresholds(BaseModel):
    """Minimum priority score for each band, evaluated top-down."""

    p0: float = 25
    p1: float = 18
    p2: float = 10
    p3: float = 0

    @model_validator(mode="after")
    def check_order(self) -> BandThresholds:
        if not self.p0 >= self.p1 >= self.p2 >= self.p3:
            raise ValueError("band thresholds must satisfy p0 >= p1 >= p2 >= p3")
        return self


def _default_category_scores() -> dict[str, float]:
    return {
        "refund_cancellation": 10,
        "delivery_deadline": 10,
        "complaint": 7,
        "order_issue": 7,
        "technical_product_help": 4,
        "presales_question": 2,
        "general_question": 1,
        "other": 0,
    }


class PrioritySettings(BaseModel):
    """Weights, category base scores and band thresholds."""

    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    category_base_scores: dict[str, float] = Field(
        default_factory=_default_category_scores
    )
    band_thresholds: BandThresholds = Field(default_factory=BandThresholds)


class AutomationSettings(BaseModel):
    """Auto-send policy."""

    auto_send_global_enabled: bool = Field(default=False)
    auto_send_confidence_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    never_auto_send_categories: list[str] = Field(
        default_factory=lambda: ["refund_cancellation", "complaint"]
    )
    business_hours_enabled: bool = Field(default=False)
    business_hours_from: str = Field(default="09:00")
    business_hours_to: str = Field(default="17:00")
    business_hours_timezone: str = Field(
        default="UTC", description="IANA zone the business-hours window is read in"
    )
    max_per_day: int = Field(default=50, ge=0)
    customer_domains: list[str] = Field(default_factory=list)
    excluded_senders: list[str] = Field(default_factory=list)

    @field_validator(
        "never_auto_send_categories",
        "customer_domains",
        "excluded_senders",
        mode="before",
    )
    @classmethod
    def split_lists(cls, value: Any) -> Any:
        return _split_csv(value)

    @field_validator("business_hours_from", "business_hours_to")
    @classmethod
    def check_time(cls, value: str) -> str:
        if not _TIME_PATTERN.match(value):
            raise ValueError("business hours must use HH:MM")
        return value


class TemplateSettings(BaseModel):
    """Values for the system variables every template may use."""

    company_name: str = Field(default="Model Railway Scenes")
    signature: str = Field(default="Model Railway Scenes Team")
    support_hours: str = Field(default="Mon-Fri 9am-5pm GMT")
    support_email: str = Field(default="")


class StorageSettings(BaseModel):
    """Where shared state lives between processes."""

    counter_db_path: str | None = Field(
        default=None,
        description="SQLite file for the daily auto-send counter; in-memory if unset",
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    llm: LlmSettings = Field(default_factory=LlmSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    triage: TriageSettings = Field(default_factory=TriageSettings)
    priority: PrioritySettings = Field(default_factory=PrioritySettings)
    automation: AutomationSettings = Field(default_factory=AutomationSettings)
    templates: TemplateSettings = Field(default_factory=TemplateSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


ENV_PREFIX = "TRIAGE_ENGINE_"


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _normalize_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if value == "":
        return None
    lowercase_value = value.lower()
    if lowercase_value == "true":
        return True
    if lowercase_value == "false":
        return False
    if value.lstrip().startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool = True
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file."""
    collected: dict[str, Any] = {}

    file_values = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = {
                key: value
                for key, value in dotenv_values(env_path).items()
                if key and key.startswith(ENV_PREFIX)
            }

    env_values = {}
    if include_environment:
        env_values = {
            key: value
            for key, value in os.environ.items()
            if key.startswith(ENV_PREFIX)
        }

    combined: dict[str, Any] = {**file_values, **env_values}

    for key, value in combined.items():
        path = _normalize_key(key)
        if not path:
            continue
        _merge_into_tree(collected, path, _normalize_value(value))

    return collected


def load_app_settings(
    env_file: Path | str | None = None,
    *,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings, applying env files and overrides.

    The result is not cached; callers keep the instance for as long as a
    batch run needs a stable configuration snapshot.
    """
    collected = _collect_env_values(env_file, include_environment=include_environment)
    if overrides:
        collected.update(overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "AppSettings",
    "AutomationSettings",
    "BandThresholds",
    "LlmSettings",
    "LoggingSettings",
    "PrioritySettings",
    "ScoringWeights",
    "StorageSettings",
    "TemplateSettings",
    "TriageSettings",
    "load_app_settings",
]
