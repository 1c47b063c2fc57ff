"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from triage_engine.core.config import (
    AutomationSettings,
    BandThresholds,
    TriageSettings,
    load_app_settings,
)


def test_defaults_loaded_without_env_file() -> None:
    """Default values should be returned when no overrides are present."""

    settings = load_app_settings(include_environment=False)
    assert settings.llm.provider == "none"
    assert settings.triage.ambiguous_low == 50
    assert settings.triage.ambiguous_high == 75
    assert settings.priority.band_thresholds.p0 == 25
    assert settings.priority.weights.risk == 5
    assert settings.automation.auto_send_confidence_threshold == 0.85
    assert settings.automation.never_auto_send_categories == [
        "refund_cancellation",
        "complaint",
    ]
    assert settings.automation.max_per_day == 50


def test_env_file_overrides(tmp_path: Path) -> None:
    """Values defined in an env file should override defaults."""

    env_file = tmp_path / "test.env"
    env_file.write_text(
        "\n".join(
            [
                "TRIAGE_ENGINE_LLM__PROVIDER=ollama",
                "TRIAGE_ENGINE_AUTOMATION__AUTO_SEND_GLOBAL_ENABLED=true",
                "TRIAGE_ENGINE_AUTOMATION__NEVER_AUTO_SEND_CATEGORIES=complaint,other",
                'TRIAGE_ENGINE_TRIAGE__ORDER_NUMBER_PREFIXES=["ABC"]',
                "TRIAGE_ENGINE_PRIORITY__WEIGHTS__RISK=7",
                "UNRELATED_SETTING=ignored",
            ]
        ),
        encoding="utf-8",
    )

    settings = load_app_settings(env_file=env_file, include_environment=False)
    assert settings.llm.provider == "ollama"
    assert settings.automation.auto_send_global_enabled is True
    assert settings.automation.never_auto_send_categories == ["complaint", "other"]
    assert settings.triage.order_number_prefixes == ["ABC"]
    assert settings.priority.weights.risk == 7


def test_environment_wins_over_env_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    env_file = tmp_path / "test.env"
    env_file.write_text("TRIAGE_ENGINE_TRIAGE__AMBIGUOUS_LOW=40\n", encoding="utf-8")
    monkeypatch.setenv("TRIAGE_ENGINE_TRIAGE__AMBIGUOUS_LOW", "45")

    settings = load_app_settings(env_file=env_file)
    assert settings.triage.ambiguous_low == 45


def test_loader_returns_fresh_instances() -> None:
    """Settings are owned by the caller rather than cached globally."""

    first = load_app_settings(include_environment=False)
    second = load_app_settings(include_environment=False)
    assert first is not second


def test_keyword_overrides_are_applied() -> None:
    settings = load_app_settings(
        include_environment=False, templates={"company_name": "Acme"}
    )
    assert settings.templates.company_name == "Acme"


def test_band_thresholds_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        BandThresholds(p0=10, p1=18, p2=5, p3=0)


def test_ambiguous_band_must_be_ordered() -> None:
    with pytest.raises(ValidationError):
        TriageSettings(ambiguous_low=80, ambiguous_high=60)


def test_business_hours_must_be_hh_mm() -> None:
    with pytest.raises(ValidationError):
        AutomationSettings(business_hours_from="9am")


def test_negative_weights_rejected() -> None:
    with pytest.raises(ValidationError):
        load_app_settings(
            include_environment=False, priority={"weights": {"risk": -1}}
        )
