"""Core utilities for configuration, logging, and dependency wiring."""

from .config import AppSettings, AutomationSettings, TriageSettings, load_app_settings
from .context import TriageContext
from .logging import configure_logging

__all__ = [
    "AppSettings",
    "AutomationSettings",
    "TriageContext",
    "TriageSettings",
    "configure_logging",
    "load_app_settings",
]
