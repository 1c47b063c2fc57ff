"""Storage backends for shared triage state."""

from .counter import InMemoryAutoSendCounter, SqliteAutoSendCounter

__all__ = ["InMemoryAutoSendCounter", "SqliteAutoSendCounter"]
