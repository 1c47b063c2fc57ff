"""Per-run dependency context passed through the triage pipeline."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import TracebackType

from .config import AppSettings
from .interfaces import AutoSendCounter, SemanticClassifier


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class TriageContext:
    """Settings snapshot and collaborators owned by the caller for one batch."""

    settings: AppSettings
    send_counter: AutoSendCounter
    semantic_classifier: SemanticClassifier | None = None
    clock: Callable[[], datetime] = field(default=_utc_now)

    def now(self) -> datetime:
        """Return the current time according to the context clock."""
        return self.clock()

    def close(self) -> None:
        """Release collaborators that hold resources, such as the counter."""
        self.send_counter.close()

    def __enter__(self) -> TriageContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["TriageContext"]
