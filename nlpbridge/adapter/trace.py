"""Trace sinks notified at fixed points of sparsity discovery and evaluation.

Sinks are plain callables ``sink(event, **fields)``. They observe the
adapter; nothing they do changes its control flow.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from nlpbridge.logging import get_logger


class TraceSink(Protocol):
    def __call__(self, event: str, **fields: Any) -> None: ...


class LoggingTraceSink:
    """Write every event as one DEBUG record."""

    def __init__(self, logger: logging.Logger | None = None):
        self._log = logger or get_logger("nlpbridge.trace")

    def __call__(self, event: str, **fields: Any) -> None:
        if not self._log.isEnabledFor(logging.DEBUG):
            return
        detail = " ".join(f"{key}={value}" for key, value in fields.items())
        self._log.debug("[%s] %s", event, detail)


@dataclass
class RecordingTraceSink:
    """Keep events in memory, e.g. to inspect a solve after the fact."""

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def __call__(self, event: str, **fields: Any) -> None:
        self.events.append((event, dict(fields)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def count(self, event: str) -> int:
        return sum(1 for name, _ in self.events if name == event)
