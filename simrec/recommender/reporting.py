"""Reporting sink for recoverable pipeline conditions.

Unmapped identifiers, degenerate score distributions and lookup timeouts do
not stop training or serving. They are written to a sink so that they can be
observed without changing control flow.
"""

import logging
import threading
from collections import Counter
from typing import Any, Dict, Optional, Protocol

UNMAPPABLE_IDENTIFIER = "unmappable_identifier"
DEGENERATE_SCORE_DISTRIBUTION = "degenerate_score_distribution"
LOOKUP_TIMEOUT = "lookup_timeout"

_MESSAGES = {
    UNMAPPABLE_IDENTIFIER: "Identifier not in training population, record filtered",
    DEGENERATE_SCORE_DISTRIBUTION: "Zero-variance scores, standardized to 0",
    LOOKUP_TIMEOUT: "Lookup timed out, using empty result",
}


class ReportingSink(Protocol):
    """Anything that accepts condition reports."""

    def report(self, kind: str, **details: Any) -> None:
        ...


class LoggingSink:
    """Sink that logs every report and keeps a per-kind count.

    Thread-safe, so a single sink can be shared by concurrent requests.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._counts: Counter = Counter()

    def report(self, kind: str, **details: Any) -> None:
        with self._lock:
            self._counts[kind] += 1

        self._logger.warning(
            _MESSAGES.get(kind, kind),
            extra={"report": kind, **details},
        )

    @property
    def counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counts)

    def reset(self) -> None:
        """Reset all counters (useful between training runs)."""
        with self._lock:
            self._counts.clear()


# Shared default sink
default_sink = LoggingSink()
