"""Lifecycle events and timing."""

from __future__ import annotations

import json
import sys
import time
from datetime import datetime, timezone
from typing import Any, TextIO


class Timer:
    """Context manager measuring ``duration_ms`` for envelope metrics."""

    def __init__(self) -> None:
        self.start: float = 0
        self.elapsed_ms: int = 0

    def __enter__(self) -> "Timer":
        self.start = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.elapsed_ms = int((time.perf_counter() - self.start) * 1000)


class EventEmitter:
    """Writes grid, proposal and suggestion events as NDJSON lines.

    Events go to ``stream`` (stderr unless given) so stdout stays a clean
    response channel. Emitted events are also kept in ``history``, which
    hosts and tests read instead of parsing the stream.
    """

    def __init__(self, enabled: bool = False, *, stream: TextIO | None = None) -> None:
        self.enabled = enabled
        self.stream = stream
        self.history: list[dict[str, Any]] = []

    def emit(self, event: str, data: dict[str, Any] | None = None) -> None:
        if not self.enabled:
            return
        record = {
            "event": event,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data or {},
        }
        self.history.append(record)
        out = self.stream or sys.stderr
        out.write(json.dumps(record, default=str) + "\n")
        out.flush()

    def events(self, prefix: str = "") -> list[str]:
        """Names of recorded events, optionally only those starting with *prefix*."""
        return [r["event"] for r in self.history if r["event"].startswith(prefix)]
