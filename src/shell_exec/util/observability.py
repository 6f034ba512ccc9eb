"""Structured execution events and in-process metrics."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from shell_exec.util.logging import get_logger, normalize_level

EVENTS_LOGGER_NAME = "shell_exec.events"


@dataclass(frozen=True)
class LogEvent:
    """Structured log event payload.

    Attributes:
        event_type: Machine-readable event name, e.g. ``execution.completed``.
        timestamp: Unix timestamp in seconds.
        payload: Structured data associated with the event.
        context: Shared context fields attached by the emitting logger.
    """

    event_type: str
    timestamp: float
    payload: dict[str, Any]
    context: dict[str, Any] = field(default_factory=dict)


class EventLogger:
    """Logger that emits one JSON document per execution lifecycle event."""

    def __init__(self, logger_name: str, context: dict[str, Any] | None = None) -> None:
        """Initialize the event logger.

        Args:
            logger_name: Logger name used for output.
            context: Optional shared context to attach to every event.
        """

        self._logger = get_logger(logger_name)
        self._context = context or {}

    def log(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        level: str = "INFO",
        context: dict[str, Any] | None = None,
    ) -> None:
        """Emit a structured log event.

        Args:
            event_type: Machine-readable event name.
            payload: Structured event data.
            level: Logging level string (default: INFO).
            context: Optional context overrides for this event.
        """

        numeric_level = normalize_level(level)
        if not self._logger.isEnabledFor(numeric_level):
            return
        event = LogEvent(
            event_type=event_type,
            timestamp=time.time(),
            payload=payload,
            context={**self._context, **(context or {})},
        )
        self._logger.log(numeric_level, json.dumps(asdict(event), sort_keys=True, default=str))


@dataclass
class MetricsCollector:
    """Collects counters and durations for executed commands."""

    counters: dict[str, int] = field(default_factory=dict)
    durations: dict[str, list[float]] = field(default_factory=dict)

    def increment(self, name: str, value: int = 1) -> None:
        """Increment a named counter.

        Args:
            name: Counter name.
            value: Increment amount.
        """

        self.counters[name] = self.counters.get(name, 0) + value

    def record_duration(self, name: str, duration_ms: float) -> None:
        """Record a duration value for a named metric.

        Args:
            name: Duration metric name.
            duration_ms: Duration in milliseconds.
        """

        self.durations.setdefault(name, []).append(duration_ms)

    def snapshot(self) -> dict[str, Any]:
        """Return a snapshot of the collected metrics."""

        duration_summary: dict[str, dict[str, float]] = {}
        for name, values in self.durations.items():
            total = sum(values)
            count = len(values)
            avg = total / count if count else 0.0
            duration_summary[name] = {
                "count": float(count),
                "total_ms": total,
                "avg_ms": avg,
                "max_ms": max(values) if values else 0.0,
            }
        return {
            "counters": dict(self.counters),
            "durations": duration_summary,
        }


@dataclass(frozen=True)
class ObservabilityManager:
    """Container for structured logging and metrics collection."""

    events: EventLogger
    metrics: MetricsCollector

    def log_event(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        """Log an event with the configured event logger."""

        self.events.log(event_type, payload, level=level)


def create_observability_manager(context: dict[str, Any] | None = None) -> ObservabilityManager:
    """Create a default observability manager writing to ``shell_exec.events``."""

    return ObservabilityManager(
        events=EventLogger(EVENTS_LOGGER_NAME, context=context),
        metrics=MetricsCollector(),
    )
