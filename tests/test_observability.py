from __future__ import annotations

import json
import logging

from shell_exec.util.logging import get_logger, normalize_level
from shell_exec.util.observability import EventLogger, MetricsCollector, create_observability_manager


def test_metrics_collector_snapshot() -> None:
    metrics = MetricsCollector()
    metrics.increment("executions", 2)
    metrics.record_duration("execution", 15.0)
    metrics.record_duration("execution", 5.0)

    snapshot = metrics.snapshot()

    assert snapshot["counters"]["executions"] == 2
    assert snapshot["durations"]["execution"]["count"] == 2.0
    assert snapshot["durations"]["execution"]["avg_ms"] == 10.0
    assert snapshot["durations"]["execution"]["max_ms"] == 15.0


def test_event_logger_emits_json(caplog) -> None:
    logger = EventLogger("test.events", context={"host": "ci"})
    caplog.set_level(logging.INFO, logger="test.events")

    logger.log("execution.completed", {"exit_code": 0})

    assert caplog.records
    payload = json.loads(caplog.records[-1].message)
    assert payload["event_type"] == "execution.completed"
    assert payload["payload"]["exit_code"] == 0
    assert payload["context"] == {"host": "ci"}


def test_event_logger_respects_level(caplog) -> None:
    logger = EventLogger("test.quiet")
    caplog.set_level(logging.WARNING, logger="test.quiet")

    logger.log("execution.started", {"pid": 1})
    logger.log("execution.timeout", {"pid": 1}, level="WARNING")

    assert [json.loads(record.message)["event_type"] for record in caplog.records] == [
        "execution.timeout"
    ]


def test_default_manager_logs_to_events_logger(caplog) -> None:
    manager = create_observability_manager()
    caplog.set_level(logging.INFO, logger="shell_exec.events")

    manager.log_event("process.terminated", {"pid": 42})

    assert caplog.records[-1].name == "shell_exec.events"


def test_normalize_level_falls_back_to_info() -> None:
    assert normalize_level(" debug ") == logging.DEBUG
    assert normalize_level("warning") == logging.WARNING
    assert normalize_level("verbose") == logging.INFO


def test_get_logger_returns_named_logger() -> None:
    assert get_logger("shell_exec.test").name == "shell_exec.test"
