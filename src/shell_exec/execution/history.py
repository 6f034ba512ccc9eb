"""In-memory execution history and usage pattern analysis."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from shell_exec.execution.base import ExecutionResult, leading_token

TOP_COMMAND_LIMIT = 5
RECENT_FAILURE_LIMIT = 5


@dataclass(frozen=True)
class PatternSummary:
    """Aggregate view over the execution history.

    Attributes:
        total_count: Number of recorded executions.
        success_rate: Fraction of executions with exit code 0.
        average_duration_ms: Mean duration across all executions.
        top_commands: Most frequent leading tokens, most frequent first.
        recent_failures: Latest failed executions, oldest first.
    """

    total_count: int
    success_rate: float
    average_duration_ms: float
    top_commands: tuple[str, ...]
    recent_failures: tuple[ExecutionResult, ...]


class HistoryStore:
    """Append-only record of finished executions in completion order."""

    def __init__(self) -> None:
        self._results: list[ExecutionResult] = []

    def __len__(self) -> int:
        return len(self._results)

    def append(self, result: ExecutionResult) -> None:
        self._results.append(result)

    def snapshot(self) -> list[ExecutionResult]:
        """Return a copy of the stored results, oldest first."""

        return list(self._results)

    def clear(self) -> None:
        self._results.clear()

    def analyze(self) -> PatternSummary:
        """Summarize success rate, durations and command usage."""

        results = list(self._results)
        total = len(results)
        if not total:
            return PatternSummary(
                total_count=0,
                success_rate=0.0,
                average_duration_ms=0.0,
                top_commands=(),
                recent_failures=(),
            )

        successes = sum(1 for result in results if result.exit_code == 0)
        # Counter preserves first-seen order, and most_common() is a stable
        # sort, so ties keep that order.
        usage = Counter(leading_token(result.command) for result in results)
        failures = [result for result in results if result.exit_code != 0]
        return PatternSummary(
            total_count=total,
            success_rate=successes / total,
            average_duration_ms=sum(result.duration_ms for result in results) / total,
            top_commands=tuple(name for name, _ in usage.most_common(TOP_COMMAND_LIMIT)),
            recent_failures=tuple(failures[-RECENT_FAILURE_LIMIT:]),
        )
