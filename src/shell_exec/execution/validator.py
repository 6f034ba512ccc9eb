"""Pre-spawn command policy: block-list, allow-list and concurrency gate."""

from __future__ import annotations

from typing import Callable, Sequence

from shell_exec.config import ShellExecConfig
from shell_exec.execution.base import ValidationResult, leading_token

ALLOWED_SUGGESTION_COUNT = 3


class CommandValidator:
    """Decides whether a command may be executed.

    Checks run in a fixed order and the first failing check wins: blocked
    substrings, then the allow-list, then the number of running processes.
    Blocked patterns are plain substrings of the whole command line, so they
    can both over-match (``"su"`` inside ``"result"``) and miss equivalent
    invocations phrased differently. The validator reads the running count
    as a snapshot; it does not reserve a slot.
    """

    def __init__(
        self,
        *,
        allowed_commands: Sequence[str] = (),
        blocked_commands: Sequence[str] = (),
        max_concurrent: int,
        running_count: Callable[[], int],
    ) -> None:
        """Initialize the validator.

        Args:
            allowed_commands: Permitted leading tokens or prefixes; empty allows all.
            blocked_commands: Substrings that reject a command.
            max_concurrent: Maximum number of simultaneously running processes.
            running_count: Returns the current number of running processes.
        """

        self._allowed = tuple(allowed_commands)
        self._blocked = tuple(blocked_commands)
        self._max_concurrent = max_concurrent
        self._running_count = running_count

    @classmethod
    def from_config(
        cls, config: ShellExecConfig, running_count: Callable[[], int]
    ) -> CommandValidator:
        """Build a validator from the configured lists and limit."""

        return cls(
            allowed_commands=config.allowed_commands,
            blocked_commands=config.blocked_commands,
            max_concurrent=config.max_concurrent,
            running_count=running_count,
        )

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    def validate(self, command: str) -> ValidationResult:
        """Check a command line against the policy.

        Args:
            command: The command line to check.

        Returns:
            ValidationResult describing the decision.
        """

        text = command.strip()
        if not text:
            return ValidationResult(valid=False, reason="Command is empty")

        for pattern in self._blocked:
            if pattern and pattern in text:
                return ValidationResult(
                    valid=False,
                    reason=f"Command contains blocked pattern: {pattern}",
                    suggestions=(f"Use safer alternatives to {pattern}",),
                )

        if self._allowed:
            base = leading_token(text)
            if not any(base == allowed or text.startswith(f"{allowed} ") for allowed in self._allowed):
                return ValidationResult(
                    valid=False,
                    reason=f"Command not in allowed list: {base}",
                    suggestions=self._allowed[:ALLOWED_SUGGESTION_COUNT],
                )

        if self._running_count() >= self._max_concurrent:
            return ValidationResult(
                valid=False,
                reason=f"Maximum concurrent processes reached: {self._max_concurrent}",
                suggestions=(
                    "Wait for running processes to complete",
                    "Use kill_all() to terminate running processes",
                ),
            )

        return ValidationResult(valid=True, reason="Command passed all safety checks")
