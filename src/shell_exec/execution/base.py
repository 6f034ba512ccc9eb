"""Execution request/result types and the executor error hierarchy."""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


class ShellExecError(RuntimeError):
    """Base class for errors raised by shell-exec."""


class CommandValidationError(ShellExecError):
    """Raised when a command is rejected before anything is spawned."""

    def __init__(self, command: str, validation: ValidationResult) -> None:
        super().__init__(f"Command blocked: {validation.reason}")
        self.command = command
        self.validation = validation


class CommandSpawnError(ShellExecError):
    """Raised when the operating system cannot start the process."""

    def __init__(self, command: str, cause: BaseException) -> None:
        super().__init__(f"Command execution failed: {command}\nError: {cause}")
        self.command = command
        self.cause = cause


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of checking a command against the execution policy.

    Attributes:
        valid: True if the command may be executed.
        reason: Human-readable explanation of the decision.
        suggestions: Alternatives to try when the command is rejected.
    """

    valid: bool
    reason: str
    suggestions: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExecutionRequest:
    """A single command invocation.

    Attributes:
        command: Command line to run.
        cwd: Working directory; the configured default when None.
        timeout_ms: Timeout in milliseconds; the configured default when None.
        env: Variables merged over the ambient environment.
        shell: Hand the command line to the platform shell when True,
            otherwise tokenize it and execute the first token directly.
    """

    command: str
    cwd: Path | None = None
    timeout_ms: int | None = None
    env: dict[str, str] | None = None
    shell: bool = True

    def __post_init__(self) -> None:
        if not self.command or not self.command.strip():
            raise ValueError("Command must be a non-empty string.")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}.")
        if self.env is not None:
            object.__setattr__(self, "env", dict(self.env))


@dataclass(frozen=True)
class ExecutionResult:
    """Result of a finished command.

    Attributes:
        exit_code: Process exit code; 0 when the process ended by a signal.
        stdout: Captured standard output without trailing whitespace.
        stderr: Captured standard error without trailing whitespace.
        duration_ms: Wall-clock time from spawn to exit.
        killed: True if the timeout watchdog terminated the process.
        command: The command line as requested.
        pid: Operating-system process id.
        signal_number: Signal that ended the process, if any.
    """

    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int
    killed: bool
    command: str
    pid: int | None = None
    signal_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class StreamResult:
    """Result of a streamed command; output went to the caller's callbacks."""

    exit_code: int
    duration_ms: int
    killed: bool
    command: str
    pid: int | None = None
    signal_number: int | None = None


class CommandExecutor(ABC):
    """Abstract base class for command execution engines."""

    @abstractmethod
    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a command and capture its results.

        Args:
            request: The command and its options.

        Returns:
            ExecutionResult with stdout, stderr, exit code, and duration.

        Raises:
            CommandValidationError: If the command is rejected by policy.
            CommandSpawnError: If the process cannot be started.
        """


def split_command(command: str) -> list[str]:
    """Tokenize a command line for direct (non-shell) execution."""

    try:
        tokens = shlex.split(command)
    except ValueError as exc:
        raise ValueError(f"Cannot tokenize command {command!r}: {exc}") from exc
    if not tokens:
        raise ValueError("Command must contain at least one token.")
    return tokens


def leading_token(command: str) -> str:
    """Return the first whitespace-delimited token of a command line."""

    parts = command.split(maxsplit=1)
    return parts[0] if parts else ""
