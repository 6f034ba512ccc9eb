"""Execution engine package."""

from shell_exec.execution.base import (
    CommandExecutor,
    CommandSpawnError,
    CommandValidationError,
    ExecutionRequest,
    ExecutionResult,
    ShellExecError,
    StreamResult,
    ValidationResult,
)
from shell_exec.execution.history import HistoryStore, PatternSummary
from shell_exec.execution.local_exec import LocalExecutor
from shell_exec.execution.registry import ProcessRegistry, ProcessRegistryError
from shell_exec.execution.streaming import StreamingExecutor
from shell_exec.execution.validator import CommandValidator

__all__ = [
    "CommandExecutor",
    "CommandSpawnError",
    "CommandValidationError",
    "CommandValidator",
    "ExecutionRequest",
    "ExecutionResult",
    "HistoryStore",
    "LocalExecutor",
    "PatternSummary",
    "ProcessRegistry",
    "ProcessRegistryError",
    "ShellExecError",
    "StreamResult",
    "StreamingExecutor",
    "ValidationResult",
]
