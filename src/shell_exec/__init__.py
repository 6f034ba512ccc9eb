"""shell-exec: safe local command execution with timeouts and history."""

from shell_exec.config import ConfigError, ShellExecConfig, load_config
from shell_exec.execution import (
    CommandSpawnError,
    CommandValidationError,
    ExecutionRequest,
    ExecutionResult,
    ShellExecError,
    StreamResult,
    ValidationResult,
)
from shell_exec.service import ShellExecService
from shell_exec.version import __version__

__all__ = [
    "CommandSpawnError",
    "CommandValidationError",
    "ConfigError",
    "ExecutionRequest",
    "ExecutionResult",
    "ShellExecConfig",
    "ShellExecError",
    "ShellExecService",
    "StreamResult",
    "ValidationResult",
    "__version__",
    "load_config",
]
