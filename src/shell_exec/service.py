"""Service facade wiring validation, execution, registry and history."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from shell_exec.version import __version__
from shell_exec.capabilities import describe_capabilities
from shell_exec.config import ConfigError, ShellExecConfig, config_to_dict, load_config
from shell_exec.execution.base import (
    ExecutionRequest,
    ExecutionResult,
    StreamResult,
    ValidationResult,
)
from shell_exec.execution.history import HistoryStore, PatternSummary
from shell_exec.execution.local_exec import ChunkSink, LocalExecutor
from shell_exec.execution.registry import ProcessRegistry
from shell_exec.execution.streaming import ExitSink, StreamingExecutor
from shell_exec.execution.validator import CommandValidator
from shell_exec.util.logging import get_logger
from shell_exec.util.observability import ObservabilityManager, create_observability_manager

CONFIG_FILE_NAME = "shell_exec.yaml"

_LOGGER = get_logger("shell_exec.service")


class ShellExecService:
    """Safe command execution with history and process management.

    One instance owns one process registry and one history store; the
    buffered and the streaming executor share both, so the concurrency limit
    covers every running command regardless of how it was started.
    """

    def __init__(
        self,
        config: ShellExecConfig | None = None,
        *,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Defaults and policy; ``ShellExecConfig()`` when omitted.
            observability: Event logger and metrics sink shared by the executors.
        """

        self._config = config or ShellExecConfig()
        self._observability = observability or create_observability_manager()
        self._registry = ProcessRegistry()
        self._history = HistoryStore()
        self._validator = CommandValidator.from_config(
            self._config, running_count=lambda: self._registry.active_count
        )
        shared: dict[str, Any] = {
            "registry": self._registry,
            "history": self._history,
            "validator": self._validator,
            "observability": self._observability,
        }
        self._executor = LocalExecutor(self._config, **shared)
        self._streamer = StreamingExecutor(self._config, **shared)

    @classmethod
    def from_path(cls, path: Path | None = None) -> ShellExecService:
        """Create a service from a config file or a directory containing one."""

        return cls(load_config(path))

    @property
    def config(self) -> ShellExecConfig:
        return self._config

    @property
    def observability(self) -> ObservabilityManager:
        return self._observability

    async def execute(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        timeout_ms: int | None = None,
        env: dict[str, str] | None = None,
        shell: bool = True,
    ) -> ExecutionResult:
        """Execute a command and capture its output.

        Args:
            command: Command line to run.
            cwd: Working directory; the configured default when None.
            timeout_ms: Timeout in milliseconds; the configured default when None.
            env: Variables merged over the ambient environment.
            shell: Run through the platform shell when True.

        Returns:
            The finished ExecutionResult, also appended to the history.

        Raises:
            CommandValidationError: If the command is rejected by policy.
            CommandSpawnError: If the process cannot be started.
        """

        request = ExecutionRequest(
            command=command, cwd=cwd, timeout_ms=timeout_ms, env=env, shell=shell
        )
        return await self._executor.execute(request)

    async def stream(
        self,
        command: str,
        *,
        cwd: Path | None = None,
        timeout_ms: int | None = None,
        env: dict[str, str] | None = None,
        shell: bool = True,
        on_stdout: ChunkSink | None = None,
        on_stderr: ChunkSink | None = None,
        on_exit: ExitSink | None = None,
    ) -> StreamResult:
        """Execute a command, forwarding output chunks to callbacks."""

        request = ExecutionRequest(
            command=command, cwd=cwd, timeout_ms=timeout_ms, env=env, shell=shell
        )
        return await self._streamer.stream(
            request, on_stdout=on_stdout, on_stderr=on_stderr, on_exit=on_exit
        )

    def run(self, command: str, **options: Any) -> ExecutionResult:
        """Synchronously execute a command in a fresh event loop."""

        return asyncio.run(self.execute(command, **options))

    def validate(self, command: str) -> ValidationResult:
        return self._validator.validate(command)

    def kill(self, pid: int) -> bool:
        """Request graceful termination of one running process."""

        terminated = self._registry.terminate_one(pid)
        if terminated:
            self._observability.log_event("process.terminated", {"pid": pid})
        return terminated

    def kill_all(self) -> int:
        """Request graceful termination of every running process."""

        pids = self._registry.list()
        terminated = self._registry.terminate_all()
        if terminated:
            self._observability.log_event(
                "process.terminated", {"pids": pids, "count": terminated}
            )
        return terminated

    def get_history(self) -> list[ExecutionResult]:
        return self._history.snapshot()

    def get_running_processes(self) -> list[int]:
        return self._registry.list()

    def analyze_patterns(self) -> PatternSummary:
        return self._history.analyze()

    def metrics(self) -> dict[str, Any]:
        return self._observability.metrics.snapshot()

    def whoami(self) -> str:
        """Return a one-line status summary."""

        return (
            f"ShellExecService v{__version__} - {len(self._history)} commands executed, "
            f"{self._registry.count} running"
        )

    def describe(self) -> dict[str, Any]:
        """Describe the service's operations and active policy."""

        return {
            "version": __version__,
            "capabilities": describe_capabilities(),
            "config": config_to_dict(self._config),
        }


def initialize_config(directory: Path) -> Path:
    """Write a default configuration file into ``directory``.

    Args:
        directory: Directory where the config should be written.

    Returns:
        Path to the generated configuration file.

    Raises:
        ConfigError: If the config file already exists.
    """

    directory = directory.resolve()
    config_path = directory / CONFIG_FILE_NAME
    if config_path.exists():
        raise ConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "directory."
        )
    config_path.write_text(
        json.dumps(config_to_dict(ShellExecConfig(default_cwd=directory)), indent=2),
        encoding="utf-8",
    )
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path
