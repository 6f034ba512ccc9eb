"""Local execution engine implementation."""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import inspect
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable

from shell_exec.config import ShellExecConfig
from shell_exec.execution.base import (
    CommandExecutor,
    CommandSpawnError,
    CommandValidationError,
    ExecutionRequest,
    ExecutionResult,
    split_command,
)
from shell_exec.execution.history import HistoryStore
from shell_exec.execution.registry import (
    USE_PROCESS_GROUPS,
    ProcessRegistry,
    send_termination,
)
from shell_exec.execution.validator import CommandValidator
from shell_exec.util.logging import get_logger
from shell_exec.util.observability import ObservabilityManager, create_observability_manager

ChunkSink = Callable[[str], "Awaitable[None] | None"]

READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ProcessOutcome:
    """How a supervised process ended.

    Attributes:
        returncode: Raw return code; negative when ended by a signal.
        killed: True if the timeout watchdog fired.
        pid: Operating-system process id.
        duration_ms: Time from spawn to exit.
    """

    returncode: int
    killed: bool
    pid: int
    duration_ms: int

    @property
    def exit_code(self) -> int:
        return self.returncode if self.returncode >= 0 else 0

    @property
    def signal_number(self) -> int | None:
        return -self.returncode if self.returncode < 0 else None


class Watchdog:
    """Terminates a process once its deadline passes.

    On expiry it sends the graceful signal, waits ``grace_ms`` and then sends
    the forceful one. The owning execution cancels it as soon as the process
    has exited.
    """

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        timeout_ms: int,
        grace_ms: int,
        on_fire: Callable[[], None] | None = None,
    ) -> None:
        self.fired = False
        self._process = process
        self._timeout_ms = timeout_ms
        self._grace_ms = grace_ms
        self._on_fire = on_fire
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self._timeout_ms / 1000)
        self.fired = True
        if self._on_fire is not None:
            self._on_fire()
        send_termination(self._process)
        await asyncio.sleep(self._grace_ms / 1000)
        send_termination(self._process, force=True)

    async def cancel(self) -> None:
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task


class LocalExecutor(CommandExecutor):
    """Execute commands on the local host and buffer their output."""

    def __init__(
        self,
        config: ShellExecConfig | None = None,
        *,
        registry: ProcessRegistry | None = None,
        history: HistoryStore | None = None,
        validator: CommandValidator | None = None,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the executor.

        Args:
            config: Defaults and policy; ``ShellExecConfig()`` when omitted.
            registry: Shared registry of running processes.
            history: Shared store that finished results are appended to.
            validator: Policy check run before every spawn. Built from
                ``config`` and ``registry`` when omitted.
            observability: Event logger and metrics sink.
        """

        self._config = config or ShellExecConfig()
        self._registry = registry if registry is not None else ProcessRegistry()
        self._history = history if history is not None else HistoryStore()
        self._validator = validator or CommandValidator.from_config(
            self._config, running_count=lambda: self._registry.active_count
        )
        self._observability = observability or create_observability_manager()
        self._logger = get_logger(self.__class__.__name__)

    @property
    def config(self) -> ShellExecConfig:
        return self._config

    @property
    def registry(self) -> ProcessRegistry:
        return self._registry

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def validator(self) -> CommandValidator:
        return self._validator

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Run a command locally and capture its output.

        Args:
            request: The command and its options.

        Returns:
            ExecutionResult with stdout, stderr, exit code, and duration.

        Raises:
            CommandValidationError: If the command is rejected by policy.
            CommandSpawnError: If the process cannot be started.
        """

        stdout_chunks: list[str] = []
        stderr_chunks: list[str] = []
        outcome = await self._run_process(request, stdout_chunks.append, stderr_chunks.append)
        result = ExecutionResult(
            exit_code=outcome.exit_code,
            stdout="".join(stdout_chunks).rstrip(),
            stderr="".join(stderr_chunks).rstrip(),
            duration_ms=outcome.duration_ms,
            killed=outcome.killed,
            command=request.command,
            pid=outcome.pid,
            signal_number=outcome.signal_number,
        )
        self._record(result)
        return result

    async def _run_process(
        self,
        request: ExecutionRequest,
        on_stdout: ChunkSink | None,
        on_stderr: ChunkSink | None,
    ) -> ProcessOutcome:
        command = request.command
        validation = self._validator.validate(command)
        if not validation.valid:
            self._observability.metrics.increment("rejections")
            self._observability.log_event(
                "execution.rejected",
                {"command": command, "reason": validation.reason},
                level="WARNING",
            )
            raise CommandValidationError(command, validation)

        cwd = request.cwd if request.cwd is not None else self._config.default_cwd
        timeout_ms = (
            request.timeout_ms if request.timeout_ms is not None else self._config.default_timeout_ms
        )
        env = {**os.environ, **self._config.env, **(request.env or {})}

        self._logger.info("Executing: %s (cwd=%s, timeout=%dms)", command, cwd, timeout_ms)
        start = time.monotonic()
        with self._registry.spawning():
            process = await self._spawn(command, cwd=cwd, env=env, shell=request.shell)
            pid = process.pid
            self._registry.register(pid, process)
        self._observability.log_event(
            "execution.started",
            {"command": command, "pid": pid, "cwd": str(cwd), "timeout_ms": timeout_ms},
        )

        watchdog = Watchdog(
            process,
            timeout_ms,
            self._config.kill_grace_ms,
            on_fire=lambda: self._on_timeout(command, pid, timeout_ms),
        )
        try:
            await _drain(process, on_stdout, on_stderr)
            returncode = await process.wait()
        except BaseException:
            # Cancelled by the caller or a sink raised: do not leave the
            # child running unsupervised.
            send_termination(process, force=True)
            with contextlib.suppress(BaseException):
                await process.wait()
            raise
        finally:
            await watchdog.cancel()
            self._registry.unregister(pid)

        return ProcessOutcome(
            returncode=returncode,
            killed=watchdog.fired,
            pid=pid,
            duration_ms=_elapsed_ms(start),
        )

    async def _spawn(
        self,
        command: str,
        *,
        cwd: Path,
        env: dict[str, str],
        shell: bool,
    ) -> asyncio.subprocess.Process:
        options: dict[str, Any] = {
            "cwd": str(cwd),
            "env": env,
            "stdin": asyncio.subprocess.DEVNULL,
            "stdout": asyncio.subprocess.PIPE,
            "stderr": asyncio.subprocess.PIPE,
        }
        if USE_PROCESS_GROUPS:
            options["start_new_session"] = True
        try:
            if shell:
                return await asyncio.create_subprocess_shell(command, **options)
            return await asyncio.create_subprocess_exec(*split_command(command), **options)
        except (OSError, ValueError) as exc:
            self._observability.metrics.increment("spawn_failures")
            self._observability.log_event(
                "execution.spawn_failed",
                {"command": command, "error": str(exc)},
                level="ERROR",
            )
            self._logger.error("Command failed to start: %s (%s)", command, exc)
            raise CommandSpawnError(command, exc) from exc

    def _on_timeout(self, command: str, pid: int, timeout_ms: int) -> None:
        self._observability.metrics.increment("timeouts")
        self._observability.log_event(
            "execution.timeout",
            {"command": command, "pid": pid, "timeout_ms": timeout_ms},
            level="WARNING",
        )
        self._logger.warning("Command timed out after %dms, terminating pid %s.", timeout_ms, pid)

    def _record(self, result: ExecutionResult) -> None:
        self._history.append(result)
        self._observability.metrics.increment("executions")
        self._observability.metrics.record_duration("execution", result.duration_ms)
        self._observability.log_event(
            "execution.completed",
            {
                "command": result.command,
                "pid": result.pid,
                "exit_code": result.exit_code,
                "duration_ms": result.duration_ms,
                "killed": result.killed,
            },
        )
        self._logger.info(
            "Command finished with exit code %s in %dms.", result.exit_code, result.duration_ms
        )


async def _drain(
    process: asyncio.subprocess.Process,
    on_stdout: ChunkSink | None,
    on_stderr: ChunkSink | None,
) -> None:
    """Pump both pipes; if either pump fails the other is cancelled and awaited."""

    tasks = [
        asyncio.create_task(_pump(process.stdout, on_stdout)),
        asyncio.create_task(_pump(process.stderr, on_stderr)),
    ]
    try:
        await asyncio.gather(*tasks)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def _pump(stream: asyncio.StreamReader | None, sink: ChunkSink | None) -> None:
    if stream is None:
        return
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while True:
        data = await stream.read(READ_CHUNK_SIZE)
        if not data:
            break
        text = decoder.decode(data)
        if text:
            await call_sink(sink, text)
    tail = decoder.decode(b"", final=True)
    if tail:
        await call_sink(sink, tail)


async def call_sink(sink: Callable[[Any], Any] | None, value: Any) -> None:
    """Invoke a plain or coroutine callback, awaiting it when needed."""

    if sink is None:
        return
    outcome = sink(value)
    if inspect.isawaitable(outcome):
        await outcome


def _elapsed_ms(start: float) -> int:
    return max(0, round((time.monotonic() - start) * 1000))
