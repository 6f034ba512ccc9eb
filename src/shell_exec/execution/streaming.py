"""Streaming variant of the local executor."""

from __future__ import annotations

from typing import Awaitable, Callable

from shell_exec.execution.base import ExecutionRequest, ExecutionResult, StreamResult
from shell_exec.execution.local_exec import ChunkSink, LocalExecutor, call_sink

ExitSink = Callable[[int], "Awaitable[None] | None"]


class StreamingExecutor(LocalExecutor):
    """Execute commands and hand output to callbacks as it arrives.

    Validation, registry bookkeeping, the timeout watchdog and spawn errors
    behave exactly as in LocalExecutor. Output is not retained; the history
    entry for a streamed run has empty stdout and stderr.
    """

    async def stream(
        self,
        request: ExecutionRequest,
        *,
        on_stdout: ChunkSink | None = None,
        on_stderr: ChunkSink | None = None,
        on_exit: ExitSink | None = None,
    ) -> StreamResult:
        """Run a command, forwarding each output chunk to the given callbacks.

        Callbacks may be plain functions or coroutine functions. Chunks of one
        stream arrive in emission order; stdout and stderr interleave freely.

        Args:
            request: The command and its options.
            on_stdout: Called with each decoded stdout chunk.
            on_stderr: Called with each decoded stderr chunk.
            on_exit: Called once with the exit code after the process ends.

        Returns:
            StreamResult with exit code, duration, killed flag and pid.

        Raises:
            CommandValidationError: If the command is rejected by policy.
            CommandSpawnError: If the process cannot be started.
        """

        outcome = await self._run_process(request, on_stdout, on_stderr)
        self._record(
            ExecutionResult(
                exit_code=outcome.exit_code,
                stdout="",
                stderr="",
                duration_ms=outcome.duration_ms,
                killed=outcome.killed,
                command=request.command,
                pid=outcome.pid,
                signal_number=outcome.signal_number,
            )
        )
        if on_exit is not None:
            await call_sink(on_exit, outcome.exit_code)
        return StreamResult(
            exit_code=outcome.exit_code,
            duration_ms=outcome.duration_ms,
            killed=outcome.killed,
            command=request.command,
            pid=outcome.pid,
            signal_number=outcome.signal_number,
        )
