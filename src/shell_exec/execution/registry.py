"""Live process bookkeeping and the termination signal boundary."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
import sys
import threading
from typing import Iterator

from shell_exec.execution.base import ShellExecError
from shell_exec.util.logging import get_logger

# On POSIX every child leads its own session, so signals go to the whole
# process group and reach grandchildren started by the shell.
USE_PROCESS_GROUPS = sys.platform != "win32"

_LOGGER = get_logger(__name__)


class ProcessRegistryError(ShellExecError):
    """Raised when a process id is registered twice."""


def send_termination(process: asyncio.subprocess.Process, *, force: bool = False) -> None:
    """Ask a process (group) to stop.

    Sends SIGTERM, or SIGKILL when ``force`` is set. A process that has
    already exited is ignored.

    Args:
        process: Handle of the spawned process.
        force: Send the unconditional kill signal instead of the graceful one.
    """

    if USE_PROCESS_GROUPS:
        sig = signal.SIGKILL if force else signal.SIGTERM
        try:
            # The group can outlive its leader, so it is signalled even when
            # the leader has already been reaped.
            os.killpg(process.pid, sig)
        except (ProcessLookupError, PermissionError):
            return
        _LOGGER.debug("Sent %s to process group %s.", sig.name, process.pid)
        return

    if process.returncode is not None:
        return
    try:
        if force:
            process.kill()
        else:
            process.terminate()
    except ProcessLookupError:
        return


class ProcessRegistry:
    """Tracks running processes by pid, in registration order.

    Mutations are serialized with a lock so the registry stays consistent
    when a host drives event loops from several threads.
    """

    def __init__(self) -> None:
        self._processes: dict[int, asyncio.subprocess.Process] = {}
        self._spawning = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._processes)

    def __contains__(self, pid: object) -> bool:
        return pid in self._processes

    @property
    def count(self) -> int:
        """Number of currently registered processes."""

        return len(self._processes)

    @property
    def active_count(self) -> int:
        """Registered processes plus spawns that have not produced a pid yet."""

        return len(self._processes) + self._spawning

    @contextlib.contextmanager
    def spawning(self) -> Iterator[None]:
        """Hold a concurrency slot while a process is being started."""

        with self._lock:
            self._spawning += 1
        try:
            yield
        finally:
            with self._lock:
                self._spawning -= 1

    def register(self, pid: int, handle: asyncio.subprocess.Process) -> None:
        """Register a freshly spawned process.

        Args:
            pid: Operating-system process id.
            handle: The process handle.

        Raises:
            ProcessRegistryError: If the pid is already registered.
        """

        with self._lock:
            if pid in self._processes:
                raise ProcessRegistryError(f"Process {pid} is already registered")
            self._processes[pid] = handle
            total = len(self._processes)
        _LOGGER.debug("Process registered: pid=%d (total=%d)", pid, total)

    def unregister(self, pid: int) -> bool:
        """Remove a process, returning True if it was registered."""

        with self._lock:
            return self._processes.pop(pid, None) is not None

    def get(self, pid: int) -> asyncio.subprocess.Process | None:
        """Return the handle registered for ``pid``, if any."""

        return self._processes.get(pid)

    def list(self) -> list[int]:
        """Return registered pids in registration order."""

        with self._lock:
            return list(self._processes)

    def terminate_one(self, pid: int) -> bool:
        """Send the graceful signal to one process and forget it.

        Termination is only initiated; the owning execution observes the exit.

        Returns:
            True if the pid was registered.
        """

        with self._lock:
            handle = self._processes.pop(pid, None)
        if handle is None:
            return False
        send_termination(handle)
        _LOGGER.info("Terminated process %s.", pid)
        return True

    def terminate_all(self) -> int:
        """Send the graceful signal to every registered process.

        Returns:
            Number of processes that were terminated.
        """

        terminated = sum(1 for pid in self.list() if self.terminate_one(pid))
        _LOGGER.info("Terminated %d processes.", terminated)
        return terminated
