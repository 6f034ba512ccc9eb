from __future__ import annotations

from typing import Any

import pytest

from shell_exec.execution import registry as registry_module
from shell_exec.execution.registry import (
    ProcessRegistry,
    ProcessRegistryError,
    send_termination,
)


class FakeProcess:
    def __init__(self, pid: int, returncode: int | None = None) -> None:
        self.pid = pid
        self.returncode = returncode
        self.calls: list[str] = []

    def terminate(self) -> None:
        self.calls.append("terminate")

    def kill(self) -> None:
        self.calls.append("kill")


@pytest.fixture
def sent(monkeypatch: Any) -> list[tuple[int, bool]]:
    calls: list[tuple[int, bool]] = []

    def fake_send_termination(process: Any, *, force: bool = False) -> None:
        calls.append((process.pid, force))

    monkeypatch.setattr(registry_module, "send_termination", fake_send_termination)
    return calls


def test_register_lookup_and_list_in_insertion_order() -> None:
    registry = ProcessRegistry()
    first, second = FakeProcess(30), FakeProcess(10)

    registry.register(30, first)  # type: ignore[arg-type]
    registry.register(10, second)  # type: ignore[arg-type]

    assert registry.list() == [30, 10]
    assert registry.get(10) is second
    assert registry.get(99) is None
    assert registry.count == 2
    assert 30 in registry


def test_register_rejects_duplicate_pid() -> None:
    registry = ProcessRegistry()
    registry.register(5, FakeProcess(5))  # type: ignore[arg-type]

    with pytest.raises(ProcessRegistryError):
        registry.register(5, FakeProcess(5))  # type: ignore[arg-type]


def test_unregister_reports_whether_entry_existed() -> None:
    registry = ProcessRegistry()
    registry.register(5, FakeProcess(5))  # type: ignore[arg-type]

    assert registry.unregister(5) is True
    assert registry.unregister(5) is False
    assert registry.list() == []


def test_terminate_one_signals_and_removes(sent: list[tuple[int, bool]]) -> None:
    registry = ProcessRegistry()
    registry.register(7, FakeProcess(7))  # type: ignore[arg-type]

    assert registry.terminate_one(7) is True
    assert registry.terminate_one(7) is False
    assert sent == [(7, False)]
    assert len(registry) == 0


def test_terminate_all_counts_terminated_processes(sent: list[tuple[int, bool]]) -> None:
    registry = ProcessRegistry()
    for pid in (1, 2, 3):
        registry.register(pid, FakeProcess(pid))  # type: ignore[arg-type]

    assert registry.terminate_all() == 3
    assert [pid for pid, _ in sent] == [1, 2, 3]
    assert registry.terminate_all() == 0


def test_spawning_slot_counts_towards_active_count() -> None:
    registry = ProcessRegistry()

    with registry.spawning():
        assert registry.active_count == 1
        assert registry.count == 0
    assert registry.active_count == 0


def test_send_termination_without_process_groups(monkeypatch: Any) -> None:
    monkeypatch.setattr(registry_module, "USE_PROCESS_GROUPS", False)
    running = FakeProcess(11)
    exited = FakeProcess(12, returncode=0)

    send_termination(running)  # type: ignore[arg-type]
    send_termination(running, force=True)  # type: ignore[arg-type]
    send_termination(exited, force=True)  # type: ignore[arg-type]

    assert running.calls == ["terminate", "kill"]
    assert exited.calls == []


@pytest.mark.skipif(not registry_module.USE_PROCESS_GROUPS, reason="POSIX process groups")
def test_send_termination_ignores_vanished_group(monkeypatch: Any) -> None:
    def fake_killpg(pgid: int, sig: int) -> None:
        raise ProcessLookupError(pgid)

    monkeypatch.setattr(registry_module.os, "killpg", fake_killpg)

    send_termination(FakeProcess(13))  # type: ignore[arg-type]
