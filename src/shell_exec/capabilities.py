"""Static description of the operations ShellExecService exposes.

Used for help output and documentation only; nothing on the execution path
reads this table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Capability:
    """Describes one public operation.

    Attributes:
        name: Method name on ShellExecService.
        description: Human-readable summary.
        input_schema: Parameter names mapped to type descriptions.
        returns: Name of the returned type.
    """

    name: str
    description: str
    input_schema: dict[str, str] = field(default_factory=dict)
    returns: str = "None"


_EXEC_OPTIONS: dict[str, str] = {
    "cwd": "string | null",
    "timeout_ms": "int | null",
    "env": "dict[str, str] | null",
    "shell": "bool (default: true)",
}

CAPABILITIES: tuple[Capability, ...] = (
    Capability(
        name="execute",
        description="Execute a command with output capture and timeout handling.",
        input_schema={"command": "string", **_EXEC_OPTIONS},
        returns="ExecutionResult",
    ),
    Capability(
        name="stream",
        description="Execute a command, delivering output chunks to callbacks as they arrive.",
        input_schema={
            "command": "string",
            **_EXEC_OPTIONS,
            "on_stdout": "callable(str) | null",
            "on_stderr": "callable(str) | null",
            "on_exit": "callable(int) | null",
        },
        returns="StreamResult",
    ),
    Capability(
        name="validate",
        description="Check a command against the block-list, allow-list and concurrency limit.",
        input_schema={"command": "string"},
        returns="ValidationResult",
    ),
    Capability(
        name="kill",
        description="Send the graceful termination signal to one running process.",
        input_schema={"pid": "int"},
        returns="bool",
    ),
    Capability(
        name="kill_all",
        description="Send the graceful termination signal to every running process.",
        returns="int",
    ),
    Capability(
        name="get_history",
        description="Return finished executions in completion order.",
        returns="list[ExecutionResult]",
    ),
    Capability(
        name="get_running_processes",
        description="Return pids of running processes in start order.",
        returns="list[int]",
    ),
    Capability(
        name="analyze_patterns",
        description="Summarize success rate, durations, frequent commands and recent failures.",
        returns="PatternSummary",
    ),
)


def describe_capabilities() -> list[dict[str, Any]]:
    """Return the capability table as JSON-compatible dictionaries."""

    return [
        {
            "name": capability.name,
            "description": capability.description,
            "input_schema": dict(capability.input_schema),
            "returns": capability.returns,
        }
        for capability in CAPABILITIES
    ]
