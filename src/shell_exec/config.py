"""Configuration models and loaders for shell-exec."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILE_NAMES: tuple[str, ...] = ("shell_exec.yaml", "shell_exec.yml")
DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_CONCURRENT = 5
DEFAULT_KILL_GRACE_MS = 1_000
DEFAULT_ALLOWED_COMMANDS: tuple[str, ...] = (
    "npm",
    "tsc",
    "node",
    "git",
    "echo",
    "ls",
    "pwd",
    "cat",
    "grep",
    "python",
    "pytest",
)
# Matched as plain substrings of the whole command line, so "su" also
# rejects e.g. "echo result". Keep entries specific.
DEFAULT_BLOCKED_COMMANDS: tuple[str, ...] = ("rm -rf", "sudo", "su", "dd", "mkfs", "fdisk")


class ConfigError(ValueError):
    """Raised when a configuration file or value is malformed."""


@dataclass(frozen=True)
class ShellExecConfig:
    """Settings applied to every execution, fixed at construction.

    Attributes:
        default_timeout_ms: Timeout used when a request does not set one.
        default_cwd: Working directory used when a request does not set one.
        allowed_commands: Permitted leading tokens; empty disables the check.
        blocked_commands: Substrings that reject a command outright.
        max_concurrent: Upper bound on simultaneously running processes.
        kill_grace_ms: Delay between the graceful and the forceful signal.
        env: Extra environment variables applied to every run.
        log_level: Level name used by the CLI when configuring logging.
    """

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    default_cwd: Path = Path(".")
    allowed_commands: tuple[str, ...] = DEFAULT_ALLOWED_COMMANDS
    blocked_commands: tuple[str, ...] = DEFAULT_BLOCKED_COMMANDS
    max_concurrent: int = DEFAULT_MAX_CONCURRENT
    kill_grace_ms: int = DEFAULT_KILL_GRACE_MS
    env: dict[str, str] = field(default_factory=dict)
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        _require_positive("default_timeout_ms", self.default_timeout_ms)
        _require_positive("max_concurrent", self.max_concurrent)
        _require_positive("kill_grace_ms", self.kill_grace_ms)


def load_config(path: Path | None = None) -> ShellExecConfig:
    """Load configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory to search.

    Returns:
        Parsed ShellExecConfig, or the defaults when no config file exists.

    Raises:
        ConfigError: If the file type is unsupported or its content is invalid.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return ShellExecConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ConfigError(f"Unsupported config file type: {config_path}")

    return parse_config(raw_data, base_path=config_path.parent)


def parse_config(raw_data: dict[str, Any], base_path: Path | None = None) -> ShellExecConfig:
    """Build a ShellExecConfig from an already-decoded mapping.

    Args:
        raw_data: Mapping using the keys written by ``config_to_dict``.
        base_path: Directory that a relative ``default_cwd`` is resolved against.

    Returns:
        The parsed configuration.

    Raises:
        ConfigError: If a value has the wrong type or is out of range.
    """

    if not isinstance(raw_data, dict):
        raise ConfigError("Configuration must be a mapping.")

    default_cwd = Path(str(raw_data.get("default_cwd", ".")))
    if base_path is not None and not default_cwd.is_absolute():
        default_cwd = (base_path / default_cwd).resolve()

    try:
        return ShellExecConfig(
            default_timeout_ms=_int_value(raw_data, "default_timeout_ms", DEFAULT_TIMEOUT_MS),
            default_cwd=default_cwd,
            allowed_commands=_str_tuple(raw_data, "allowed_commands", DEFAULT_ALLOWED_COMMANDS),
            blocked_commands=_str_tuple(raw_data, "blocked_commands", DEFAULT_BLOCKED_COMMANDS),
            max_concurrent=_int_value(raw_data, "max_concurrent", DEFAULT_MAX_CONCURRENT),
            kill_grace_ms=_int_value(raw_data, "kill_grace_ms", DEFAULT_KILL_GRACE_MS),
            env=_env_map(raw_data.get("env")),
            log_level=str(raw_data.get("log_level", "INFO")),
        )
    except ValueError as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(str(exc)) from exc


def config_to_dict(config: ShellExecConfig) -> dict[str, Any]:
    """Serialize a ShellExecConfig into a JSON-compatible dictionary."""

    return {
        "default_timeout_ms": config.default_timeout_ms,
        "default_cwd": str(config.default_cwd),
        "allowed_commands": list(config.allowed_commands),
        "blocked_commands": list(config.blocked_commands),
        "max_concurrent": config.max_concurrent,
        "kill_grace_ms": config.kill_grace_ms,
        "env": dict(config.env),
        "log_level": config.log_level,
    }


def _resolve_config_path(path: Path | None) -> Path | None:
    candidate_paths: list[Path] = []
    if path is None:
        candidate_paths.extend(Path(name) for name in CONFIG_FILE_NAMES)
        candidate_paths.append(Path("pyproject.toml"))
    elif path.is_dir():
        candidate_paths.extend(path / name for name in CONFIG_FILE_NAMES)
        candidate_paths.append(path / "pyproject.toml")
    else:
        candidate_paths.append(path)

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("shell_exec", {})
        if not isinstance(tool_config, dict):
            raise ConfigError("tool.shell_exec must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        import yaml

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError("YAML configuration must be a mapping.")
    return data


def _int_value(raw: dict[str, Any], key: str, default: int) -> int:
    value = raw.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}.") from exc


def _str_tuple(raw: dict[str, Any], key: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list of strings.")
    return tuple(str(item) for item in value)


def _env_map(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("env must be a mapping of variable names to values.")
    return {str(key): str(value) for key, value in raw.items()}


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ConfigError(f"{name} must be a positive integer, got {value}.")
