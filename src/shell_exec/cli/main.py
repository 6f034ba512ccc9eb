"""CLI entrypoints for shell-exec."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import NoReturn

import typer

from shell_exec.config import ConfigError
from shell_exec.execution.base import CommandValidationError, ShellExecError
from shell_exec.service import ShellExecService, initialize_config
from shell_exec.util.logging import configure_logging

TIMEOUT_EXIT_CODE = 124

app = typer.Typer(help="Run shell commands with validation, timeouts and history.")

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Config file, or a directory containing shell_exec.yaml or pyproject.toml.",
)
_CWD_OPTION = typer.Option(None, "--cwd", help="Working directory for the command.")
_TIMEOUT_OPTION = typer.Option(None, "--timeout-ms", help="Timeout in milliseconds.")
_SHELL_OPTION = typer.Option(
    True, "--shell/--no-shell", help="Run through the platform shell or execute directly."
)
_ENV_OPTION = typer.Option(None, "--env", "-e", help="Extra environment variable as KEY=VALUE.")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING). Defaults to the configured level.",
    ),
) -> None:
    """Configure CLI-level options."""

    ctx.obj = {"log_level": log_level}


@app.command()
def init(directory: Path = typer.Argument(Path("."))) -> None:
    """Write a default shell_exec.yaml into a directory."""

    try:
        config_path = initialize_config(directory)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command("run")
def run_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command line to execute."),
    cwd: Path | None = _CWD_OPTION,
    timeout_ms: int | None = _TIMEOUT_OPTION,
    shell: bool = _SHELL_OPTION,
    env: list[str] | None = _ENV_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Run a command, print its output and exit with its exit code."""

    service = _build_service(ctx, config)
    try:
        result = service.run(
            command, cwd=cwd, timeout_ms=timeout_ms, env=_parse_env(env), shell=shell
        )
    except (ShellExecError, ValueError) as exc:
        _fail(exc)

    if result.stdout:
        typer.echo(result.stdout)
    if result.stderr:
        typer.echo(result.stderr, err=True)
    if result.killed:
        typer.echo(f"Killed after timeout ({result.duration_ms}ms).", err=True)
        raise typer.Exit(code=TIMEOUT_EXIT_CODE)
    raise typer.Exit(code=result.exit_code)


@app.command("stream")
def stream_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command line to execute."),
    cwd: Path | None = _CWD_OPTION,
    timeout_ms: int | None = _TIMEOUT_OPTION,
    shell: bool = _SHELL_OPTION,
    env: list[str] | None = _ENV_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Run a command, echoing its output as it is produced."""

    service = _build_service(ctx, config)
    try:
        result = asyncio.run(
            service.stream(
                command,
                cwd=cwd,
                timeout_ms=timeout_ms,
                env=_parse_env(env),
                shell=shell,
                on_stdout=lambda chunk: typer.echo(chunk, nl=False),
                on_stderr=lambda chunk: typer.echo(chunk, nl=False, err=True),
            )
        )
    except (ShellExecError, ValueError) as exc:
        _fail(exc)

    if result.killed:
        typer.echo(f"\nKilled after timeout ({result.duration_ms}ms).", err=True)
        raise typer.Exit(code=TIMEOUT_EXIT_CODE)
    raise typer.Exit(code=result.exit_code)


@app.command("validate")
def validate_command(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command line to check."),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Check a command against the configured policy without running it."""

    service = _build_service(ctx, config)
    validation = service.validate(command)
    status = "allowed" if validation.valid else "blocked"
    typer.echo(f"{status}: {validation.reason}")
    for suggestion in validation.suggestions:
        typer.echo(f"  - {suggestion}")
    if not validation.valid:
        raise typer.Exit(code=1)


@app.command("describe")
def describe_command(
    ctx: typer.Context,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Print the available operations and the active configuration as JSON."""

    service = _build_service(ctx, config)
    typer.echo(json.dumps(service.describe(), indent=2))


def _build_service(ctx: typer.Context, config_path: Path | None) -> ShellExecService:
    try:
        service = ShellExecService.from_path(config_path)
    except ConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    log_level = (ctx.obj or {}).get("log_level") or service.config.log_level
    configure_logging(log_level)
    return service


def _parse_env(pairs: list[str] | None) -> dict[str, str] | None:
    if not pairs:
        return None
    env: dict[str, str] = {}
    for pair in pairs:
        key, separator, value = pair.partition("=")
        if not separator or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env


def _fail(exc: Exception) -> NoReturn:
    typer.echo(f"Error: {exc}", err=True)
    if isinstance(exc, CommandValidationError):
        for suggestion in exc.validation.suggestions:
            typer.echo(f"  - {suggestion}", err=True)
        raise typer.Exit(code=2) from exc
    raise typer.Exit(code=1) from exc
