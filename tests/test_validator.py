from __future__ import annotations

from shell_exec.config import ShellExecConfig
from shell_exec.execution.validator import CommandValidator


def _validator(
    *,
    allowed: tuple[str, ...] = ("echo", "ls", "git", "npm run"),
    blocked: tuple[str, ...] = ("rm -rf", "sudo"),
    max_concurrent: int = 2,
    running: int = 0,
) -> CommandValidator:
    return CommandValidator(
        allowed_commands=allowed,
        blocked_commands=blocked,
        max_concurrent=max_concurrent,
        running_count=lambda: running,
    )


def test_safe_command_passes_all_checks() -> None:
    result = _validator().validate('echo "test"')

    assert result.valid is True
    assert result.reason == "Command passed all safety checks"
    assert result.suggestions == ()


def test_blocked_pattern_wins_over_allow_list() -> None:
    validator = _validator(allowed=("rm", "sudo", "echo"))

    result = validator.validate("rm -rf /tmp/build")

    assert result.valid is False
    assert result.reason == "Command contains blocked pattern: rm -rf"
    assert result.suggestions == ("Use safer alternatives to rm -rf",)


def test_blocked_pattern_matches_anywhere_in_command() -> None:
    result = _validator().validate("echo hi && sudo reboot")

    assert result.valid is False
    assert "sudo" in result.reason


def test_first_blocked_pattern_in_configured_order_is_reported() -> None:
    result = _validator().validate("sudo rm -rf /")

    assert result.reason == "Command contains blocked pattern: rm -rf"


def test_unknown_command_is_not_in_allowed_list() -> None:
    result = _validator().validate("dangerous-unknown-command --now")

    assert result.valid is False
    assert "not in allowed list" in result.reason
    assert result.reason.endswith("dangerous-unknown-command")
    assert result.suggestions == ("echo", "ls", "git")


def test_allow_list_accepts_multi_word_prefix() -> None:
    validator = _validator()

    assert validator.validate("npm run build").valid is True
    assert validator.validate("npm install").valid is False


def test_allow_list_requires_whole_token() -> None:
    result = _validator().validate("echoes hello")

    assert result.valid is False


def test_empty_allow_list_allows_any_command() -> None:
    result = _validator(allowed=()).validate("make all")

    assert result.valid is True


def test_concurrency_gate_is_checked_last() -> None:
    busy = _validator(max_concurrent=2, running=2)

    assert "blocked pattern" in busy.validate("sudo ls").reason
    assert "not in allowed list" in busy.validate("make").reason

    result = busy.validate("echo hi")
    assert result.valid is False
    assert result.reason == "Maximum concurrent processes reached: 2"
    assert len(result.suggestions) == 2


def test_running_count_is_read_on_every_call() -> None:
    running = {"count": 0}
    validator = CommandValidator(
        allowed_commands=(),
        blocked_commands=(),
        max_concurrent=1,
        running_count=lambda: running["count"],
    )

    assert validator.validate("echo a").valid is True
    running["count"] = 1
    assert validator.validate("echo a").valid is False


def test_empty_command_is_invalid() -> None:
    result = _validator().validate("   ")

    assert result.valid is False
    assert result.reason == "Command is empty"


def test_default_block_list_matches_plain_substrings() -> None:
    validator = CommandValidator.from_config(ShellExecConfig(), running_count=lambda: 0)

    # "su" is a default blocked pattern and also occurs inside "result".
    result = validator.validate("echo result")

    assert result.valid is False
    assert result.reason == "Command contains blocked pattern: su"
