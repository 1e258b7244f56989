"""Shell and environment tool tests."""

import sys
import time

import pytest

from termagent.config import settings
from termagent.core.sandbox import SandboxContext
from termagent.tools import ToolRegistry
from termagent.tools.system import (
    MASK,
    is_secret,
)

posix_only = pytest.mark.skipif(sys.platform.startswith("win"), reason="uses POSIX shell commands")


@posix_only
def test_command_runs_in_sandbox_cwd(registry: ToolRegistry, context: SandboxContext) -> None:
    """Commands start in the context's current directory, not the process cwd."""

    (context.root / "sub").mkdir()
    moved = context.change_dir("sub")

    result = registry.invoke("execute_command", {"command": "pwd"}, moved)

    assert result.success
    assert result.details["exit_code"] == 0
    assert result.details["stdout"].strip() == str(context.root / "sub")


@posix_only
def test_nonzero_exit_is_a_failure(registry: ToolRegistry, context: SandboxContext) -> None:
    result = registry.invoke(
        "execute_command", {"command": "echo boom >&2; exit 3"}, context
    )

    assert not result.success
    assert "code 3" in result.error
    assert "boom" in result.error
    assert result.details["exit_code"] == 3


@posix_only
def test_timeout_kills_the_command(registry: ToolRegistry, context: SandboxContext) -> None:
    result = registry.invoke("execute_command", {"command": "sleep 5", "timeout": 0.5}, context)

    assert not result.success
    assert result.details["timed_out"] is True
    assert "timed out" in result.error


@posix_only
def test_timeout_kills_the_whole_process_group(
    registry: ToolRegistry, context: SandboxContext
) -> None:
    """The shell's children die with it, so a compound command cannot outlive the timeout."""

    started = time.monotonic()
    result = registry.invoke(
        "execute_command", {"command": "sleep 5; echo x", "timeout": 0.5}, context
    )
    elapsed = time.monotonic() - started

    assert not result.success
    assert result.details["timed_out"] is True
    assert "x" not in result.details["stdout"]
    assert elapsed < 3


@posix_only
def test_output_is_capped(
    registry: ToolRegistry, context: SandboxContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A command that floods stdout is stopped once the buffer limit is reached."""

    monkeypatch.setattr(settings, "MAX_OUTPUT_BYTES", 1000)

    started = time.monotonic()
    result = registry.invoke("execute_command", {"command": "yes", "timeout": 20}, context)
    elapsed = time.monotonic() - started

    assert not result.success
    assert result.details["truncated"] is True
    assert result.details["timed_out"] is False
    assert "exceeded" in result.error
    assert len(result.details["stdout"]) == 1000
    assert result.details["stdout"].startswith("y\ny\n")
    assert elapsed < 5


@posix_only
def test_output_is_colourless(registry: ToolRegistry, context: SandboxContext) -> None:
    result = registry.invoke("execute_command", {"command": "echo $NO_COLOR"}, context)

    assert result.details["stdout"].strip() == "1"


def test_missing_command_parameter(registry: ToolRegistry, context: SandboxContext) -> None:
    result = registry.invoke("execute_command", {}, context)

    assert not result.success
    assert "command" in result.error


@pytest.mark.parametrize(
    "name, secret",
    [
        ("AWS_SECRET_ACCESS_KEY", True),
        ("GITHUB_TOKEN", True),
        ("db_password", True),
        ("HOME", False),
        ("PATH", False),
    ],
)
def test_is_secret(name: str, secret: bool) -> None:
    assert is_secret(name) is secret


def test_environment_masks_secrets(
    registry: ToolRegistry, context: SandboxContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("TERMAGENT_TEST_API_KEY", "hunter2")
    monkeypatch.setenv("TERMAGENT_TEST_COLOR", "blue")

    result = registry.invoke("get_environment", {"filter": "termagent_test"}, context)

    assert result.success
    assert result.details["variables"] == {
        "TERMAGENT_TEST_API_KEY": MASK,
        "TERMAGENT_TEST_COLOR": "blue",
    }
    assert result.details["count"] == 2
