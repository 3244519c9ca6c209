"""Tests for command execution and error reporting."""

import sys

import pytest

from sysprov.commands import command_exists, run_command
from sysprov.errors import ExternalToolFailure, InvalidArgument, ProvisionError


def test_run_command_captures_output():
    result = run_command([sys.executable, "-c", "print('hello')"])
    assert result.ok
    assert result.stdout.strip() == "hello"


def test_run_command_failure_carries_stderr():
    script = "import sys; sys.stderr.write('disk full'); sys.exit(3)"
    with pytest.raises(ExternalToolFailure) as excinfo:
        run_command([sys.executable, "-c", script])
    assert excinfo.value.returncode == 3
    assert excinfo.value.stderr == "disk full"
    assert "disk full" in str(excinfo.value)


def test_run_command_unchecked_returns_status():
    result = run_command([sys.executable, "-c", "import sys; sys.exit(1)"], check=False)
    assert result.returncode == 1
    assert not result.ok


def test_missing_executable_is_external_tool_failure():
    with pytest.raises(ExternalToolFailure, match="not installed"):
        run_command(["definitely-not-a-real-binary-sysprov"])


def test_command_exists():
    assert command_exists(sys.executable)
    assert not command_exists("definitely-not-a-real-binary-sysprov")


def test_error_kind_prefix_and_exit_code():
    error = InvalidArgument("bad username")
    assert str(error) == "InvalidArgument: bad username"
    assert isinstance(error, ProvisionError)
    assert error.exit_code == 1
