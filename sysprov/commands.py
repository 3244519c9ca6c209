"""
Command execution utilities.

Every external primitive (ssh-keygen, useradd, usermod, passwd, docker, ...)
goes through run_command so that the executed command line is logged and a
non-zero exit becomes an ExternalToolFailure carrying the tool's own stderr.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from sysprov.console import LOGGER_NAME
from sysprov.errors import ExternalToolFailure

OPERATION_TIMEOUT: int = 300


@dataclass
class CommandResult:
    cmd: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def command_exists(name: str) -> bool:
    """Check whether an executable is available on PATH."""
    return shutil.which(name) is not None


def run_command(
    cmd: Sequence[str],
    check: bool = True,
    capture_output: bool = True,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[int] = OPERATION_TIMEOUT,
) -> CommandResult:
    """
    Run a system command and return its result.

    With capture_output=False the command inherits the terminal, which is
    required for interactive tools such as passwd.

    Raises:
        ExternalToolFailure: the executable is missing, timed out, or exited
            non-zero while check is True.
    """
    logger = logging.getLogger(LOGGER_NAME)
    cmd = [str(part) for part in cmd]
    logger.debug(f"Running command: {' '.join(cmd)}")

    try:
        proc = subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            env=env,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ExternalToolFailure(f"{cmd[0]} is not installed", cmd=cmd) from e
    except subprocess.TimeoutExpired as e:
        raise ExternalToolFailure(
            f"{cmd[0]} timed out after {timeout} seconds", cmd=cmd
        ) from e

    result = CommandResult(
        cmd=cmd,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
    )
    if check and not result.ok:
        raise ExternalToolFailure(
            f"'{' '.join(cmd)}' exited with status {result.returncode}",
            cmd=cmd,
            returncode=result.returncode,
            stderr=result.stderr,
        )
    return result
