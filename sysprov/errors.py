"""
Error kinds surfaced to the operator. Every kind maps to exit status 1.
"""

from typing import Optional, Sequence


class ProvisionError(Exception):
    """Base class for failures reported to the operator."""

    exit_code: int = 1
    kind: str = "Error"

    def __str__(self) -> str:
        return f"{self.kind}: {super().__str__()}"


class InvalidArgument(ProvisionError):
    kind = "InvalidArgument"


class PermissionDenied(ProvisionError):
    kind = "PermissionDenied"


class NotFound(ProvisionError):
    kind = "NotFound"


class AlreadyExists(ProvisionError):
    """Soft condition: logged by callers, never allowed to end a run."""

    kind = "AlreadyExists"


class ExternalToolFailure(ProvisionError):
    """An external command was missing or exited with a non-zero status."""

    kind = "ExternalToolFailure"

    def __init__(
        self,
        message: str,
        cmd: Optional[Sequence[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.cmd = list(cmd) if cmd else []
        self.returncode = returncode
        self.stderr = stderr.strip()

    def __str__(self) -> str:
        text = super().__str__()
        if self.stderr:
            text = f"{text}\n{self.stderr}"
        return text
