"""Error taxonomy for screenshot captures.

Every failure of a capture request surfaces as a subclass of CaptureError
carrying enough context to render a diagnostic. None of them are retried.
"""

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .process import InvocationRequest


class CaptureError(Exception):
    """Base class for all capture failures."""


class InvocationError(CaptureError):
    """The external executable could not be run to a successful exit."""

    def __init__(self, request: "InvocationRequest", message: str):
        self.request = request
        super().__init__(message)


class SpawnFailed(InvocationError):
    """The process could not be started.

    cause is the OSError (missing executable, permissions) or the ValueError
    (NUL byte in the command line) raised while spawning.
    """

    def __init__(self, request: "InvocationRequest", cause: Exception):
        self.cause = cause
        super().__init__(
            request,
            f"Failed to start '{request.executable_path}': {cause}"
        )


class NonZeroExit(InvocationError):
    """The process ran but exited with a non-zero status."""

    def __init__(self, request: "InvocationRequest", code: int, stdout: str, stderr: str):
        self.code = code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            request,
            f"Nonzero exitcode {code}.\nSTDERR: {stderr}\nSTDOUT: {stdout}"
        )


class UnsupportedStorage(CaptureError):
    """The vault storage gives no access to a local filesystem path."""

    def __init__(self, storage: Any):
        self.storage = storage
        super().__init__(
            f"Storage {type(storage).__name__} has no local filesystem base path"
        )


class PathDerivationFailed(CaptureError):
    """The captured file path does not contain the target directory."""

    def __init__(self, absolute_path: str, target_directory: Optional[str]):
        self.absolute_path = absolute_path
        self.target_directory = target_directory
        super().__init__(
            f"Cannot derive a reference for '{absolute_path}': "
            f"'{target_directory}' is not a segment of the path"
        )


class CaptureInProgress(CaptureError):
    """A capture against the same device is already running."""

    def __init__(self, device_address: str):
        self.device_address = device_address
        super().__init__(f"A capture from {device_address} is already in progress")
