"""Capture adapter: take a screenshot with resnap-rs and locate the image.

    result = await capture(CaptureConfig(), "/path/to/vault")
    result.absolute_path       # /path/to/vault/remarkable_screenshots/xyz.png
    result.relative_reference  # /remarkable_screenshots/xyz.png

Failures raise a CaptureError subclass: SpawnFailed and NonZeroExit come
unchanged from the process invoker, UnsupportedStorage and
PathDerivationFailed from this module.
"""

import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Sequence

from .config_loader import CaptureConfig
from .errors import PathDerivationFailed
from .process import InvocationResult, invoke
from .storage import resolve_base_path

RESNAP_EXECUTABLE = "resnap-rs"

Invoker = Callable[[str, Sequence[str]], Awaitable[InvocationResult]]


@dataclass(frozen=True)
class CaptureResult:
    """A captured image file and the reference used to embed it."""
    absolute_path: str
    relative_reference: str
    stderr: str = ""

    def to_dict(self) -> dict:
        return {
            "path": self.absolute_path,
            "reference": self.relative_reference,
        }


def build_arguments(config: CaptureConfig, base_path: str) -> List[str]:
    """Command line arguments for resnap-rs."""
    return [
        "--ip-address",
        config.device_address,
        "--directory",
        os.path.join(base_path, config.target_directory or ""),
    ]


def strip_trailing_newline(output: str) -> str:
    """Drop a single trailing newline, leaving everything else untouched."""
    if output.endswith("\n"):
        return output[:-1]
    return output


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")


def derive_relative_reference(absolute_path: str, target_directory: str, base_path: str) -> str:
    """Path of the captured file starting at the target directory segment.

    The last occurrence of /<target_directory>/ wins, so a vault that
    itself lives under a directory of the same name still resolves to the
    innermost one. With no target directory, the reference is taken
    relative to the vault base path.

    Raises:
        PathDerivationFailed: If the segment (or base path) is not found.
    """
    path = _to_posix(absolute_path)
    segment = _to_posix(target_directory or "").strip("/")

    if not segment:
        base = _to_posix(base_path).rstrip("/")
        if path.startswith(base + "/"):
            return path[len(base):]
        raise PathDerivationFailed(absolute_path, target_directory)

    index = path.rfind(f"/{segment}/")
    if index == -1:
        raise PathDerivationFailed(absolute_path, target_directory)
    return path[index:]


async def capture(
    config: CaptureConfig,
    vault,
    *,
    executable: str = RESNAP_EXECUTABLE,
    invoker: Invoker = invoke,
) -> CaptureResult:
    """Capture a screenshot from the tablet into the vault.

    Args:
        config: Device address and target directory.
        vault: Vault base path, or a storage object with local filesystem access.
        executable: Name or path of the capture tool.
        invoker: Coroutine function running the tool; the process invoker by default.

    Returns:
        CaptureResult with the absolute image path and its relative reference.

    Raises:
        UnsupportedStorage: If the vault has no local filesystem base path.
        SpawnFailed: If the capture tool could not be started.
        NonZeroExit: If the capture tool failed.
        PathDerivationFailed: If the reported path is outside the target directory.
    """
    base_path = resolve_base_path(vault)
    arguments = build_arguments(config, base_path)

    result = await invoker(executable, arguments)

    absolute_path = strip_trailing_newline(result.stdout)
    reference = derive_relative_reference(absolute_path, config.target_directory, base_path)
    return CaptureResult(
        absolute_path=absolute_path,
        relative_reference=reference,
        stderr=result.stderr,
    )
