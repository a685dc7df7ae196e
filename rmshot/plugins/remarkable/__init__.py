"""reMarkable screenshot plugin.

Runs the external resnap-rs tool against a reMarkable tablet, waits for the
screenshot file, and embeds a reference to it in a markdown document.

Components:
- process.invoke: run an executable, collect stdout/stderr, structured errors
- capture.capture: build resnap-rs arguments and derive the relative reference
- RemarkablePlugin: tools and user commands on top of the two

Example:
    from rmshot.plugins.remarkable import CaptureConfig, capture

    result = await capture(CaptureConfig(), "/path/to/vault")
    print(result.relative_reference)  # /remarkable_screenshots/...png
"""

from .capture import CaptureResult, RESNAP_EXECUTABLE, capture
from .config_loader import CaptureConfig, ConfigValidationError, load_settings, save_settings
from .errors import (
    CaptureError,
    CaptureInProgress,
    InvocationError,
    NonZeroExit,
    PathDerivationFailed,
    SpawnFailed,
    UnsupportedStorage,
)
from .plugin import RemarkablePlugin, create_plugin
from .process import InvocationRequest, InvocationResult, invoke
from .storage import FileSystemStorage, LocalFilesystemAccess

PLUGIN_KIND = "tool"

__all__ = [
    "CaptureConfig",
    "CaptureError",
    "CaptureInProgress",
    "CaptureResult",
    "ConfigValidationError",
    "FileSystemStorage",
    "InvocationError",
    "InvocationRequest",
    "InvocationResult",
    "LocalFilesystemAccess",
    "NonZeroExit",
    "PathDerivationFailed",
    "RESNAP_EXECUTABLE",
    "RemarkablePlugin",
    "SpawnFailed",
    "UnsupportedStorage",
    "capture",
    "create_plugin",
    "invoke",
    "load_settings",
    "save_settings",
]
