"""Settings for the reMarkable capture plugin.

Settings are two strings kept in a small JSON file. Stored values are laid
over the defaults key by key, so a file written by an older version (or by
hand) only needs the keys it wants to change.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_DEVICE_ADDRESS = "10.11.99.1"  # USB network address of the tablet
DEFAULT_TARGET_DIRECTORY = "remarkable_screenshots"
DEVICE_ADDRESS_ENV = "REMARKABLE_IP"
SETTINGS_PATH_ENV = "RMSHOT_SETTINGS_PATH"

# Key names used by earlier releases of the editor plugin
LEGACY_KEYS = {
    "reMarkableIP": "device_address",
    "imagesDir": "target_directory",
}

KEY_ALIASES = {
    "ip": "device_address",
    "dir": "target_directory",
    **LEGACY_KEYS,
}

SETTING_KEYS = ("device_address", "target_directory")


def default_device_address() -> str:
    """Device address from REMARKABLE_IP, or the USB default."""
    return os.environ.get(DEVICE_ADDRESS_ENV) or DEFAULT_DEVICE_ADDRESS


@dataclass
class CaptureConfig:
    """Where to capture from and where the image files go.

    Attributes:
        device_address: IP address or host name of the tablet.
        target_directory: Directory inside the vault that receives captures.
            An empty string lets the external tool write into the vault root.
    """
    device_address: str = field(default_factory=default_device_address)
    target_directory: str = DEFAULT_TARGET_DIRECTORY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptureConfig":
        """Build a config from stored data, falling back to defaults."""
        config = cls()
        for key, value in normalize_keys(data).items():
            setattr(config, key, value)
        return config

    def to_dict(self) -> Dict[str, str]:
        return {
            "device_address": self.device_address,
            "target_directory": self.target_directory,
        }

    def update(self, key: str, value: str) -> None:
        """Set one setting by canonical name or alias.

        Raises:
            KeyError: If the key is not a known setting.
        """
        canonical = KEY_ALIASES.get(key, key)
        if canonical not in SETTING_KEYS:
            raise KeyError(key)
        setattr(self, canonical, value)


class ConfigValidationError(Exception):
    """Raised when settings validation fails."""

    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Configuration validation failed: {'; '.join(errors)}")


def normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map legacy key names to canonical ones and drop unknown keys.

    A canonical key wins over its legacy spelling when both are present.
    """
    result: Dict[str, Any] = {}
    for legacy, canonical in LEGACY_KEYS.items():
        if legacy in data:
            result[canonical] = data[legacy]
    for key in SETTING_KEYS:
        if key in data:
            result[key] = data[key]
    return result


def validate_settings(data: Any) -> Tuple[bool, List[str]]:
    """Validate raw settings loaded from JSON.

    Returns:
        Tuple of (is_valid, list_of_errors)
    """
    if not isinstance(data, dict):
        return False, ["Settings must be a JSON object"]

    errors: List[str] = []
    for key, value in normalize_keys(data).items():
        if not isinstance(value, str):
            errors.append(f"Setting '{key}' must be a string")

    address = data.get("device_address", data.get("reMarkableIP"))
    if isinstance(address, str) and not address.strip():
        errors.append("Setting 'device_address' must not be empty")

    return len(errors) == 0, errors


def resolve_settings_path(path: Optional[str] = None, env_var: str = SETTINGS_PATH_ENV) -> Path:
    """Find the settings file to read from and write to.

    Search order: explicit path, env var, ./.rmshot.json,
    ~/.config/rmshot/settings.json. When none of the default locations
    exists, the home location is returned so saving creates it.
    """
    if path is None:
        path = os.environ.get(env_var) or None
    if path is not None:
        return Path(path)

    default_paths = [
        Path.cwd() / ".rmshot.json",
        Path.home() / ".config" / "rmshot" / "settings.json",
    ]
    for default_path in default_paths:
        if default_path.exists():
            return default_path
    return default_paths[-1]


def load_settings(path: Optional[str] = None, env_var: str = SETTINGS_PATH_ENV) -> CaptureConfig:
    """Load settings, falling back to defaults when no file exists.

    Args:
        path: Direct path to the settings file.
        env_var: Environment variable naming the settings file.

    Raises:
        ConfigValidationError: If the file is not valid JSON or holds
            invalid settings.
    """
    settings_path = resolve_settings_path(path, env_var)
    if not settings_path.exists():
        return CaptureConfig()

    try:
        with open(settings_path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except json.JSONDecodeError as exc:
        raise ConfigValidationError([f"Invalid JSON in {settings_path}: {exc}"]) from exc

    # An empty file saved as `null` means "no stored data"
    if raw is None:
        return CaptureConfig()

    is_valid, errors = validate_settings(raw)
    if errors:
        raise ConfigValidationError(errors)

    return CaptureConfig.from_dict(raw)


def save_settings(config: CaptureConfig, path: Optional[str] = None,
                  env_var: str = SETTINGS_PATH_ENV) -> Path:
    """Write settings as JSON, creating parent directories.

    Returns:
        The path written to.
    """
    settings_path = resolve_settings_path(path, env_var)
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    with open(settings_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)

    return settings_path
