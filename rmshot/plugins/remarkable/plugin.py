"""reMarkable screenshot plugin.

Exposes the capture adapter to the host application:

- Model tools: takeRemarkableScreenshot, insertRemarkableScreenshot
- User command: remarkable (capture, insert, settings, set, help)

The plugin owns the settings load/save boundary and a single-flight guard
so that two captures never talk to the same tablet at once.
"""

import asyncio
import contextlib
import logging
import threading
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

from ..base import UserCommand, CommandParameter, CommandCompletion
from ..types import ToolSchema
from ...trace import trace
from .capture import CaptureResult, RESNAP_EXECUTABLE, capture
from .config_loader import (
    CaptureConfig,
    KEY_ALIASES,
    SETTING_KEYS,
    load_settings,
    save_settings,
)
from .embed import EMBED_STYLES, format_embed, insert_embed
from .errors import CaptureError, CaptureInProgress, NonZeroExit
from .storage import FileSystemStorage

logger = logging.getLogger(__name__)

SUBCOMMANDS = [
    ('capture', 'Take a screenshot into the vault'),
    ('insert', 'Take a screenshot and embed it in a document'),
    ('settings', 'Show current settings'),
    ('set', 'Change a setting and save it'),
    ('help', 'Show help'),
]


class RemarkablePlugin:
    """Plugin that captures reMarkable screenshots via resnap-rs.

    Configuration (all optional):
        vault_path: Root directory of the vault (default: current directory).
        storage: Storage object used instead of vault_path.
        settings_path: JSON settings file (see config_loader.resolve_settings_path).
        executable: Capture tool to run (default: resnap-rs).
        embed_style: "wikilink" or "markdown" (default: wikilink).
        device_address / target_directory: Override stored settings.
        agent_name: Name used in trace lines.
    """

    def __init__(self):
        self._config = CaptureConfig()
        self._settings_path: Optional[str] = None
        self._storage: Any = None
        self._executable = RESNAP_EXECUTABLE
        self._embed_style = "wikilink"
        self._agent_name: Optional[str] = None
        self._initialized = False
        # Device addresses with a capture currently running
        self._inflight: Set[str] = set()
        self._inflight_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "remarkable"

    @property
    def config(self) -> CaptureConfig:
        return self._config

    def _trace(self, msg: str, include_traceback: bool = False) -> None:
        agent_prefix = f"@{self._agent_name}" if self._agent_name else ""
        trace(f"REMARKABLE{agent_prefix}", msg, include_traceback=include_traceback)

    def initialize(self, config: Optional[Dict[str, Any]] = None) -> None:
        """Load settings and apply configuration overrides.

        Raises:
            ConfigValidationError: If the settings file is invalid.
            ValueError: If embed_style is unknown.
        """
        config = config or {}

        self._agent_name = config.get('agent_name')
        self._settings_path = config.get('settings_path')
        self._config = load_settings(self._settings_path)

        for key in SETTING_KEYS:
            if config.get(key) is not None:
                setattr(self._config, key, config[key])

        if config.get('storage') is not None:
            self._storage = config['storage']
        else:
            self._storage = FileSystemStorage(config.get('vault_path') or '.')

        self._executable = config.get('executable') or RESNAP_EXECUTABLE

        embed_style = config.get('embed_style', 'wikilink')
        if embed_style not in EMBED_STYLES:
            raise ValueError(f"Unknown embed style '{embed_style}'. Valid: {list(EMBED_STYLES)}")
        self._embed_style = embed_style

        self._initialized = True
        self._trace(
            f"initialize: device={self._config.device_address}, "
            f"dir={self._config.target_directory!r}, executable={self._executable}"
        )

    def shutdown(self) -> None:
        """Reset plugin state."""
        self._trace("shutdown")
        self._storage = None
        self._initialized = False

    # ==================== Capture ====================

    @contextlib.contextmanager
    def _single_flight(self, device_address: str) -> Iterator[None]:
        """Reject overlapping captures against the same device."""
        with self._inflight_lock:
            if device_address in self._inflight:
                raise CaptureInProgress(device_address)
            self._inflight.add(device_address)
        try:
            yield
        finally:
            with self._inflight_lock:
                self._inflight.discard(device_address)

    async def capture_async(self) -> CaptureResult:
        """Take a screenshot with the current settings.

        Raises:
            CaptureError: On any capture failure.
        """
        if not self._initialized:
            self.initialize()

        # Snapshot so a concurrent `set` does not change a running capture
        config = CaptureConfig(**self._config.to_dict())

        with self._single_flight(config.device_address):
            self._trace(f"capture: device={config.device_address}")
            try:
                result = await capture(config, self._storage, executable=self._executable)
            except NonZeroExit as exc:
                logger.warning(
                    "%s exited with code %s\nSTDERR: %s\nSTDOUT: %s",
                    self._executable, exc.code, exc.stderr, exc.stdout,
                )
                self._trace(f"capture failed: exit={exc.code}", include_traceback=True)
                raise
            except CaptureError as exc:
                logger.warning("Screenshot failed: %s", exc)
                self._trace(f"capture failed: {type(exc).__name__}: {exc}", include_traceback=True)
                raise

        logger.debug("ran %s: %s", self._executable, result.absolute_path)
        if result.stderr:
            logger.debug("%s stderr: %s", self._executable, result.stderr)
        self._trace(f"capture: saved {result.absolute_path}")
        if isinstance(self._storage, FileSystemStorage) and not self._storage.exists(result.relative_reference):
            logger.warning(
                "%s reported %s but %s does not resolve to a file in %s",
                self._executable, result.absolute_path, result.relative_reference,
                self._storage.get_base_path(),
            )
        return result

    def take_screenshot(self) -> CaptureResult:
        """Blocking variant of capture_async().

        Must not be called from a thread that is running an event loop;
        use capture_async() there.
        """
        return asyncio.run(self.capture_async())

    def insert_screenshot(self, document_path: str,
                          placeholder: Optional[str] = None) -> Tuple[CaptureResult, str]:
        """Take a screenshot and embed it in a document.

        Returns:
            The capture result and the embed text that was inserted.
        """
        result = self.take_screenshot()
        embed = format_embed(result.relative_reference, self._embed_style)
        insert_embed(document_path, embed, placeholder)
        self._trace(f"insert: {embed} -> {document_path}")
        return result, embed

    # ==================== Tools ====================

    def get_tool_schemas(self) -> List[ToolSchema]:
        """Return the ToolSchemas for the screenshot tools."""
        return [
            ToolSchema(
                name="takeRemarkableScreenshot",
                description=(
                    "Take a screenshot of the connected reMarkable tablet and save it "
                    "into the vault. Returns the image path and an embed snippet."
                ),
                parameters={
                    "type": "object",
                    "properties": {},
                    "required": []
                },
                category="system",
            ),
            ToolSchema(
                name="insertRemarkableScreenshot",
                description=(
                    "Take a screenshot of the reMarkable tablet and embed it in a "
                    "markdown document, replacing a placeholder or appending at the end."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "document_path": {
                            "type": "string",
                            "description": "Path of the markdown document to edit"
                        },
                        "placeholder": {
                            "type": "string",
                            "description": "Text to replace with the embed (first occurrence)"
                        }
                    },
                    "required": ["document_path"]
                },
                category="filesystem",
            ),
        ]

    def get_executors(self) -> Dict[str, Callable[[Dict[str, Any]], Any]]:
        """Return the executor mapping."""
        return {
            "takeRemarkableScreenshot": self._exec_take_screenshot,
            "insertRemarkableScreenshot": self._exec_insert_screenshot,
            "remarkable": lambda args: self.execute_user_command('remarkable', args),
        }

    def get_system_instructions(self) -> Optional[str]:
        return """reMarkable screenshot tools capture what is on the user's tablet:
- takeRemarkableScreenshot: save a screenshot into the vault, returns path and embed text
- insertRemarkableScreenshot(document_path, placeholder?): capture and embed in a document

A failed capture returns "error"; when the capture tool itself failed,
"exit_code", "stdout" and "stderr" are included. Do not retry automatically,
the tablet is usually unreachable or asleep."""

    def get_auto_approved_tools(self) -> List[str]:
        """Captures write into the vault, so they require permission."""
        return []

    def _error_result(self, exc: CaptureError) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "error": str(exc),
            "kind": type(exc).__name__,
        }
        if isinstance(exc, NonZeroExit):
            result["exit_code"] = exc.code
            result["stdout"] = exc.stdout
            result["stderr"] = exc.stderr
        return result

    def _exec_take_screenshot(self, args: Dict[str, Any]) -> Dict[str, Any]:
        try:
            result = self.take_screenshot()
        except CaptureError as exc:
            return self._error_result(exc)
        return {
            **result.to_dict(),
            "embed": format_embed(result.relative_reference, self._embed_style),
        }

    def _exec_insert_screenshot(self, args: Dict[str, Any]) -> Dict[str, Any]:
        document_path = args.get("document_path")
        if not document_path:
            return {"error": "document_path is required"}
        try:
            result, embed = self.insert_screenshot(document_path, args.get("placeholder"))
        except CaptureError as exc:
            return self._error_result(exc)
        except OSError as exc:
            return {"error": f"Failed to update {document_path}: {exc}"}
        return {
            **result.to_dict(),
            "embed": embed,
            "document_path": document_path,
        }

    # ==================== User commands ====================

    def get_user_commands(self) -> List[UserCommand]:
        return [
            UserCommand(
                name="remarkable",
                description="Take reMarkable screenshots and manage settings",
                share_with_model=False,
                parameters=[
                    CommandParameter("subcommand", "Subcommand (capture, insert, settings, set, help)"),
                    CommandParameter("rest", "Additional arguments", capture_rest=True),
                ]
            )
        ]

    def get_command_completions(self, command: str, args: List[str]) -> List[CommandCompletion]:
        if command != 'remarkable':
            return []

        subcommands = [CommandCompletion(value, desc) for value, desc in SUBCOMMANDS]
        if not args:
            return subcommands

        if len(args) == 1:
            partial = args[0].lower()
            return [c for c in subcommands if c.value.startswith(partial)]

        if args[0].lower() == 'set' and len(args) == 2:
            partial = args[1].lower()
            keys = list(SETTING_KEYS) + ['ip', 'dir']
            return [CommandCompletion(k, f"Set {KEY_ALIASES.get(k, k)}")
                    for k in keys if k.startswith(partial)]

        return []

    def execute_user_command(self, command: str, args: Dict[str, Any]) -> str:
        if command != 'remarkable':
            return f"Unknown command: {command}"

        subcommand = str(args.get('subcommand', '')).lower()
        rest = str(args.get('rest', '')).strip()

        if subcommand in ('capture', 'shot'):
            return self._cmd_capture()
        elif subcommand == 'insert':
            return self._cmd_insert(rest)
        elif subcommand == 'settings':
            return self._cmd_settings()
        elif subcommand == 'set':
            return self._cmd_set(rest)
        elif subcommand == 'help' or subcommand == '':
            return self._cmd_help()
        else:
            return f"Unknown subcommand: {subcommand}\n\n{self._cmd_help()}"

    def _cmd_help(self) -> str:
        return """reMarkable Screenshot Commands:

  remarkable capture                      - Take a screenshot into the vault
  remarkable insert <document> [text]     - Take a screenshot and embed it in a
                                            document, replacing [text] if present
  remarkable settings                     - Show current settings
  remarkable set <key> <value>            - Change and save a setting

Settings:
  device_address (ip)    IP address of the tablet. Defaults to the
                         REMARKABLE_IP env var or 10.11.99.1
  target_directory (dir) Directory for screenshots inside the vault.
                         Defaults to remarkable_screenshots"""

    def _cmd_capture(self) -> str:
        try:
            result = self.take_screenshot()
        except CaptureError as exc:
            return f"Screenshot failed: {exc}"
        return f"Took screenshot: {result.relative_reference}"

    def _cmd_insert(self, rest: str) -> str:
        document_path, _, placeholder = rest.partition(' ')
        if not document_path:
            return "Usage: remarkable insert <document> [placeholder]"
        try:
            result, embed = self.insert_screenshot(document_path, placeholder.strip() or None)
        except CaptureError as exc:
            return f"Screenshot failed: {exc}"
        except OSError as exc:
            return f"Failed to update {document_path}: {exc}"
        return f"Inserted {embed} into {document_path}"

    def _cmd_settings(self) -> str:
        lines = ["reMarkable settings:"]
        for key, value in self._config.to_dict().items():
            lines.append(f"  {key}: {value!r}")
        lines.append(f"  executable: {self._executable}")
        lines.append(f"  embed_style: {self._embed_style}")
        return '\n'.join(lines)

    def _cmd_set(self, rest: str) -> str:
        key, _, value = rest.partition(' ')
        if not key:
            return "Usage: remarkable set <key> <value>"
        value = value.strip()
        if KEY_ALIASES.get(key, key) == 'device_address' and not value:
            return "device_address cannot be empty"
        updated = CaptureConfig(**self._config.to_dict())
        try:
            updated.update(key, value)
        except KeyError:
            return f"Unknown setting '{key}'. Valid: {', '.join(SETTING_KEYS)}"
        try:
            path = save_settings(updated, self._settings_path)
        except OSError as exc:
            logger.warning("Failed to save settings: %s", exc)
            return f"Failed to save settings: {exc}"
        self._config = updated
        self._trace(f"set: {key}={value!r} saved to {path}")
        return f"Saved {KEY_ALIASES.get(key, key)} = {value!r}"


def create_plugin() -> RemarkablePlugin:
    """Factory function to create the reMarkable plugin instance."""
    return RemarkablePlugin()
