"""Plugin registry: find plugins, switch them on and off, route calls to them."""

import importlib
import logging
import pkgutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .base import ToolPlugin, UserCommand
from .types import ToolSchema

logger = logging.getLogger(__name__)

# Modules of this package that are framework code, not plugins
_INTERNAL_MODULES = ('base', 'registry', 'types', 'tests')


class PluginRegistry:
    """Holds discovered plugins and the configuration of the enabled ones.

    Usage:
        registry = PluginRegistry()
        registry.discover()
        registry.enable('remarkable', config={'vault_path': '/notes'})

        for schema in registry.get_enabled_schemas():
            print(schema.name)

        registry.disable_all()
    """

    def __init__(self):
        self._plugins: Dict[str, ToolPlugin] = {}
        # Enabled plugin name -> config it was initialized with
        self._enabled: Dict[str, Optional[Dict[str, Any]]] = {}

    def discover(self, plugin_dir: Optional[Path] = None) -> List[str]:
        """Import every plugin package under rmshot.plugins and register it.

        A plugin package exports `create_plugin()`. Packages that fail to
        import, lack the factory, or return something that is not a
        ToolPlugin are skipped with a warning.

        Args:
            plugin_dir: Directory to list. Defaults to this package's directory.

        Returns:
            Names of the plugins registered.
        """
        search_path = str(plugin_dir or Path(__file__).parent)
        found = []

        for _, module_name, _ in pkgutil.iter_modules([search_path]):
            if module_name.startswith('_') or module_name in _INTERNAL_MODULES:
                continue

            try:
                module = importlib.import_module(f".{module_name}", package=__package__)
                factory = getattr(module, 'create_plugin', None)
                if factory is None:
                    logger.warning("%s: no create_plugin() function found", module_name)
                    continue
                plugin = factory()
            except Exception as exc:
                logger.warning("Error loading plugin '%s': %s", module_name, exc)
                continue

            if not isinstance(plugin, ToolPlugin):
                logger.warning("%s: plugin does not implement ToolPlugin protocol", module_name)
                continue

            self.register(plugin)
            found.append(plugin.name)

        return found

    def register(self, plugin: ToolPlugin) -> None:
        """Add a plugin instance, replacing any plugin with the same name."""
        self._plugins[plugin.name] = plugin

    def get_plugin(self, name: str) -> Optional[ToolPlugin]:
        return self._plugins.get(name)

    def is_enabled(self, name: str) -> bool:
        return name in self._enabled

    def enable(self, name: str, config: Optional[Dict[str, Any]] = None) -> None:
        """Initialize a plugin and mark it enabled.

        Enabling an enabled plugin again is a no-op unless the config
        differs, in which case the plugin is shut down and re-initialized.

        Raises:
            ValueError: If no plugin of that name is registered.
        """
        plugin = self._plugins.get(name)
        if plugin is None:
            raise ValueError(f"Plugin '{name}' not found. Available: {sorted(self._plugins)}")

        if self.is_enabled(name):
            if not config or config == self._enabled[name]:
                return
            plugin.shutdown()

        plugin.initialize(config)
        self._enabled[name] = config

    def disable(self, name: str) -> None:
        if self.is_enabled(name):
            self._plugins[name].shutdown()
            del self._enabled[name]

    def disable_all(self) -> None:
        for name in list(self._enabled):
            self.disable(name)

    def _enabled_plugins(self) -> List[Tuple[str, ToolPlugin]]:
        return [(name, self._plugins[name]) for name in self._enabled]

    def get_enabled_schemas(self) -> List[ToolSchema]:
        """Tool schemas of all enabled plugins.

        A plugin whose schemas cannot be built is left out with a warning.
        """
        schemas: List[ToolSchema] = []
        for name, plugin in self._enabled_plugins():
            try:
                schemas.extend(plugin.get_tool_schemas())
            except Exception as exc:
                logger.warning("Error getting schemas from '%s': %s", name, exc)
        return schemas

    def get_enabled_executors(self) -> Dict[str, Callable[[Dict[str, Any]], Any]]:
        """Tool name -> executor, over all enabled plugins."""
        executors: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        for name, plugin in self._enabled_plugins():
            try:
                executors.update(plugin.get_executors())
            except Exception as exc:
                logger.warning("Error getting executors from '%s': %s", name, exc)
        return executors

    def get_enabled_user_commands(self) -> Dict[str, UserCommand]:
        """Command name -> declaration, over all enabled plugins."""
        return {
            command.name: command
            for _, plugin in self._enabled_plugins()
            for command in plugin.get_user_commands()
        }

    def execute_user_command(self, command: str, args: Dict[str, Any]) -> str:
        """Run a user command on the enabled plugin that declares it.

        Raises:
            ValueError: If no enabled plugin declares the command.
        """
        for _, plugin in self._enabled_plugins():
            if any(c.name == command for c in plugin.get_user_commands()):
                return plugin.execute_user_command(command, args)
        raise ValueError(f"Unknown command: {command}")
