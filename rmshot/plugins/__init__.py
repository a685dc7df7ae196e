"""Plugin system for tool discovery and management.

Usage:
    from rmshot.plugins import PluginRegistry

    registry = PluginRegistry()
    registry.discover()

    registry.enable('remarkable', config={'vault_path': '/path/to/notes'})

    schemas = registry.get_enabled_schemas()
    executors = registry.get_enabled_executors()

    registry.disable_all()
"""

from .base import ToolPlugin
from .registry import PluginRegistry

__all__ = ['ToolPlugin', 'PluginRegistry']
