"""Built-in tool plugins."""

from uniplug.plugins.registry import PluginEntry, Registry, Services, default_registry

__all__ = ["PluginEntry", "Registry", "Services", "default_registry"]
