"""Generic engines shared by every tool plugin."""

from uniplug.core.context import Context
from uniplug.core.plugin import Plugin
from uniplug.core.types import PluginError, PluginHelp

__all__ = ["Context", "Plugin", "PluginError", "PluginHelp"]
