"""Name-to-plugin registry.

Every entry carries one or more names (aliases) and a factory; lookups are
case-insensitive and build a fresh plugin each time.

Example:
    >>> registry = default_registry()
    >>> registry.get("node").name
    'nodejs'
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from uniplug.config import PluginsConfig, Settings
from uniplug.core.binary import BinaryPlugin, BinaryPluginConfig
from uniplug.core.download import Downloader, HttpDownloader
from uniplug.core.github import GitHubClient, VersionLister
from uniplug.core.plugin import Plugin
from uniplug.core.process import CommandRunner, SubprocessRunner
from uniplug.core.source_build import SourceBuildPlugin
from uniplug.core.types import PluginNotFoundError
from uniplug.plugins import binaries
from uniplug.plugins.ginkgo import new_ginkgo_plugin
from uniplug.plugins.nodejs import NodejsPlugin
from uniplug.plugins.python import PythonPlugin
from uniplug.plugins.zig import ZigPlugin

logger = logging.getLogger(__name__)

PluginFactory = Callable[[], Plugin]


@dataclass
class Services:
    """Shared ports handed to every plugin a registry builds."""

    github: VersionLister | None = None
    downloader: Downloader | None = None
    runner: CommandRunner | None = None
    settings: Settings | None = None

    def __post_init__(self) -> None:
        if self.settings is None:
            self.settings = Settings.from_env()
        if self.github is None:
            self.github = GitHubClient(token=self.settings.github_token or None)
        if self.downloader is None:
            self.downloader = HttpDownloader()
        if self.runner is None:
            self.runner = SubprocessRunner()


@dataclass
class PluginEntry:
    """A registered plugin: its names and the factory that builds it."""

    names: tuple[str, ...]
    factory: PluginFactory = field(repr=False)

    @property
    def name(self) -> str:
        return self.names[0]


class Registry:
    def __init__(self, services: Services | None = None) -> None:
        self.services = services or Services()
        self._entries: dict[str, PluginEntry] = {}
        self._all: list[PluginEntry] = []

    def register(self, names: str | tuple[str, ...] | list[str], factory: PluginFactory) -> PluginEntry:
        """Register *factory* under one or more names; later names win on clashes."""
        if isinstance(names, str):
            names = (names,)
        entry = PluginEntry(tuple(names), factory)
        self._all.append(entry)
        for name in entry.names:
            key = name.lower()
            if key in self._entries:
                logger.debug("Plugin name %s re-registered", key)
            self._entries[key] = entry
        return entry

    def get(self, name: str) -> Plugin:
        """Build the plugin registered as *name*.

        Raises:
            PluginNotFoundError: If no plugin answers to *name*.
        """
        entry = self._entries.get(name.lower())
        if entry is None:
            raise PluginNotFoundError(f"unknown plugin: {name}")
        return entry.factory()

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._entries

    def names(self) -> list[str]:
        return sorted(self._entries)

    def all(self) -> list[PluginEntry]:
        return list(self._all)

    # -- factories ---------------------------------------------------------

    def register_binary(self, config: BinaryPluginConfig, *aliases: str) -> PluginEntry:
        svc = self.services
        return self.register(
            (config.name, *aliases),
            lambda: BinaryPlugin(config, github=svc.github, downloader=svc.downloader),
        )

    def register_config(self, cfg: PluginsConfig) -> list[PluginEntry]:
        """Register every plugin declared in a parsed ``plugins.yaml``."""
        svc = self.services
        entries = [self.register_binary(config) for config in cfg.binaries.values()]
        for decl in cfg.source_builds.values():
            config = decl.to_config(cfg.base_dir, svc.runner)
            entries.append(self.register(
                decl.name,
                lambda config=config: SourceBuildPlugin(config, github=svc.github, downloader=svc.downloader),
            ))
        return entries


def default_registry(services: Services | None = None) -> Registry:
    """Return a registry holding every built-in plugin."""
    registry = Registry(services)
    svc = registry.services

    for config in binaries.ALL:
        registry.register_binary(config)
    registry.register("ginkgo", lambda: new_ginkgo_plugin(
        github=svc.github, downloader=svc.downloader, runner=svc.runner,
    ))
    registry.register(("nodejs", "node"), lambda: NodejsPlugin(
        downloader=svc.downloader, runner=svc.runner,
    ))
    registry.register("python", lambda: PythonPlugin(downloader=svc.downloader, runner=svc.runner))
    registry.register("zig", lambda: ZigPlugin(downloader=svc.downloader))
    return registry
