"""The operations every tool plugin exposes to the version manager."""

from __future__ import annotations

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from uniplug.core.context import Context
from uniplug.core.types import PluginError, PluginHelp

logger = logging.getLogger(__name__)


def read_legacy_version_file(path: Path) -> str:
    """Return the trimmed content of a legacy version file such as ``.nvmrc``."""
    try:
        return Path(path).read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise PluginError(f"reading legacy version file {path}: {exc}") from exc


class Plugin(ABC):
    """A versioned tool: listing, resolving, downloading and installing it.

    Subclasses implement the four context-bound operations; the metadata
    operations have defaults suited to a tool whose executables live in
    ``<install_dir>/bin``.
    """

    name: str = ""

    @abstractmethod
    def list_all(self, ctx: Context) -> list[str]:
        """Return every installable version in ascending order."""

    @abstractmethod
    def latest_stable(self, ctx: Context, query: str = "") -> str:
        """Resolve *query* (a version prefix or alias) to one version."""

    @abstractmethod
    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        """Fetch the distribution of *version* into *download_dir*."""

    @abstractmethod
    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        """Install *version* into *install_dir*."""

    def uninstall(self, ctx: Context, install_dir: Path) -> None:
        ctx.check()
        try:
            shutil.rmtree(install_dir)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise PluginError(f"removing {install_dir}: {exc}") from exc

    def list_bin_paths(self) -> str:
        return "bin"

    def exec_env(self, install_dir: Path) -> dict[str, str]:
        return {}

    def list_legacy_filenames(self) -> list[str]:
        return []

    def parse_legacy_file(self, path: Path) -> str:
        return read_legacy_version_file(path)

    def help(self) -> PluginHelp:
        return PluginHelp()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"
