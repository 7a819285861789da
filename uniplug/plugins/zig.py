"""Zig, installed from the tarballs listed in ziglang.org's download index."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from uniplug.core.context import Context
from uniplug.core.download import Downloader, HttpDownloader
from uniplug.core.platform import get_arch, get_platform
from uniplug.core.plugin import Plugin
from uniplug.core.source_build import SourceBuildConfig, SourceBuildPlugin, build_copy_tree
from uniplug.core.types import PlatformNotSupportedError, PluginError, PluginHelp
from uniplug.core.versions import select_latest, sort_versions

logger = logging.getLogger(__name__)

INDEX_URL = "https://ziglang.org/download/index.json"
TARBALL_NAME = "zig.tar.xz"
MIN_CACHED_SIZE = 1024

_ZIG_ARCH = {"amd64": "x86_64", "arm64": "aarch64"}

HELP = PluginHelp(
    overview=(
        "Zig - A general-purpose programming language and toolchain for maintaining\n"
        "robust, optimal, and reusable software."
    ),
    deps="No additional dependencies required.",
    config="No additional configuration required.",
    links=(
        "Homepage: https://ziglang.org/\n"
        "Documentation: https://ziglang.org/documentation/\n"
        "Source: https://codeberg.org/ziglang/zig"
    ),
)


def parse_index(data: object) -> dict[str, dict[str, str]]:
    """Map each version to ``{platform_key: tarball_url}``.

    Non-platform fields (``date``, ``docs``...) and entries without a
    tarball are dropped.
    """
    if not isinstance(data, dict):
        raise PluginError("malformed zig index: expected a JSON object")
    index: dict[str, dict[str, str]] = {}
    for version, platforms in data.items():
        if not isinstance(platforms, dict):
            continue
        index[version] = {
            key: release["tarball"]
            for key, release in platforms.items()
            if isinstance(release, dict) and release.get("tarball")
        }
    return index


def platform_key() -> str:
    """Return the index key for the host, e.g. ``x86_64-linux``."""
    arch = get_arch()
    return f"{_ZIG_ARCH.get(arch, arch)}-{get_platform()}"


class ZigPlugin(Plugin):
    name = "zig"

    def __init__(self, *, downloader: Downloader | None = None, index_url: str = INDEX_URL) -> None:
        self.downloader = downloader or HttpDownloader()
        self.index_url = index_url
        self.source_build = SourceBuildPlugin(
            SourceBuildConfig(
                name="zig",
                bin_dir=".",
                create_bin_dir=False,
                skip_download=True,
                archive_type="tar.xz",
                archive_name_template=TARBALL_NAME,
                auto_detect_extracted_dir=True,
                expected_artifacts=("zig",),
                help=HELP,
                build=build_copy_tree,
            ),
            downloader=self.downloader,
        )

    def fetch_index(self, ctx: Context) -> dict[str, dict[str, str]]:
        return parse_index(self.downloader.fetch_json(ctx, self.index_url))

    def list_all(self, ctx: Context) -> list[str]:
        index = self.fetch_index(ctx)
        return sort_versions(v for v in index if v != "master")

    def latest_stable(self, ctx: Context, query: str = "") -> str:
        return select_latest(self.list_all(ctx), query)

    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        dest = Path(download_dir) / TARBALL_NAME
        if dest.is_file() and dest.stat().st_size > MIN_CACHED_SIZE:
            logger.info("Using cached download for zig %s", version)
            return

        index = self.fetch_index(ctx)
        if version not in index:
            raise PluginError(f"zig version not found: {version}")
        key = platform_key()
        tarball = index[version].get(key)
        if tarball is None:
            raise PlatformNotSupportedError(f"no zig {version} release for platform {key}")

        logger.info("Downloading Zig %s from %s", version, tarball)
        self.downloader.download_file(ctx, tarball, dest)

    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        self.source_build.install(ctx, version, download_dir, install_dir)
        if download_dir is not None:
            shutil.rmtree(Path(download_dir) / "src", ignore_errors=True)
        logger.info("Zig %s installed successfully", version)

    def list_bin_paths(self) -> str:
        return "."

    def help(self) -> PluginHelp:
        return HELP

