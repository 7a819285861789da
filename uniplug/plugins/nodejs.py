"""Node.js, installed from the pre-built binaries on nodejs.org."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from uniplug.core.channels import (
    ChannelEntry,
    channel_codenames,
    has_channel,
    is_channel_alias,
    parse_channel,
    resolve_channel,
)
from uniplug.core.context import Context
from uniplug.core.download import Downloader, HttpDownloader, find_checksum, verify_sha256
from uniplug.core.platform import get_arch, get_platform
from uniplug.core.plugin import Plugin, read_legacy_version_file
from uniplug.core.process import CommandRunner, SubprocessRunner
from uniplug.core.source_build import SourceBuildConfig, SourceBuildPlugin, build_move_tree
from uniplug.core.types import CommandError, DownloadError, PluginError, PluginHelp
from uniplug.core.versions import select_latest, sort_versions

logger = logging.getLogger(__name__)

INDEX_URL = "https://nodejs.org/dist/index.json"
DIST_URL = "https://nodejs.org/dist/"
ARCHIVE_NAME = "node.tar.gz"

_NODE_ARCH = {"amd64": "x64", "386": "x86", "arm64": "arm64", "armv6l": "armv7l"}

HELP = PluginHelp(
    overview=(
        "Node.js - A JavaScript runtime built on Chrome's V8 JavaScript engine.\n"
        "This plugin downloads pre-built Node.js binaries from https://nodejs.org/"
    ),
    deps="No system dependencies required - uses pre-built binaries.",
    config=(
        "Environment variables:\n"
        "  ASDF_NPM_DEFAULT_PACKAGES_FILE - Path to default npm packages file (default: ~/.default-npm-packages)\n"
        "  ASDF_NODEJS_AUTO_ENABLE_COREPACK - Enable corepack after install (default: false)"
    ),
    links=(
        "Homepage: https://nodejs.org/\n"
        "Documentation: https://nodejs.org/docs/\n"
        "Downloads: https://nodejs.org/en/download/\n"
        "Source: https://github.com/nodejs/node"
    ),
)


def node_arch() -> str:
    arch = get_arch()
    return _NODE_ARCH.get(arch, arch)


@dataclass(frozen=True)
class NodeClassifier:
    """Odd-numbered majors are development lines unless marked LTS."""

    lts_versions: frozenset[str] = frozenset()

    def is_prerelease(self, version: str) -> bool:
        if version in self.lts_versions:
            return False
        major = version.split(".", 1)[0]
        if not major.isdigit():
            return True
        return int(major) % 2 == 1


def parse_index(data: object) -> list[ChannelEntry]:
    """Turn ``index.json`` into channel entries, newest first, without the ``v``."""
    if not isinstance(data, list):
        raise PluginError("malformed Node.js index: expected a JSON array")
    entries = []
    for item in data:
        if not isinstance(item, dict) or not item.get("version"):
            continue
        try:
            label = parse_channel(item.get("lts"))
        except TypeError as exc:
            raise PluginError(f"malformed Node.js index: {exc}") from exc
        entries.append(ChannelEntry(str(item["version"]).removeprefix("v"), label))
    return entries


def read_default_packages(path: Path) -> list[str]:
    """Return the non-blank, non-comment lines of a default-packages file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    lines = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            lines.append(line)
    return lines


class NodejsPlugin(Plugin):
    name = "nodejs"

    def __init__(
        self,
        *,
        downloader: Downloader | None = None,
        runner: CommandRunner | None = None,
        index_url: str = INDEX_URL,
        dist_url: str = DIST_URL,
        home: Path | None = None,
    ) -> None:
        self.downloader = downloader or HttpDownloader()
        self.runner = runner or SubprocessRunner()
        self.index_url = index_url
        self.dist_url = dist_url if dist_url.endswith("/") else dist_url + "/"
        self.home = home
        self.source_build = SourceBuildPlugin(
            SourceBuildConfig(
                name="nodejs",
                create_bin_dir=False,
                skip_download=True,
                archive_type="tar.gz",
                archive_name_template=ARCHIVE_NAME,
                auto_detect_extracted_dir=True,
                expected_artifacts=("bin/node", "bin/npm", "bin/npx"),
                legacy_filenames=(".nvmrc", ".node-version"),
                help=HELP,
                build=build_move_tree,
            ),
            downloader=self.downloader,
        )

    # -- versions ----------------------------------------------------------

    def fetch_index(self, ctx: Context) -> list[ChannelEntry]:
        return parse_index(self.downloader.fetch_json(ctx, self.index_url))

    def list_all(self, ctx: Context) -> list[str]:
        return sort_versions(entry.version for entry in self.fetch_index(ctx))

    def latest_stable(self, ctx: Context, query: str = "") -> str:
        index = self.fetch_index(ctx)
        if is_channel_alias(query):
            return resolve_channel(index, query)
        classifier = NodeClassifier(frozenset(e.version for e in index if has_channel(e.channel)))
        return select_latest([e.version for e in index], query, classifier=classifier)

    def lts_codenames(self, ctx: Context) -> dict[str, str]:
        """Map each LTS codename to its newest release."""
        return channel_codenames(self.fetch_index(ctx))

    # -- install -----------------------------------------------------------

    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        download_dir = Path(download_dir)
        download_dir.mkdir(parents=True, exist_ok=True)
        file_name = f"node-v{version}-{get_platform()}-{node_arch()}.tar.gz"
        url = f"{self.dist_url}v{version}/{file_name}"
        archive = download_dir / ARCHIVE_NAME

        logger.info("Downloading Node.js %s from %s", version, url)
        self.downloader.download_file(ctx, url, archive)

        shasums_url = f"{self.dist_url}v{version}/SHASUMS256.txt"
        try:
            shasums = self.downloader.download_string(ctx, shasums_url)
        except DownloadError as exc:
            logger.warning("Could not download checksums: %s", exc)
            return

        expected = find_checksum(shasums, file_name)
        if expected is None:
            raise PluginError(f"checksum not found: {file_name}")
        verify_sha256(archive, expected)
        logger.info("Checksum verified")

    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        if download_dir is None:
            raise PluginError("nodejs install requires a download directory")
        download_dir = Path(download_dir)
        install_dir = Path(install_dir)
        if self.source_build._artifacts_present(install_dir):
            logger.info("Node.js %s already installed in %s", version, install_dir)
            return
        if not (download_dir / ARCHIVE_NAME).is_file():
            self.download(ctx, version, download_dir)

        logger.info("Installing Node.js %s to %s", version, install_dir)
        self.source_build.install(ctx, version, download_dir, install_dir)
        shutil.rmtree(download_dir / "src", ignore_errors=True)

        self.install_default_packages(ctx, install_dir)
        if os.environ.get("ASDF_NODEJS_AUTO_ENABLE_COREPACK"):
            self.enable_corepack(ctx, install_dir)
        logger.info("Node.js %s installed successfully", version)

    def default_packages_file(self) -> Path:
        configured = os.environ.get("ASDF_NPM_DEFAULT_PACKAGES_FILE")
        if configured:
            return Path(configured)
        return (self.home or Path.home()) / ".default-npm-packages"

    def install_default_packages(self, ctx: Context, install_dir: Path) -> None:
        """``npm install -g`` every package listed in the default-packages file.

        Lines carrying npm flags are installed one by one; the rest go in a
        single call. Failures are only logged.
        """
        bin_dir = install_dir / "bin"
        npm = str(bin_dir / "npm")
        env = {"PATH": f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"}

        packages: list[str] = []
        for line in read_default_packages(self.default_packages_file()):
            if " -" in line or line.startswith("-"):
                logger.info("Running: npm install -g %s", line)
                try:
                    self.runner.run(ctx, [npm, "install", "-g", *line.split()], env=env)
                except CommandError as exc:
                    logger.warning("Failed to install %s: %s", line, exc)
                continue
            packages.extend(line.split())

        if not packages:
            return
        logger.info("Running: npm install -g %s", " ".join(packages))
        try:
            self.runner.run(
                ctx, [npm, "install", "-g", *packages],
                env={**env, "NODE": str(bin_dir / "node")},
            )
        except CommandError as exc:
            logger.warning("Failed to install packages: %s", exc)

    def enable_corepack(self, ctx: Context, install_dir: Path) -> None:
        corepack = install_dir / "bin" / "corepack"
        if not corepack.exists():
            return
        logger.info("Enabling corepack...")
        try:
            self.runner.run(
                ctx, [str(corepack), "enable"],
                env={"PATH": f"{install_dir / 'bin'}{os.pathsep}{os.environ.get('PATH', '')}"},
            )
        except CommandError as exc:
            logger.warning("Failed to enable corepack: %s", exc)

    # -- metadata ----------------------------------------------------------

    def list_legacy_filenames(self) -> list[str]:
        return [".nvmrc", ".node-version"]

    def parse_legacy_file(self, path: Path) -> str:
        version = read_legacy_version_file(path)
        if version.startswith("lts"):
            return version
        return version.removeprefix("v")

    def help(self) -> PluginHelp:
        return HELP
