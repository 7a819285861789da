"""Generic engine for tools shipped as pre-built GitHub release assets."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from uniplug.core import archive
from uniplug.core.context import Context
from uniplug.core.download import Downloader, HttpDownloader
from uniplug.core.github import GitHubClient, ListVersionsConfig, VersionLister, list_github_versions
from uniplug.core.platform import get_arch, get_platform
from uniplug.core.plugin import Plugin
from uniplug.core.template import TemplateFields, render
from uniplug.core.types import (
    ArchNotSupportedError,
    BinaryNotFoundError,
    PlatformNotSupportedError,
    PluginError,
    PluginHelp,
    UnsupportedArchiveTypeError,
)
from uniplug.core.versions import DEFAULT_CLASSIFIER, Classifier, select_latest

logger = logging.getLogger(__name__)

DEFAULT_FILE_NAME_TEMPLATE = "{{.BinaryName}}-{{.Platform}}-{{.Arch}}"
DEFAULT_DOWNLOAD_URL_TEMPLATE = (
    "https://github.com/{{.RepoOwner}}/{{.RepoName}}/releases/download/"
    "{{.VersionPrefix}}{{.Version}}/{{.FileName}}"
)
MIN_CACHED_SIZE = 1024
EXECUTABLE_MODE = 0o755

# Raw binaries are copied as downloaded.
RAW_ARCHIVE_TYPES = ("", "none", "binary")


def _default_os_map() -> dict[str, str]:
    return {"darwin": "darwin", "linux": "linux"}


def _default_arch_map() -> dict[str, str]:
    return {"amd64": "amd64", "arm64": "arm64"}


@dataclass(frozen=True)
class BinaryPluginConfig:
    """Static description of a tool released as per-platform binaries.

    ``os_map`` and ``arch_map`` translate the host's ``linux``/``amd64``
    style names to the names used in asset file names; hosts missing from
    a map are unsupported.
    """

    name: str
    repo_owner: str
    repo_name: str
    binary_name: str = ""
    version_prefix: str = "v"
    version_filter: str = ""
    use_releases: bool = True
    file_name_template: str = DEFAULT_FILE_NAME_TEMPLATE
    download_url_template: str = DEFAULT_DOWNLOAD_URL_TEMPLATE
    archive_type: str = ""
    os_map: dict[str, str] = field(default_factory=_default_os_map)
    arch_map: dict[str, str] = field(default_factory=_default_arch_map)
    help_description: str = ""
    help_link: str = ""
    fail_on_empty_filter: bool = True
    classifier: Classifier = DEFAULT_CLASSIFIER

    def __post_init__(self) -> None:
        object.__setattr__(self, "binary_name", self.binary_name or self.name)
        object.__setattr__(self, "version_prefix", self.version_prefix or "v")
        object.__setattr__(self, "file_name_template", self.file_name_template or DEFAULT_FILE_NAME_TEMPLATE)
        object.__setattr__(
            self, "download_url_template", self.download_url_template or DEFAULT_DOWNLOAD_URL_TEMPLATE,
        )
        object.__setattr__(self, "os_map", dict(self.os_map))
        object.__setattr__(self, "arch_map", dict(self.arch_map))


class BinaryPlugin(Plugin):
    """Plugin that downloads one release asset and installs a single binary."""

    def __init__(
        self,
        config: BinaryPluginConfig,
        *,
        github: VersionLister | None = None,
        downloader: Downloader | None = None,
    ) -> None:
        self.config = config
        self.name = config.name
        self.github = github or GitHubClient()
        self.downloader = downloader or HttpDownloader()

    def list_all(self, ctx: Context) -> list[str]:
        cfg = self.config
        return list_github_versions(ctx, self.github, ListVersionsConfig(
            repo_owner=cfg.repo_owner,
            repo_name=cfg.repo_name,
            version_prefix=cfg.version_prefix,
            version_filter=cfg.version_filter,
            use_tags=not cfg.use_releases,
        ))

    def latest_stable(self, ctx: Context, query: str = "") -> str:
        return select_latest(
            self.list_all(ctx), query,
            classifier=self.config.classifier,
            fail_on_empty_filter=self.config.fail_on_empty_filter,
        )

    def host_names(self) -> tuple[str, str]:
        """Return the host platform and arch as named in release assets."""
        platform, arch = get_platform(), get_arch()
        try:
            mapped_platform = self.config.os_map[platform]
        except KeyError:
            raise PlatformNotSupportedError(f"unsupported platform: {platform}") from None
        try:
            mapped_arch = self.config.arch_map[arch]
        except KeyError:
            raise ArchNotSupportedError(f"unsupported architecture: {arch}") from None
        return mapped_platform, mapped_arch

    def asset(self, version: str) -> tuple[str, str]:
        """Return ``(file_name, url)`` of the release asset for the host."""
        cfg = self.config
        platform, arch = self.host_names()
        fields = TemplateFields(
            repo_owner=cfg.repo_owner,
            repo_name=cfg.repo_name,
            name=cfg.name,
            version=version,
            version_prefix=cfg.version_prefix,
            platform=platform,
            arch=arch,
            binary_name=cfg.binary_name,
        )
        file_name = render(cfg.file_name_template, fields)
        url = render(cfg.download_url_template, fields.with_(file_name=file_name))
        return file_name, url

    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        cfg = self.config
        file_name, url = self.asset(version)
        download_dir = Path(download_dir)
        target = download_dir / file_name

        if target.is_file() and target.stat().st_size > MIN_CACHED_SIZE:
            logger.info("Using cached download for %s %s", cfg.name, version)
            return

        logger.info("Downloading %s %s from %s", cfg.name, version, url)
        self.downloader.download_file(ctx, url, target)
        try:
            os.chmod(target, EXECUTABLE_MODE)
        except OSError as exc:
            raise PluginError(f"failed to make binary executable: {exc}") from exc

    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        cfg = self.config
        ctx.check()
        if download_dir is None:
            raise BinaryNotFoundError("no download directory given")
        download_dir, install_dir = Path(download_dir), Path(install_dir)

        try:
            source = next((p for p in sorted(download_dir.iterdir()) if p.is_file()), None)
        except OSError as exc:
            raise PluginError(f"reading {download_dir}: {exc}") from exc
        if source is None:
            raise BinaryNotFoundError(f"no binary found in {download_dir}")

        logger.info("Installing %s %s to %s", cfg.name, version, install_dir)
        bin_dir = install_dir / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        dest = bin_dir / cfg.binary_name

        if cfg.archive_type == "gz":
            archive.extract_gz(source, dest)
        elif cfg.archive_type in archive.EXTRACTORS:
            _extract_binary(cfg.archive_type, source, dest, cfg.binary_name)
        elif cfg.archive_type in RAW_ARCHIVE_TYPES:
            shutil.copyfile(source, dest)
        else:
            raise UnsupportedArchiveTypeError(cfg.archive_type)

        try:
            os.chmod(dest, EXECUTABLE_MODE)
        except OSError as exc:
            raise PluginError(f"failed to make binary executable: {exc}") from exc
        logger.info("%s %s installed successfully", cfg.name, version)

    def help(self) -> PluginHelp:
        cfg = self.config
        return PluginHelp(
            overview=f"{cfg.name} - {cfg.help_description}",
            deps="No additional dependencies required",
            config="No additional configuration required",
            links=f"Documentation: {cfg.help_link}\nGitHub: https://github.com/{cfg.repo_owner}/{cfg.repo_name}",
        )


def _extract_binary(archive_type: str, source: Path, dest: Path, binary_name: str) -> None:
    """Unpack *source* to a scratch dir and copy the file named *binary_name* to *dest*."""
    with tempfile.TemporaryDirectory(prefix="uniplug-extract-") as tmp:
        archive.extract(archive_type, source, Path(tmp))
        for root, _dirs, files in os.walk(tmp):
            if binary_name in files:
                shutil.copyfile(Path(root) / binary_name, dest)
                return
    raise BinaryNotFoundError(f"binary not found in archive: {binary_name}")
