"""Generic engine for tools installed from a downloaded source archive.

The install pipeline runs these stages in order, each one a precondition
for the next:

1. artifact short-circuit: when every expected artifact already exists the
   install is already done (bin artifacts are re-marked executable);
2. directory preparation (install dir and, optionally, its bin dir);
3. download, skipped when a cached archive larger than ``min_archive_size``
   is present;
4. extraction into a freshly cleared ``src`` directory;
5. optional pre-build hook;
6. build hook (mandatory, checked before any other work);
7. optional post-install hook;
8. artifact verification and permission normalisation.

Without an explicit download directory a private temporary directory is
used and removed on every exit path. Nothing is rolled back on failure.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from uniplug.core import archive
from uniplug.core.context import Context
from uniplug.core.download import Downloader, HttpDownloader
from uniplug.core.github import GitHubClient, ListVersionsConfig, VersionLister, list_github_versions
from uniplug.core.plugin import Plugin
from uniplug.core.template import TemplateFields, render
from uniplug.core.types import (
    ArchiveError,
    ArchiveMissingError,
    ArtifactMissingError,
    CancelledError,
    DownloadError,
    ExtractedDirMissingError,
    HookError,
    NoBuildStepConfiguredError,
    NoVersionsFoundError,
    PluginError,
    PluginHelp,
)
from uniplug.core.versions import DEFAULT_CLASSIFIER, Classifier, select_latest

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_URL_TEMPLATE = (
    "https://github.com/{{.RepoOwner}}/{{.RepoName}}/archive/refs/tags/"
    "{{.VersionPrefix}}{{.Version}}.tar.gz"
)
DEFAULT_EXTRACTED_DIR_TEMPLATE = "{{.RepoName}}-{{.Version}}"
DEFAULT_MIN_ARCHIVE_SIZE = 1024
EXECUTABLE_MODE = 0o755

PreBuildHook = Callable[[Context, str, Path], None]
BuildHook = Callable[[Context, str, Path, Path], None]
PostInstallHook = Callable[[Context, str, Path], None]
SourceURLFunc = Callable[[Context, str], str]
DownloadFunc = Callable[[Context, str, Path], None]


@dataclass(frozen=True)
class SourceBuildConfig:
    """Static description of a source-built tool.

    Empty template fields are filled with GitHub tag-archive defaults when
    the config is created; the record is never mutated afterwards.
    """

    name: str
    repo_owner: str = ""
    repo_name: str = ""
    version_prefix: str = "v"
    version_filter: str = ""
    use_tags: bool = True
    source_url_template: str = ""
    archive_type: str = "tar.gz"
    archive_name_template: str = ""
    extracted_dir_template: str = ""
    bin_dir: str = "bin"
    create_bin_dir: bool = True
    min_archive_size: int = DEFAULT_MIN_ARCHIVE_SIZE
    expected_artifacts: tuple[str, ...] = ()
    legacy_filenames: tuple[str, ...] = ()
    skip_download: bool = False
    skip_extract: bool = False
    auto_detect_extracted_dir: bool = False
    fail_on_empty_filter: bool = True
    classifier: Classifier = DEFAULT_CLASSIFIER
    help: PluginHelp = field(default_factory=PluginHelp)
    pre_build: PreBuildHook | None = None
    build: BuildHook | None = None
    post_install: PostInstallHook | None = None
    source_url_func: SourceURLFunc | None = None
    download_file: DownloadFunc | None = None

    def __post_init__(self) -> None:
        defaults = {
            "version_prefix": self.version_prefix or "v",
            "source_url_template": self.source_url_template or DEFAULT_SOURCE_URL_TEMPLATE,
            "archive_type": self.archive_type or "tar.gz",
            "extracted_dir_template": self.extracted_dir_template or DEFAULT_EXTRACTED_DIR_TEMPLATE,
            "bin_dir": self.bin_dir or "bin",
            "expected_artifacts": tuple(self.expected_artifacts),
            "legacy_filenames": tuple(self.legacy_filenames),
        }
        defaults["archive_name_template"] = (
            self.archive_name_template or f"{{{{.RepoName}}}}-{{{{.Version}}}}.{defaults['archive_type']}"
        )
        for key, value in defaults.items():
            object.__setattr__(self, key, value)

    def fields(self, version: str) -> TemplateFields:
        return TemplateFields(
            repo_owner=self.repo_owner,
            repo_name=self.repo_name,
            name=self.name,
            version=version,
            version_prefix=self.version_prefix,
        )

    def render(self, template: str, version: str) -> str:
        return render(template, self.fields(version))


def _call_hook(stage: str, hook: Callable, *args) -> None:
    try:
        hook(*args)
    except PluginError:
        raise
    except Exception as exc:
        raise HookError(f"{stage} failed: {exc}") from exc


def _under_bin_dir(rel: str, bin_dir: str) -> bool:
    if bin_dir in ("", "."):
        return True
    return os.path.normpath(rel).startswith(bin_dir + os.sep)


class SourceBuildPlugin(Plugin):
    """Plugin driven entirely by a :class:`SourceBuildConfig`.

    Args:
        config: The tool description.
        github: Version lister; a :class:`GitHubClient` by default.
        downloader: Download port; an :class:`HttpDownloader` by default.
    """

    def __init__(
        self,
        config: SourceBuildConfig,
        *,
        github: VersionLister | None = None,
        downloader: Downloader | None = None,
    ) -> None:
        self.config = config
        self.name = config.name
        self.github = github or GitHubClient()
        self.downloader = downloader or HttpDownloader()

    # -- versions ----------------------------------------------------------

    def list_all(self, ctx: Context) -> list[str]:
        cfg = self.config
        return list_github_versions(ctx, self.github, ListVersionsConfig(
            repo_owner=cfg.repo_owner,
            repo_name=cfg.repo_name,
            version_prefix=cfg.version_prefix,
            version_filter=cfg.version_filter,
            use_tags=cfg.use_tags,
        ))

    def latest_stable(self, ctx: Context, query: str = "") -> str:
        versions = self.list_all(ctx)
        if not versions:
            raise NoVersionsFoundError()
        return select_latest(
            versions, query,
            classifier=self.config.classifier,
            fail_on_empty_filter=self.config.fail_on_empty_filter,
        )

    # -- metadata ----------------------------------------------------------

    def list_bin_paths(self) -> str:
        return self.config.bin_dir

    def list_legacy_filenames(self) -> list[str]:
        return list(self.config.legacy_filenames)

    def help(self) -> PluginHelp:
        return self.config.help

    # -- install pipeline --------------------------------------------------

    def archive_path(self, work_dir: Path, version: str) -> Path:
        return Path(work_dir) / self.config.render(self.config.archive_name_template, version)

    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        """Fetch the source archive into *download_dir* ahead of :meth:`install`."""
        if self.config.skip_download:
            return
        download_dir = Path(download_dir)
        download_dir.mkdir(parents=True, exist_ok=True)
        self._download_source(ctx, version, download_dir, self.archive_path(download_dir, version))

    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        cfg = self.config
        if cfg.build is None:
            raise NoBuildStepConfiguredError()
        ctx.check()
        install_dir = Path(install_dir)

        if self._artifacts_present(install_dir):
            logger.debug("%s %s already installed in %s", cfg.name, version, install_dir)
            self._normalize_artifacts(install_dir)
            return

        try:
            install_dir.mkdir(parents=True, exist_ok=True)
            if cfg.create_bin_dir and cfg.bin_dir not in ("", "."):
                (install_dir / cfg.bin_dir).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PluginError(f"creating install directory: {exc}") from exc

        with contextlib.ExitStack() as stack:
            if download_dir:
                work_dir = Path(download_dir)
            else:
                work_dir = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="uniplug-src-")))
            try:
                work_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise PluginError(f"creating download directory: {exc}") from exc

            archive_path = self.archive_path(work_dir, version)
            source_dir = work_dir

            if not cfg.skip_download:
                self._download_source(ctx, version, work_dir, archive_path)
            if not cfg.skip_extract:
                source_dir = self._extract_source(version, work_dir, archive_path)

            ctx.check()
            if cfg.pre_build is not None:
                _call_hook("pre-build", cfg.pre_build, ctx, version, source_dir)
            ctx.check()
            _call_hook("build", cfg.build, ctx, version, source_dir, install_dir)
            if cfg.post_install is not None:
                _call_hook("post-install", cfg.post_install, ctx, version, install_dir)

        self._verify_artifacts(install_dir)

    def _artifacts_present(self, install_dir: Path) -> bool:
        artifacts = self.config.expected_artifacts
        return bool(artifacts) and all((install_dir / rel).exists() for rel in artifacts)

    def _normalize_artifacts(self, install_dir: Path) -> None:
        for rel in self.config.expected_artifacts:
            if _under_bin_dir(rel, self.config.bin_dir):
                try:
                    os.chmod(install_dir / rel, EXECUTABLE_MODE)
                except OSError as exc:
                    logger.warning("Could not mark %s executable: %s", rel, exc)

    def _verify_artifacts(self, install_dir: Path) -> None:
        for rel in self.config.expected_artifacts:
            if not (install_dir / rel).exists():
                raise ArtifactMissingError(rel)
        self._normalize_artifacts(install_dir)

    def _download_source(self, ctx: Context, version: str, work_dir: Path, archive_path: Path) -> None:
        cfg = self.config
        if archive_path.is_file() and archive_path.stat().st_size > cfg.min_archive_size:
            logger.info("Using cached %s %s source: %s", cfg.name, version, archive_path)
            return

        if cfg.source_url_func is not None:
            try:
                url = cfg.source_url_func(ctx, version)
            except PluginError:
                raise
            except Exception as exc:
                raise PluginError(f"resolving source URL: {exc}") from exc
        else:
            url = cfg.render(cfg.source_url_template, version)

        logger.info("Downloading %s %s source from %s", cfg.name, version, url)

        dest = archive_path
        base = os.path.basename(urlparse(url).path)
        if base not in ("", ".", "/"):
            dest = work_dir / base

        try:
            if cfg.download_file is not None:
                cfg.download_file(ctx, url, dest)
            else:
                self.downloader.download_file(ctx, url, dest)
        except (DownloadError, CancelledError):
            raise
        except (PluginError, OSError) as exc:
            raise DownloadError(url, f"downloading source ({exc})") from exc

        if dest != archive_path:
            try:
                if archive_path.is_dir():
                    shutil.rmtree(archive_path)
                dest.replace(archive_path)
            except OSError as exc:
                raise PluginError(f"finalizing downloaded archive: {exc}") from exc

    def _extract_source(self, version: str, work_dir: Path, archive_path: Path) -> Path:
        cfg = self.config
        if not archive_path.is_file():
            raise ArchiveMissingError(str(archive_path))

        src_root = work_dir / "src"
        shutil.rmtree(src_root, ignore_errors=True)
        src_root.mkdir(parents=True)

        try:
            archive.extract(cfg.archive_type, archive_path, src_root)
        except ArchiveError as exc:
            raise ArchiveError(f"extracting {cfg.archive_type}: {exc}") from exc

        candidate = src_root / cfg.render(cfg.extracted_dir_template, version)
        if cfg.auto_detect_extracted_dir:
            candidate = archive.first_subdirectory(src_root) or candidate
        if not candidate.exists():
            raise ExtractedDirMissingError(str(candidate))
        return candidate


def build_copy_tree(ctx: Context, version: str, source_dir: Path, install_dir: Path) -> None:
    """Build hook that copies the extracted tree into the install directory."""
    archive.copy_dir(source_dir, install_dir)


def build_move_tree(ctx: Context, version: str, source_dir: Path, install_dir: Path) -> None:
    """Build hook that moves the extracted tree's entries into the install directory."""
    archive.move_contents(source_dir, install_dir)

