"""CPython, compiled with python-build from a pyenv checkout."""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path

from uniplug.core.context import Context
from uniplug.core.download import Downloader, HttpDownloader
from uniplug.core.plugin import Plugin
from uniplug.core.process import CommandRunner, SubprocessRunner, ensure_git_repo
from uniplug.core.source_build import EXECUTABLE_MODE, SourceBuildConfig, SourceBuildPlugin
from uniplug.core.types import CommandError, NoVersionsFoundError, PluginError, PluginHelp
from uniplug.core.versions import (
    CPYTHON_PRERELEASE_PATTERN,
    DEFAULT_CLASSIFIER,
    select_latest,
    sort_versions,
    stable_versions,
)

logger = logging.getLogger(__name__)

PYENV_GIT_URL = "https://github.com/pyenv/pyenv.git"
FTP_URL = "https://www.python.org/ftp/python/"

CLASSIFIER = DEFAULT_CLASSIFIER.extend(patterns=[CPYTHON_PRERELEASE_PATTERN])

_FTP_VERSION_RE = re.compile(r'href="(\d+\.\d+\.\d+)/"')
_RELEASE_RE = re.compile(r"^\d+\.\d+\.\d+$")

HELP = PluginHelp(
    overview=(
        "Python - A programming language that lets you work quickly and integrate systems effectively.\n"
        "This plugin uses python-build (from pyenv) to compile Python from source."
    ),
    deps=(
        "Build dependencies (Debian/Ubuntu):\n"
        "  build-essential libssl-dev zlib1g-dev libbz2-dev libreadline-dev\n"
        "  libsqlite3-dev curl libncursesw5-dev xz-utils tk-dev libxml2-dev\n"
        "  libxmlsec1-dev libffi-dev liblzma-dev"
    ),
    config=(
        "Environment variables:\n"
        "  ASDF_PYTHON_DEFAULT_PACKAGES_FILE - Path to default pip packages file (default: ~/.default-python-packages)\n"
        "  ASDF_PYTHON_PATCH_URL - URL to patch file to apply during build\n"
        "  ASDF_PYTHON_PATCHES_DIRECTORY - Directory containing patch files"
    ),
    links=(
        "Homepage: https://www.python.org/\n"
        "Documentation: https://docs.python.org/\n"
        "Downloads: https://www.python.org/downloads/\n"
        "Source: https://github.com/python/cpython"
    ),
)


def parse_ftp_listing(html: str) -> list[str]:
    """Extract the unique ``X.Y.Z`` directory names of the python.org FTP index."""
    return sort_versions(dict.fromkeys(_FTP_VERSION_RE.findall(html)))


def is_release(version: str) -> bool:
    return bool(_RELEASE_RE.match(version)) and not CLASSIFIER.is_prerelease(version)


class PythonPlugin(Plugin):
    name = "python"

    def __init__(
        self,
        *,
        downloader: Downloader | None = None,
        runner: CommandRunner | None = None,
        pyenv_dir: Path | None = None,
        ftp_url: str = FTP_URL,
        home: Path | None = None,
    ) -> None:
        self.downloader = downloader or HttpDownloader()
        self.runner = runner or SubprocessRunner()
        self.home = home
        self.pyenv_dir = Path(pyenv_dir) if pyenv_dir else (home or Path.home()) / ".asdf-python-build"
        self.ftp_url = ftp_url
        self.source_build = SourceBuildPlugin(
            SourceBuildConfig(
                name="python",
                repo_owner="python",
                repo_name="cpython",
                skip_download=True,
                skip_extract=True,
                expected_artifacts=("bin/python",),
                legacy_filenames=(".python-version",),
                fail_on_empty_filter=False,
                classifier=CLASSIFIER,
                help=HELP,
                pre_build=self._pre_build,
                build=self._build,
                post_install=self._post_install,
            ),
            downloader=self.downloader,
        )

    @property
    def python_build(self) -> Path:
        return self.pyenv_dir / "plugins" / "python-build" / "bin" / "python-build"

    def ensure_python_build(self, ctx: Context) -> None:
        ensure_git_repo(
            ctx, self.runner, self.pyenv_dir, PYENV_GIT_URL,
            install_msg="Installing python-build from pyenv...",
            success_msg="python-build installed successfully",
        )

    # -- versions ----------------------------------------------------------

    def list_all(self, ctx: Context) -> list[str]:
        """List every definition python-build knows, releases only when any exist."""
        self.ensure_python_build(ctx)
        output = self.runner.run(ctx, [str(self.python_build), "--definitions"])
        versions = sort_versions(output.split())
        releases = [v for v in versions if is_release(v)]
        return releases or versions

    def list_all_from_ftp(self, ctx: Context) -> list[str]:
        return parse_ftp_listing(self.downloader.download_string(ctx, self.ftp_url))

    def latest_stable(self, ctx: Context, query: str = "") -> str:
        versions = self.list_all_from_ftp(ctx)
        if not versions:
            raise NoVersionsFoundError()
        versions = stable_versions(versions, CLASSIFIER) or versions
        return select_latest(versions, query, classifier=CLASSIFIER, fail_on_empty_filter=False)

    # -- install -----------------------------------------------------------

    def download(self, ctx: Context, version: str, download_dir: Path) -> None:
        # python-build fetches its own sources
        self.ensure_python_build(ctx)

    def install(self, ctx: Context, version: str, download_dir: Path | None, install_dir: Path) -> None:
        logger.info("Installing Python %s to %s", version, install_dir)
        self.source_build.install(ctx, version, None, install_dir)
        logger.info("Python %s installed successfully", version)

    def _pre_build(self, ctx: Context, version: str, source_dir: Path) -> None:
        if not os.environ.get("ASDF_PYTHON_SKIP_SYSDEPS_CHECK"):
            for tool in ("make", "gcc"):
                if shutil.which(tool) is None:
                    logger.warning("%s not found in PATH; building Python %s will likely fail", tool, version)
        self.ensure_python_build(ctx)

    def _build(self, ctx: Context, version: str, source_dir: Path, install_dir: Path) -> None:
        cmd = [str(self.python_build), version, str(install_dir)]
        patch = None

        patch_url = os.environ.get("ASDF_PYTHON_PATCH_URL")
        patch_dir = os.environ.get("ASDF_PYTHON_PATCHES_DIRECTORY")
        if patch_url:
            logger.info("Applying patch from %s", patch_url)
            patch = self.downloader.download_string(ctx, patch_url)
            cmd = [str(self.python_build), "--patch", version, str(install_dir)]
        elif patch_dir:
            patch_file = Path(patch_dir) / f"{version}.patch"
            if patch_file.is_file():
                logger.info("Applying patch from %s", patch_file)
                patch = patch_file.read_text(encoding="utf-8")
                cmd.append("-p")

        try:
            self.runner.run(ctx, cmd, input=patch)
        except CommandError as exc:
            raise PluginError(f"installing Python {version}: {exc}") from exc

    def _post_install(self, ctx: Context, version: str, install_dir: Path) -> None:
        self.install_default_packages(ctx, install_dir)
        bin_dir = install_dir / "bin"
        if not bin_dir.is_dir():
            return
        for entry in bin_dir.iterdir():
            if entry.is_file():
                try:
                    os.chmod(entry, EXECUTABLE_MODE)
                except OSError as exc:
                    logger.warning("Could not mark %s executable: %s", entry, exc)

    def default_packages_file(self) -> Path:
        configured = os.environ.get("ASDF_PYTHON_DEFAULT_PACKAGES_FILE")
        if configured:
            return Path(configured)
        return (self.home or Path.home()) / ".default-python-packages"

    def install_default_packages(self, ctx: Context, install_dir: Path) -> None:
        """``pip install -U -r`` the default-packages file; failures are only logged."""
        packages_file = self.default_packages_file()
        if not packages_file.is_file():
            return
        logger.info("Installing default Python packages...")
        bin_dir = install_dir / "bin"
        try:
            self.runner.run(
                ctx, [str(bin_dir / "pip"), "install", "-U", "-r", str(packages_file)],
                env={"PATH": f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"},
            )
        except CommandError as exc:
            logger.warning("Failed to install default packages: %s", exc)

    # -- metadata ----------------------------------------------------------

    def list_legacy_filenames(self) -> list[str]:
        return [".python-version"]

    def help(self) -> PluginHelp:
        return HELP
