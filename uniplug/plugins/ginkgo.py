"""Ginkgo, built from its GitHub tag archive with ``go build``."""

from __future__ import annotations

import shutil
from pathlib import Path

from uniplug.core.context import Context
from uniplug.core.download import Downloader
from uniplug.core.github import VersionLister
from uniplug.core.process import CommandRunner, SubprocessRunner
from uniplug.core.source_build import SourceBuildConfig, SourceBuildPlugin
from uniplug.core.types import PluginError, PluginHelp

HELP = PluginHelp(
    overview=(
        "Ginkgo - A BDD-style Go testing framework.\n"
        "Ginkgo is built from the official source archive using Go, which requires Go to be installed."
    ),
    deps="Requires Go to be installed and available in PATH.",
    config="No additional configuration required.",
    links="Homepage: https://onsi.github.io/ginkgo/\nSource: https://github.com/onsi/ginkgo",
)


def new_ginkgo_plugin(
    *,
    github: VersionLister | None = None,
    downloader: Downloader | None = None,
    runner: CommandRunner | None = None,
) -> SourceBuildPlugin:
    runner = runner or SubprocessRunner()

    def build(ctx: Context, version: str, source_dir: Path, install_dir: Path) -> None:
        go = shutil.which("go")
        if go is None:
            raise PluginError("go is required to install ginkgo but was not found in PATH")
        dest = install_dir / "bin" / "ginkgo"
        runner.run(ctx, [go, "build", "-o", str(dest), "./ginkgo"], cwd=source_dir)

    def post_install(ctx: Context, version: str, install_dir: Path) -> None:
        if not (install_dir / "bin" / "ginkgo").exists():
            raise PluginError(f"ginkgo binary not found after installation: {version}")

    config = SourceBuildConfig(
        name="ginkgo",
        repo_owner="onsi",
        repo_name="ginkgo",
        version_prefix="v",
        version_filter=r"^2\.",
        expected_artifacts=("bin/ginkgo",),
        help=HELP,
        build=build,
        post_install=post_install,
    )
    return SourceBuildPlugin(config, github=github, downloader=downloader)
