"""Environment settings and ``plugins.yaml`` declarations.

``plugins.yaml`` declares data-only plugins for either engine::

    binaries:
      buf:
        repo: bufbuild/buf
        file_name_template: "buf-{{.Platform}}-{{.Arch}}"
        os_map: {linux: Linux, darwin: Darwin}
        arch_map: {amd64: x86_64, arm64: aarch64}
    source_builds:
      hello:
        repo: example/hello
        build_script: scripts/build-hello.sh
        expected_artifacts: [bin/hello]

Build scripts run as ``bash <script> <source_dir> <install_dir>`` and
pre-build scripts as ``bash <script> <source_dir>``, relative to the
directory holding ``plugins.yaml``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from uniplug.core.binary import DEFAULT_DOWNLOAD_URL_TEMPLATE, DEFAULT_FILE_NAME_TEMPLATE, BinaryPluginConfig
from uniplug.core.context import Context
from uniplug.core.process import CommandRunner, SubprocessRunner
from uniplug.core.source_build import SourceBuildConfig
from uniplug.core.types import ConfigError, PluginHelp

logger = logging.getLogger(__name__)

DEFAULT_PLUGINS_FILE = "plugins.yaml"


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

@dataclass
class Settings:
    """Process-wide knobs read from the environment."""

    data_dir: Path
    github_token: str = ""

    def install_path(self, plugin: str, version: str) -> Path:
        """Return ``<data_dir>/installs/<plugin>/<version>``."""
        return self.data_dir / "installs" / plugin / version

    def download_path(self, plugin: str, version: str) -> Path:
        return self.data_dir / "downloads" / plugin / version

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        data_dir = env.get("ASDF_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else Path.home() / ".asdf",
            github_token=env.get("GITHUB_TOKEN") or env.get("GITHUB_API_TOKEN") or "",
        )


# ---------------------------------------------------------------------------
# Script hooks
# ---------------------------------------------------------------------------

class ScriptHook:
    """Build-pipeline hook that runs a bash script with the hook's paths."""

    def __init__(self, script: Path, runner: CommandRunner | None = None) -> None:
        self.script = Path(script)
        self.runner = runner or SubprocessRunner()

    def __call__(self, ctx: Context, version: str, *paths: Path) -> None:
        if not self.script.is_file():
            raise ConfigError(f"Script not found: {self.script}")
        self.runner.run(
            ctx,
            ["bash", str(self.script), *(str(p) for p in paths)],
            cwd=Path(paths[0]),
            env={"ASDF_INSTALL_VERSION": version},
        )

    def __repr__(self) -> str:
        return f"ScriptHook({str(self.script)!r})"


# ---------------------------------------------------------------------------
# Declarations
# ---------------------------------------------------------------------------

@dataclass
class SourceBuildDecl:
    """A source-build plugin as written in ``plugins.yaml``."""

    name: str
    repo_owner: str
    repo_name: str
    build_script: str
    pre_build_script: str | None = None
    version_prefix: str = "v"
    version_filter: str = ""
    use_tags: bool = True
    source_url_template: str = ""
    archive_type: str = "tar.gz"
    archive_name_template: str = ""
    extracted_dir_template: str = ""
    bin_dir: str = "bin"
    create_bin_dir: bool = True
    min_archive_size: int = 1024
    expected_artifacts: list[str] = field(default_factory=list)
    legacy_filenames: list[str] = field(default_factory=list)
    auto_detect_extracted_dir: bool = False
    fail_on_empty_filter: bool = True

    def to_config(self, base_dir: Path, runner: CommandRunner | None = None) -> SourceBuildConfig:
        """Build the engine config, binding scripts relative to *base_dir*."""
        pre_build = None
        if self.pre_build_script:
            pre_build = ScriptHook(base_dir / self.pre_build_script, runner)
        return SourceBuildConfig(
            name=self.name,
            repo_owner=self.repo_owner,
            repo_name=self.repo_name,
            version_prefix=self.version_prefix,
            version_filter=self.version_filter,
            use_tags=self.use_tags,
            source_url_template=self.source_url_template,
            archive_type=self.archive_type,
            archive_name_template=self.archive_name_template,
            extracted_dir_template=self.extracted_dir_template,
            bin_dir=self.bin_dir,
            create_bin_dir=self.create_bin_dir,
            min_archive_size=self.min_archive_size,
            expected_artifacts=tuple(self.expected_artifacts),
            legacy_filenames=tuple(self.legacy_filenames),
            auto_detect_extracted_dir=self.auto_detect_extracted_dir,
            fail_on_empty_filter=self.fail_on_empty_filter,
            help=PluginHelp(overview=f"{self.name} - built from https://github.com/{self.repo_owner}/{self.repo_name}"),
            pre_build=pre_build,
            build=ScriptHook(base_dir / self.build_script, runner),
        )


def _split_repo(name: str, raw: dict) -> tuple[str, str]:
    if not isinstance(raw, dict):
        raise ConfigError(f"Plugin '{name}': expected a mapping, got {type(raw).__name__}")
    repo = raw.get("repo")
    if not isinstance(repo, str) or repo.count("/") != 1 or not all(repo.split("/")):
        raise ConfigError(f"Plugin '{name}': 'repo' must be 'owner/name', got {repo!r}")
    owner, repo_name = repo.split("/")
    return owner, repo_name


def _parse_binary(name: str, raw: dict) -> BinaryPluginConfig:
    owner, repo_name = _split_repo(name, raw)
    kwargs: dict = {}
    if "os_map" in raw:
        kwargs["os_map"] = dict(raw["os_map"])
    if "arch_map" in raw:
        kwargs["arch_map"] = dict(raw["arch_map"])
    help_raw = raw.get("help", {}) or {}
    return BinaryPluginConfig(
        name=name,
        repo_owner=owner,
        repo_name=repo_name,
        binary_name=str(raw.get("binary_name", "")),
        version_prefix=str(raw.get("version_prefix", "v")),
        version_filter=str(raw.get("version_filter", "")),
        use_releases=bool(raw.get("use_releases", True)),
        file_name_template=str(raw.get("file_name_template", "")),
        download_url_template=str(raw.get("download_url_template", "")),
        archive_type=str(raw.get("archive_type", "")),
        help_description=str(help_raw.get("description", "")),
        help_link=str(help_raw.get("link", "")),
        fail_on_empty_filter=bool(raw.get("fail_on_empty_filter", True)),
        **kwargs,
    )


def _parse_source_build(name: str, raw: dict) -> SourceBuildDecl:
    owner, repo_name = _split_repo(name, raw)
    build_script = raw.get("build_script")
    if not build_script:
        raise ConfigError(f"Plugin '{name}': source builds need a 'build_script'")
    return SourceBuildDecl(
        name=name,
        repo_owner=owner,
        repo_name=repo_name,
        build_script=str(build_script),
        pre_build_script=raw.get("pre_build_script"),
        version_prefix=str(raw.get("version_prefix", "v")),
        version_filter=str(raw.get("version_filter", "")),
        use_tags=bool(raw.get("use_tags", True)),
        source_url_template=str(raw.get("source_url_template", "")),
        archive_type=str(raw.get("archive_type", "tar.gz")),
        archive_name_template=str(raw.get("archive_name_template", "")),
        extracted_dir_template=str(raw.get("extracted_dir_template", "")),
        bin_dir=str(raw.get("bin_dir", "bin")),
        create_bin_dir=bool(raw.get("create_bin_dir", True)),
        min_archive_size=int(raw.get("min_archive_size", 1024)),
        expected_artifacts=list(raw.get("expected_artifacts", [])),
        legacy_filenames=list(raw.get("legacy_filenames", [])),
        auto_detect_extracted_dir=bool(raw.get("auto_detect_extracted_dir", False)),
        fail_on_empty_filter=bool(raw.get("fail_on_empty_filter", True)),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

class PluginsConfig:
    """Parsed representation of ``plugins.yaml``.

    Attributes:
        binaries: Binary-release plugin configs keyed by name.
        source_builds: Source-build declarations keyed by name.
        base_dir: Directory scripts are resolved against.
    """

    def __init__(
        self,
        binaries: dict[str, BinaryPluginConfig] | None = None,
        source_builds: dict[str, SourceBuildDecl] | None = None,
        base_dir: Path | None = None,
    ) -> None:
        self.binaries: dict[str, BinaryPluginConfig] = binaries or {}
        self.source_builds: dict[str, SourceBuildDecl] = source_builds or {}
        self.base_dir: Path = base_dir or Path.cwd()

    def names(self) -> list[str]:
        return sorted([*self.binaries, *self.source_builds])

    def to_dict(self) -> dict:
        """Serialise back to a plain dict (for writing plugins.yaml)."""
        data: dict = {}
        if self.binaries:
            data["binaries"] = {name: _binary_dict(cfg) for name, cfg in self.binaries.items()}
        if self.source_builds:
            data["source_builds"] = {name: _source_build_dict(d) for name, d in self.source_builds.items()}
        return data


def _binary_dict(cfg: BinaryPluginConfig) -> dict:
    return {
        "repo": f"{cfg.repo_owner}/{cfg.repo_name}",
        **({"binary_name": cfg.binary_name} if cfg.binary_name != cfg.name else {}),
        **({"version_prefix": cfg.version_prefix} if cfg.version_prefix != "v" else {}),
        **({"version_filter": cfg.version_filter} if cfg.version_filter else {}),
        **({"use_releases": False} if not cfg.use_releases else {}),
        **({"file_name_template": cfg.file_name_template}
           if cfg.file_name_template != DEFAULT_FILE_NAME_TEMPLATE else {}),
        **({"download_url_template": cfg.download_url_template}
           if cfg.download_url_template != DEFAULT_DOWNLOAD_URL_TEMPLATE else {}),
        **({"archive_type": cfg.archive_type} if cfg.archive_type else {}),
        "os_map": dict(cfg.os_map),
        "arch_map": dict(cfg.arch_map),
        **({"help": {"description": cfg.help_description, "link": cfg.help_link}}
           if cfg.help_description or cfg.help_link else {}),
        **({"fail_on_empty_filter": False} if not cfg.fail_on_empty_filter else {}),
    }


def _source_build_dict(decl: SourceBuildDecl) -> dict:
    defaults = SourceBuildDecl(name="", repo_owner="", repo_name="", build_script="")
    data: dict = {"repo": f"{decl.repo_owner}/{decl.repo_name}", "build_script": decl.build_script}
    for key in (
        "pre_build_script", "version_prefix", "version_filter", "use_tags",
        "source_url_template", "archive_type", "archive_name_template",
        "extracted_dir_template", "bin_dir", "create_bin_dir", "min_archive_size",
        "expected_artifacts", "legacy_filenames", "auto_detect_extracted_dir",
        "fail_on_empty_filter",
    ):
        value = getattr(decl, key)
        if value != getattr(defaults, key):
            data[key] = value
    return data


def load_plugins_config(path: str | Path = DEFAULT_PLUGINS_FILE) -> PluginsConfig:
    """Load and parse ``plugins.yaml``.

    Raises:
        ConfigError: If the file is missing or malformed.
    """
    p = Path(path)
    if not p.exists():
        raise ConfigError(f"Configuration file not found: {p}")

    try:
        with open(p, encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {p}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {p}, got {type(data).__name__}")

    unknown = set(data) - {"binaries", "source_builds"}
    if unknown:
        raise ConfigError(f"Unknown sections in {p}: {', '.join(sorted(unknown))}")

    binaries = {
        name: _parse_binary(name, raw or {})
        for name, raw in (data.get("binaries") or {}).items()
    }
    source_builds = {
        name: _parse_source_build(name, raw or {})
        for name, raw in (data.get("source_builds") or {}).items()
    }
    clash = set(binaries) & set(source_builds)
    if clash:
        raise ConfigError(f"Plugins declared twice in {p}: {', '.join(sorted(clash))}")

    logger.debug("Loaded %d plugin declarations from %s", len(binaries) + len(source_builds), p)
    return PluginsConfig(binaries=binaries, source_builds=source_builds, base_dir=p.parent.resolve())


def save_plugins_config(cfg: PluginsConfig, path: str | Path = DEFAULT_PLUGINS_FILE) -> None:
    """Write the config back to ``plugins.yaml``."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", encoding="utf-8") as fh:
        yaml.dump(cfg.to_dict(), fh, default_flow_style=False, allow_unicode=True, sort_keys=False)
