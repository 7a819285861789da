"""Tools installed straight from pre-built release binaries."""

from __future__ import annotations

from uniplug.core.binary import BinaryPluginConfig

SEMVER_FILTER = r"^\d+\.\d+\.\d+$"

BUF = BinaryPluginConfig(
    name="buf",
    repo_owner="bufbuild",
    repo_name="buf",
    binary_name="buf",
    file_name_template="buf-{{.Platform}}-{{.Arch}}",
    archive_type="none",
    version_filter=SEMVER_FILTER,
    os_map={"linux": "Linux", "darwin": "Darwin"},
    arch_map={"amd64": "x86_64", "arm64": "aarch64"},
    help_description="A new way of working with Protocol Buffers",
    help_link="https://buf.build/",
)

CMAKE = BinaryPluginConfig(
    name="cmake",
    repo_owner="Kitware",
    repo_name="CMake",
    binary_name="cmake",
    file_name_template="cmake-{{.Version}}-{{.Platform}}-{{.Arch}}.tar.gz",
    archive_type="tar.gz",
    version_filter=SEMVER_FILTER,
    arch_map={"amd64": "x86_64", "arm64": "aarch64"},
    help_description="Build system generator",
    help_link="https://cmake.org/",
)

JQ = BinaryPluginConfig(
    name="jq",
    repo_owner="jqlang",
    repo_name="jq",
    binary_name="jq",
    file_name_template="jq-{{.Platform}}{{.Arch}}",
    download_url_template=(
        "https://github.com/{{.RepoOwner}}/{{.RepoName}}/releases/download/jq-{{.Version}}/{{.FileName}}"
    ),
    version_prefix="jq-",
    version_filter=r"^[0-9]+\.[0-9]+(\.[0-9]+)?$",
    archive_type="none",
    os_map={"linux": "linux", "darwin": "osx-"},
    arch_map={"amd64": "64", "arm64": "arm64"},
    help_description="Command-line JSON processor",
    help_link="https://github.com/jqlang/jq",
)

KUBECTL = BinaryPluginConfig(
    name="kubectl",
    repo_owner="kubernetes",
    repo_name="kubernetes",
    binary_name="kubectl",
    file_name_template="kubectl-{{.Platform}}-{{.Arch}}",
    download_url_template="https://dl.k8s.io/release/v{{.Version}}/bin/{{.Platform}}/{{.Arch}}/kubectl",
    version_filter=r"^[0-9]+\.[0-9]+\.[0-9]+$",
    help_description="Kubernetes command-line tool",
    help_link="https://kubernetes.io/docs/reference/kubectl/",
)

ALL = (BUF, CMAKE, JQ, KUBECTL)
