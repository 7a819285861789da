"""Tests for the Node.js plugin."""

from __future__ import annotations

import hashlib
import json
import os

import pytest

from uniplug.core.channels import NamedChannel, NoChannel, UnnamedChannel
from uniplug.core.types import ChannelNotFoundError, ChecksumMismatchError, DownloadError, PluginError
from uniplug.plugins.nodejs import NodeClassifier, NodejsPlugin, node_arch, parse_index, read_default_packages

INDEX_URL = "https://nodejs.test/dist/index.json"
DIST_URL = "https://nodejs.test/dist/"

# newest first, as served by nodejs.org
INDEX = [
    {"version": "v23.1.0", "lts": False},
    {"version": "v22.11.0", "lts": "Jod"},
    {"version": "v21.7.3", "lts": False},
    {"version": "v20.18.0", "lts": "Iron"},
    {"version": "v20.9.0", "lts": "Iron"},
    {"version": "v19.9.0", "lts": False},
    {"version": "v18.20.4", "lts": "Hydrogen"},
]

TARBALL = b"node-tarball" * 200
FILE_NAME = "node-v22.11.0-linux-x64.tar.gz"
TARBALL_URL = f"{DIST_URL}v22.11.0/{FILE_NAME}"
SHASUMS_URL = f"{DIST_URL}v22.11.0/SHASUMS256.txt"


@pytest.fixture()
def node(server, runner, tmp_path) -> NodejsPlugin:
    server.register_download(INDEX_URL, json.dumps(INDEX))
    return NodejsPlugin(
        downloader=server.downloader(),
        runner=runner,
        index_url=INDEX_URL,
        dist_url=DIST_URL,
        home=tmp_path / "home",
    )


def _node_tarball(archives, version: str = "22.11.0"):
    root = f"node-v{version}-linux-x64"
    return archives.tar_gz(
        "node.tar.gz",
        {
            f"{root}/bin/node": "#!node",
            f"{root}/bin/npm": "#!npm",
            f"{root}/bin/npx": "#!npx",
            f"{root}/include/node/node.h": "",
        },
    )


class TestIndex:
    def test_parse_index(self):
        entries = parse_index(INDEX)
        assert entries[0].version == "23.1.0"
        assert entries[0].channel == NoChannel()
        assert entries[1].channel == NamedChannel("Jod")

    def test_parse_index_unnamed_lts(self):
        assert parse_index([{"version": "v8.0.0", "lts": True}])[0].channel == UnnamedChannel()

    def test_parse_index_skips_junk(self):
        assert [e.version for e in parse_index([{"lts": "x"}, "v1", {"version": "v1.0.0"}])] == ["1.0.0"]

    def test_parse_index_not_a_list(self):
        with pytest.raises(PluginError, match="JSON array"):
            parse_index({"version": "v1.0.0"})

    def test_parse_index_bad_lts(self):
        with pytest.raises(PluginError):
            parse_index([{"version": "v1.0.0", "lts": 3}])


class TestClassifier:
    def test_odd_major_is_prerelease(self):
        classifier = NodeClassifier()
        assert classifier.is_prerelease("23.1.0")
        assert not classifier.is_prerelease("22.11.0")

    def test_lts_overrides_odd_major(self):
        assert not NodeClassifier(frozenset({"21.7.3"})).is_prerelease("21.7.3")

    def test_non_numeric_major(self):
        assert NodeClassifier().is_prerelease("nightly")


class TestVersions:
    def test_index_not_json(self, server, runner, ctx):
        server.register_download("https://nodejs.test/broken.json", "<html>")
        node = NodejsPlugin(downloader=server.downloader(), runner=runner, index_url="https://nodejs.test/broken.json")
        with pytest.raises(DownloadError, match="malformed JSON"):
            node.list_all(ctx)

    def test_list_all_sorted(self, node, ctx):
        assert node.list_all(ctx) == ["18.20.4", "19.9.0", "20.9.0", "20.18.0", "21.7.3", "22.11.0", "23.1.0"]

    def test_latest_stable_skips_odd_majors(self, node, ctx):
        assert node.latest_stable(ctx) == "22.11.0"

    def test_latest_stable_prefix(self, node, ctx):
        assert node.latest_stable(ctx, "20") == "20.18.0"

    def test_latest_stable_odd_prefix_falls_back_to_prerelease(self, node, ctx):
        assert node.latest_stable(ctx, "21") == "21.7.3"

    @pytest.mark.parametrize("alias", ["lts", "lts/*", "LTS"])
    def test_lts_alias(self, node, ctx, alias):
        assert node.latest_stable(ctx, alias) == "22.11.0"

    def test_lts_codename(self, node, ctx):
        assert node.latest_stable(ctx, "lts/iron") == "20.18.0"

    def test_unknown_codename(self, node, ctx):
        with pytest.raises(ChannelNotFoundError, match="argon"):
            node.latest_stable(ctx, "lts/argon")

    def test_lts_codenames(self, node, ctx):
        assert node.lts_codenames(ctx) == {"Jod": "22.11.0", "Iron": "20.18.0", "Hydrogen": "18.20.4"}


@pytest.mark.usefixtures("linux_amd64")
class TestDownload:
    def test_arch(self):
        assert node_arch() == "x64"

    def test_verified(self, node, server, ctx, tmp_path):
        digest = hashlib.sha256(TARBALL).hexdigest()
        server.register_download(TARBALL_URL, TARBALL)
        server.register_download(SHASUMS_URL, f"{'0' * 64}  node-v22.11.0.tar.gz\n{digest}  {FILE_NAME}\n")

        node.download(ctx, "22.11.0", tmp_path / "dl")

        assert (tmp_path / "dl" / "node.tar.gz").read_bytes() == TARBALL

    def test_checksum_mismatch(self, node, server, ctx, tmp_path):
        server.register_download(TARBALL_URL, TARBALL)
        server.register_download(SHASUMS_URL, f"{'0' * 64}  {FILE_NAME}\n")
        with pytest.raises(ChecksumMismatchError):
            node.download(ctx, "22.11.0", tmp_path)

    def test_checksum_missing(self, node, server, ctx, tmp_path):
        server.register_download(TARBALL_URL, TARBALL)
        server.register_download(SHASUMS_URL, f"{'0' * 64}  node-v22.11.0-darwin-arm64.tar.gz\n")
        with pytest.raises(PluginError, match="checksum not found"):
            node.download(ctx, "22.11.0", tmp_path)

    def test_shasums_unavailable_is_not_fatal(self, node, server, ctx, tmp_path, caplog):
        server.register_download(TARBALL_URL, TARBALL)
        node.download(ctx, "22.11.0", tmp_path)
        assert (tmp_path / "node.tar.gz").exists()
        assert "Could not download checksums" in caplog.text


class TestInstall:
    def test_install(self, node, ctx, archives, tmp_path):
        _node_tarball(archives)
        install = tmp_path / "install"

        node.install(ctx, "22.11.0", archives.root, install)

        for name in ("node", "npm", "npx"):
            assert os.access(install / "bin" / name, os.X_OK)
        assert (install / "include" / "node" / "node.h").exists()
        assert not (archives.root / "src").exists()

    def test_install_downloads_when_missing(self, node, server, ctx, archives, tmp_path, linux_amd64):
        tarball = _node_tarball(archives).read_bytes()
        server.register_download(TARBALL_URL, tarball)
        download = tmp_path / "dl"

        node.install(ctx, "22.11.0", download, tmp_path / "install")

        assert (tmp_path / "install" / "bin" / "node").exists()
        assert str(server.requests[0].url) == TARBALL_URL

    def test_reinstall_with_empty_download_dir(self, node, server, runner, ctx, tmp_path):
        install = tmp_path / "install"
        (install / "bin").mkdir(parents=True)
        for name in ("node", "npm", "npx"):
            (install / "bin" / name).write_text(f"#!{name}")
        download = tmp_path / "dl"
        download.mkdir()

        node.install(ctx, "22.11.0", download, install)

        assert server.requests == []
        assert runner.calls == []
        assert (install / "bin" / "node").read_text() == "#!node"

    def test_install_requires_download_dir(self, node, ctx, tmp_path):
        with pytest.raises(PluginError, match="download directory"):
            node.install(ctx, "22.11.0", None, tmp_path / "install")


class TestDefaultPackages:
    def test_read_default_packages(self, tmp_path):
        path = tmp_path / "pkgs"
        path.write_text("# tools\ntypescript\n\n  yarn  \n")
        assert read_default_packages(path) == ["typescript", "yarn"]
        assert read_default_packages(tmp_path / "missing") == []

    def test_installs_in_one_call(self, node, runner, ctx, tmp_path):
        node.home.mkdir()
        (node.home / ".default-npm-packages").write_text("typescript\neslint prettier\n")
        install = tmp_path / "install"

        node.install_default_packages(ctx, install)

        cmd, kwargs = runner.calls[0]
        assert cmd == [str(install / "bin" / "npm"), "install", "-g", "typescript", "eslint", "prettier"]
        assert kwargs["env"]["NODE"] == str(install / "bin" / "node")
        assert kwargs["env"]["PATH"].startswith(str(install / "bin"))

    def test_flagged_lines_run_separately(self, node, runner, ctx, tmp_path, monkeypatch):
        pkgs = tmp_path / "pkgs"
        pkgs.write_text("pnpm --ignore-scripts\nyarn\n")
        monkeypatch.setenv("ASDF_NPM_DEFAULT_PACKAGES_FILE", str(pkgs))

        node.install_default_packages(ctx, tmp_path)

        assert [cmd[3:] for cmd in runner.commands()] == [["pnpm", "--ignore-scripts"], ["yarn"]]

    def test_failure_is_logged(self, node, make_runner, ctx, tmp_path, monkeypatch, caplog):
        pkgs = tmp_path / "pkgs"
        pkgs.write_text("yarn\n")
        monkeypatch.setenv("ASDF_NPM_DEFAULT_PACKAGES_FILE", str(pkgs))
        node.runner = make_runner(fail={"npm"})

        node.install_default_packages(ctx, tmp_path)

        assert "Failed to install packages" in caplog.text

    def test_no_file_runs_nothing(self, node, runner, ctx, tmp_path):
        node.install_default_packages(ctx, tmp_path)
        assert runner.calls == []


class TestCorepack:
    def test_enabled_after_install(self, node, runner, ctx, archives, tmp_path, monkeypatch):
        monkeypatch.setenv("ASDF_NODEJS_AUTO_ENABLE_COREPACK", "1")
        root = "node-v22.11.0-linux-x64"
        archives.tar_gz(
            "node.tar.gz",
            {f"{root}/bin/{name}": name for name in ("node", "npm", "npx", "corepack")},
        )
        install = tmp_path / "install"

        node.install(ctx, "22.11.0", archives.root, install)

        assert runner.commands() == [[str(install / "bin" / "corepack"), "enable"]]

    def test_skipped_without_binary(self, node, runner, ctx, tmp_path):
        node.enable_corepack(ctx, tmp_path)
        assert runner.calls == []


class TestLegacyFiles:
    def test_filenames(self, node):
        assert node.list_legacy_filenames() == [".nvmrc", ".node-version"]

    @pytest.mark.parametrize(
        ("content", "expected"),
        [("v20.11.0\n", "20.11.0"), ("18", "18"), ("lts/iron", "lts/iron"), ("  lts/*  ", "lts/*")],
    )
    def test_parse(self, node, tmp_path, content, expected):
        path = tmp_path / ".nvmrc"
        path.write_text(content)
        assert node.parse_legacy_file(path) == expected

    def test_unreadable(self, node, tmp_path):
        with pytest.raises(PluginError):
            node.parse_legacy_file(tmp_path / ".nvmrc")
