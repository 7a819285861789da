"""Tests for the Plugin base class defaults."""

from __future__ import annotations

import pytest

from uniplug.core.plugin import Plugin, read_legacy_version_file
from uniplug.core.types import PluginError, PluginHelp


class DummyPlugin(Plugin):
    name = "dummy"

    def list_all(self, ctx):
        return ["1.0.0"]

    def latest_stable(self, ctx, query=""):
        return "1.0.0"

    def download(self, ctx, version, download_dir):
        pass

    def install(self, ctx, version, download_dir, install_dir):
        pass


class TestDefaults:
    def test_metadata(self):
        plugin = DummyPlugin()
        assert plugin.list_bin_paths() == "bin"
        assert plugin.exec_env("/tmp/x") == {}
        assert plugin.list_legacy_filenames() == []
        assert plugin.help() == PluginHelp()
        assert repr(plugin) == "<DummyPlugin 'dummy'>"

    def test_uninstall(self, ctx, tmp_path):
        install = tmp_path / "install"
        (install / "bin").mkdir(parents=True)
        DummyPlugin().uninstall(ctx, install)
        assert not install.exists()

    def test_uninstall_missing_is_fine(self, ctx, tmp_path):
        DummyPlugin().uninstall(ctx, tmp_path / "nope")

    def test_abstract(self):
        with pytest.raises(TypeError):
            Plugin()


class TestLegacyFile:
    def test_trimmed(self, tmp_path):
        f = tmp_path / ".tool-version"
        f.write_text("  1.2.3\n\n")
        assert read_legacy_version_file(f) == "1.2.3"
        assert DummyPlugin().parse_legacy_file(f) == "1.2.3"

    def test_missing(self, tmp_path):
        with pytest.raises(PluginError, match="legacy version file"):
            read_legacy_version_file(tmp_path / "missing")
