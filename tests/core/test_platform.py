"""Tests for core.platform."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from uniplug.core.platform import get_arch, get_platform
from uniplug.core.types import ArchNotSupportedError, PlatformNotSupportedError


class TestGetPlatform:
    @patch("platform.system", return_value="Linux")
    def test_linux(self, _mock):
        assert get_platform() == "linux"

    @patch("platform.system", return_value="Darwin")
    def test_darwin(self, _mock):
        assert get_platform() == "darwin"

    @patch("platform.system", return_value="Windows")
    def test_unsupported(self, _mock):
        with pytest.raises(PlatformNotSupportedError, match="windows"):
            get_platform()


class TestGetArch:
    @pytest.mark.parametrize("machine,expected", [
        ("x86_64", "amd64"),
        ("AMD64", "amd64"),
        ("aarch64", "arm64"),
        ("arm64", "arm64"),
        ("i686", "386"),
        ("armv7l", "armv6l"),
    ])
    def test_aliases(self, monkeypatch, machine, expected):
        monkeypatch.delenv("ASDF_OVERWRITE_ARCH", raising=False)
        with patch("platform.machine", return_value=machine):
            assert get_arch() == expected

    def test_override(self, monkeypatch):
        monkeypatch.setenv("ASDF_OVERWRITE_ARCH", "arm64")
        with patch("platform.machine", return_value="x86_64"):
            assert get_arch() == "arm64"

    def test_unsupported(self, monkeypatch):
        monkeypatch.delenv("ASDF_OVERWRITE_ARCH", raising=False)
        with patch("platform.machine", return_value="sparc"):
            with pytest.raises(ArchNotSupportedError, match="sparc"):
                get_arch()
