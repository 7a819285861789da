"""Host operating system and CPU architecture detection."""

from __future__ import annotations

import os
import platform as _platform

from uniplug.core.types import ArchNotSupportedError, PlatformNotSupportedError

SUPPORTED_PLATFORMS = ("linux", "darwin", "freebsd")

# Normalised to Go-style download names.
_ARCH_ALIASES = {
    "amd64": "amd64",
    "x86_64": "amd64",
    "386": "386",
    "i386": "386",
    "i686": "386",
    "arm": "armv6l",
    "armv6l": "armv6l",
    "armv7l": "armv6l",
    "arm64": "arm64",
    "aarch64": "arm64",
    "ppc64le": "ppc64le",
    "loong64": "loong64",
    "loongarch64": "loong64",
    "riscv64": "riscv64",
}


def get_platform() -> str:
    """Return ``linux``, ``darwin`` or ``freebsd``."""
    system = _platform.system().lower()
    if system not in SUPPORTED_PLATFORMS:
        raise PlatformNotSupportedError(f"platform not supported: {system}")
    return system


def get_arch() -> str:
    """Return the host architecture; ``ASDF_OVERWRITE_ARCH`` takes precedence."""
    arch = os.environ.get("ASDF_OVERWRITE_ARCH") or _platform.machine().lower()
    try:
        return _ARCH_ALIASES[arch]
    except KeyError:
        raise ArchNotSupportedError(f"architecture not supported: {arch}") from None
