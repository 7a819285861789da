"""Shared records and the exception hierarchy for plugin operations."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PluginHelp:
    """Human-readable help shown for a plugin."""

    overview: str = ""
    deps: str = ""
    config: str = ""
    links: str = ""


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class PluginError(Exception):
    """Base exception for plugin operations."""


class ConfigError(PluginError):
    """Raised when a plugin declaration or setting is invalid."""


class NoVersionsFoundError(PluginError):
    """Raised when a version listing is empty."""

    def __init__(self, message: str = "no versions found") -> None:
        super().__init__(message)


class NoVersionsMatchingError(PluginError):
    """Raised when no version starts with the requested query."""

    def __init__(self, query: str) -> None:
        self.query = query
        super().__init__(f"no versions matching query {query!r}")


class ArchiveMissingError(PluginError):
    """Raised when the archive to extract does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"archive not found: {path}")


class ExtractedDirMissingError(PluginError):
    """Raised when the expected source directory is absent after extraction."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"extracted directory not found: {path}")


class ArtifactMissingError(PluginError):
    """Raised when an expected artifact is absent after install."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"expected artifact not found: {path}")


class NoBuildStepConfiguredError(PluginError):
    """Raised when a source-build plugin has no build hook."""

    def __init__(self, message: str = "no build step configured") -> None:
        super().__init__(message)


class UnsupportedArchiveTypeError(PluginError):
    """Raised for an archive-type tag with no extractor."""

    def __init__(self, archive_type: str) -> None:
        self.archive_type = archive_type
        super().__init__(f"unsupported archive type: {archive_type}")


class ChannelNotFoundError(PluginError):
    """Raised when no index entry carries the requested channel name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"channel not found: {name}")


class NoChannelVersionFoundError(PluginError):
    """Raised when no index entry carries any channel label."""

    def __init__(self, message: str = "no channel version found") -> None:
        super().__init__(message)


class DownloadError(PluginError):
    """Raised when an HTTP transfer fails or returns a non-success status."""

    def __init__(self, url: str, message: str, status: int | None = None) -> None:
        self.url = url
        self.status = status
        super().__init__(f"{message}: {url}")


class ChecksumMismatchError(PluginError):
    """Raised when a file's SHA-256 digest differs from the expected one."""

    def __init__(self, path: str, expected: str, actual: str) -> None:
        self.path = path
        self.expected = expected
        self.actual = actual
        super().__init__(f"checksum mismatch for {path}: expected {expected}, got {actual}")


class ArchiveError(PluginError):
    """Raised when an archive is corrupt or exceeds the size limits."""


class UnsafeArchivePathError(ArchiveError):
    """Raised when an archive entry would land outside the destination."""

    def __init__(self, entry: str) -> None:
        self.entry = entry
        super().__init__(f"illegal file path in archive: {entry}")


class PlatformNotSupportedError(PluginError):
    """Raised when the host operating system is not supported."""


class ArchNotSupportedError(PluginError):
    """Raised when the host CPU architecture is not supported."""


class BinaryNotFoundError(PluginError):
    """Raised when a downloaded release does not contain the expected binary."""


class CommandError(PluginError):
    """Raised when an external command exits with a non-zero code."""

    def __init__(self, cmd: list[str], returncode: int, output: str = "") -> None:
        self.cmd = cmd
        self.returncode = returncode
        self.output = output
        detail = f"\n{output.strip()}" if output.strip() else ""
        super().__init__(f"{' '.join(cmd)} failed (exit {returncode}){detail}")


class HookError(PluginError):
    """Raised when a user-supplied hook fails with a non-plugin exception."""


class PluginNotFoundError(PluginError, KeyError):
    """Raised when a plugin name is not registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "plugin not found"


class CancelledError(PluginError):
    """Raised when the operation's context was cancelled."""


class DeadlineExceededError(CancelledError):
    """Raised when the operation's context deadline passed."""
