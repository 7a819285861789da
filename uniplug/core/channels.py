"""Release-channel labels and channel-alias resolution.

Some upstream indexes tag versions with a release track instead of relying
on lexical order (Node.js ``lts`` is either ``false`` or a codename). A
label is one of three explicit forms:

* :class:`NoChannel` - the entry is on no channel;
* :class:`UnnamedChannel` - the entry is on a channel whose name is unknown;
* :class:`NamedChannel` - the entry is on the channel *name*.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Union

from uniplug.core.types import ChannelNotFoundError, NoChannelVersionFoundError


@dataclass(frozen=True)
class NoChannel:
    pass


@dataclass(frozen=True)
class UnnamedChannel:
    pass


@dataclass(frozen=True)
class NamedChannel:
    name: str


ChannelLabel = Union[NoChannel, UnnamedChannel, NamedChannel]


def parse_channel(raw: object) -> ChannelLabel:
    """Convert a raw JSON value (``None``/``False``/``True``/``str``) to a label."""
    if raw is None or raw is False:
        return NoChannel()
    if raw is True:
        return UnnamedChannel()
    if isinstance(raw, str):
        return NamedChannel(raw) if raw else NoChannel()
    raise TypeError(f"unexpected channel value: {raw!r}")


def has_channel(label: ChannelLabel) -> bool:
    if isinstance(label, NoChannel):
        return False
    if isinstance(label, (UnnamedChannel, NamedChannel)):
        return True
    raise TypeError(f"unknown channel label: {label!r}")


def channel_name(label: ChannelLabel) -> str | None:
    if isinstance(label, NamedChannel):
        return label.name
    if isinstance(label, (NoChannel, UnnamedChannel)):
        return None
    raise TypeError(f"unknown channel label: {label!r}")


@dataclass(frozen=True)
class ChannelEntry:
    """One index row: a version and the channel it belongs to."""

    version: str
    channel: ChannelLabel = NoChannel()


def is_channel_alias(query: str, prefix: str = "lts") -> bool:
    """Return whether *query* is ``<prefix>``, ``<prefix>/*`` or ``<prefix>/<name>``."""
    lowered = query.lower()
    return lowered == prefix or lowered.startswith(prefix + "/")


def resolve_channel(index: Sequence[ChannelEntry], alias: str, prefix: str = "lts") -> str:
    """Resolve a channel alias against an index ordered newest first.

    ``lts`` and ``lts/*`` return the first entry on any channel.
    ``lts/<name>`` returns the first entry whose channel name equals
    *name*, compared case-insensitively.
    """
    lowered = alias.lower()
    if lowered in (prefix, f"{prefix}/*"):
        for entry in index:
            if has_channel(entry.channel):
                return entry.version
        raise NoChannelVersionFoundError()

    wanted = alias.split("/", 1)[1] if "/" in alias else alias
    for entry in index:
        name = channel_name(entry.channel)
        if name is not None and name.lower() == wanted.lower():
            return entry.version
    raise ChannelNotFoundError(wanted)


def channel_codenames(index: Iterable[ChannelEntry]) -> dict[str, str]:
    """Map each channel name to its newest version (first seen in *index*)."""
    codenames: dict[str, str] = {}
    for entry in index:
        name = channel_name(entry.channel)
        if name is not None:
            codenames.setdefault(name, entry.version)
    return codenames
