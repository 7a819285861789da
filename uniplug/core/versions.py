"""Version comparison, filtering and latest-stable selection.

Versions are opaque strings. The comparator splits them into maximal runs
of ASCII digits and non-digits and compares the runs pairwise: two digit
runs compare as integers, anything else compares as text. When every shared
run is equal the shorter version sorts first, so ``"1.2"`` precedes
``"1.2.0"``. Remaining ties (``"1.01"`` vs ``"1.1"``) fall back to plain
string comparison, which keeps the order total.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Protocol

from uniplug.core.types import NoVersionsFoundError, NoVersionsMatchingError

_RUN_RE = re.compile(r"[0-9]+|[^0-9]+")
_DIGITS = "0123456789"


def _runs(version: str) -> list[str]:
    return _RUN_RE.findall(version)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as *a* is less than, equal to or greater than *b*."""
    runs_a, runs_b = _runs(a), _runs(b)
    for ra, rb in zip(runs_a, runs_b):
        if ra[0] in _DIGITS and rb[0] in _DIGITS:
            result = _cmp(int(ra), int(rb))
        else:
            result = _cmp(ra, rb)
        if result:
            return result
    result = _cmp(len(runs_a), len(runs_b))
    if result:
        return result
    return _cmp(a, b)


version_key = cmp_to_key(compare_versions)


def sort_versions(versions: Iterable[str]) -> list[str]:
    """Return a new ascending list; equal versions keep their input order."""
    return sorted(versions, key=version_key)


def filter_versions(versions: Iterable[str], predicate: Callable[[str], bool]) -> list[str]:
    """Return the versions accepted by *predicate*, preserving order."""
    return [v for v in versions if predicate(v)]


def max_version(versions: Sequence[str]) -> str:
    if not versions:
        raise NoVersionsFoundError()
    return max(versions, key=version_key)


# ---------------------------------------------------------------------------
# Prerelease classification
# ---------------------------------------------------------------------------

class Classifier(Protocol):
    def is_prerelease(self, version: str) -> bool: ...


DEFAULT_MARKERS = ("rc", "alpha", "beta", "-pre", "dev")

#: CPython style ``3.13.0a1`` / ``3.13.0b2``.
CPYTHON_PRERELEASE_PATTERN = r"\d[ab]\d*"


@dataclass(frozen=True)
class PrereleaseClassifier:
    """Heuristic marker-based prerelease detection.

    *markers* are plain substrings, *patterns* are regular expressions
    searched anywhere in the version. Matching is case-insensitive unless
    *case_sensitive* is set.
    """

    markers: tuple[str, ...] = DEFAULT_MARKERS
    patterns: tuple[str, ...] = ()
    case_sensitive: bool = False

    def __post_init__(self) -> None:
        flags = 0 if self.case_sensitive else re.IGNORECASE
        object.__setattr__(self, "_compiled", tuple(re.compile(p, flags) for p in self.patterns))

    def is_prerelease(self, version: str) -> bool:
        text = version if self.case_sensitive else version.lower()
        for marker in self.markers:
            needle = marker if self.case_sensitive else marker.lower()
            if needle in text:
                return True
        return any(p.search(version) for p in self._compiled)

    def is_stable(self, version: str) -> bool:
        return not self.is_prerelease(version)

    def extend(self, *, markers: Iterable[str] = (), patterns: Iterable[str] = ()) -> PrereleaseClassifier:
        """Return a classifier with extra markers and patterns."""
        return PrereleaseClassifier(
            markers=self.markers + tuple(markers),
            patterns=self.patterns + tuple(patterns),
            case_sensitive=self.case_sensitive,
        )


DEFAULT_CLASSIFIER = PrereleaseClassifier()


def is_prerelease(version: str, classifier: Classifier = DEFAULT_CLASSIFIER) -> bool:
    return classifier.is_prerelease(version)


def stable_versions(
    versions: Iterable[str], classifier: Classifier = DEFAULT_CLASSIFIER,
) -> list[str]:
    return filter_versions(versions, lambda v: not classifier.is_prerelease(v))


# ---------------------------------------------------------------------------
# Latest-stable selection
# ---------------------------------------------------------------------------

def select_latest(
    versions: Sequence[str],
    query: str = "",
    *,
    classifier: Classifier = DEFAULT_CLASSIFIER,
    fail_on_empty_filter: bool = True,
) -> str:
    """Resolve one version from *versions*.

    1. An empty list raises :class:`NoVersionsFoundError`.
    2. A non-empty *query* keeps only versions starting with it. When none
       match, raise :class:`NoVersionsMatchingError` if
       *fail_on_empty_filter* is set, otherwise keep the full list.
    3. Prefer non-prerelease versions.
    4. Return the greatest stable version, or the greatest candidate when
       every candidate is a prerelease.
    """
    if not versions:
        raise NoVersionsFoundError()

    candidates = list(versions)
    if query:
        matched = filter_versions(candidates, lambda v: v.startswith(query))
        if matched:
            candidates = matched
        elif fail_on_empty_filter:
            raise NoVersionsMatchingError(query)

    stable = stable_versions(candidates, classifier)
    return max_version(stable or candidates)
