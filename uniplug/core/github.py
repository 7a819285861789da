"""GitHub tag and release listing."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from uniplug.core.context import Context
from uniplug.core.types import ConfigError, DownloadError, PluginError
from uniplug.core.versions import sort_versions, stable_versions

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
API_VERSION = "2022-11-28"
HTTP_TIMEOUT = 30.0


class VersionLister(Protocol):
    def get_tags(self, ctx: Context, repo_url: str) -> list[str]: ...

    def get_releases(self, ctx: Context, repo_url: str) -> list[str]: ...


def token_from_env() -> str:
    return os.environ.get("GITHUB_TOKEN") or os.environ.get("GITHUB_API_TOKEN") or ""


def get_owner_repo(url: str) -> tuple[str, str]:
    """Split ``https://github.com/o/r`` or ``git@github.com:o/r.git`` into ``(o, r)``."""
    cleaned = url.replace("git@github.com:", "", 1).replace("https://github.com/", "", 1)
    parts = cleaned.split("/")
    if len(parts) != 2 or not all(parts):
        raise PluginError(f"invalid GitHub repository URL: {url}")
    owner, repo = parts
    return owner, repo.removesuffix(".git")


class GitHubClient:
    """Minimal GitHub REST client for tags and releases.

    Args:
        client: Optional ``httpx.Client``; tests inject one with a mock transport.
        api_url: API root, overridable for test servers.
        token: Bearer token; defaults to ``GITHUB_TOKEN`` then ``GITHUB_API_TOKEN``.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        api_url: str = API_URL,
        token: str | None = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=HTTP_TIMEOUT)
        self.api_url = api_url.rstrip("/")
        self.token = token_from_env() if token is None else token

    def _headers(self) -> dict[str, str]:
        headers = {
            "X-Github-Api-Version": API_VERSION,
            "Accept": "application/vnd.github.v3+json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _fetch_json(self, ctx: Context, url: str) -> Any:
        ctx.check()
        left = ctx.remaining()
        timeout = HTTP_TIMEOUT if left is None else min(HTTP_TIMEOUT, left)
        try:
            resp = self._client.get(url, headers=self._headers(), timeout=timeout)
        except httpx.HTTPError as exc:
            raise DownloadError(url, f"HTTP request failed ({exc})") from exc
        if resp.status_code != httpx.codes.OK:
            raise DownloadError(
                url, f"HTTP request failed: {resp.status_code} {resp.text.strip()}", resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise DownloadError(url, f"decode response ({exc})") from exc

    def get_tags(self, ctx: Context, repo_url: str) -> list[str]:
        """Return every tag name of the repository."""
        owner, repo = get_owner_repo(repo_url)
        data = self._fetch_json(ctx, f"{self.api_url}/repos/{owner}/{repo}/git/refs/tags")
        return [str(item.get("ref", "")).removeprefix("refs/tags/") for item in data]

    def get_releases(self, ctx: Context, repo_url: str) -> list[str]:
        """Return the tag names of the most recent releases (first page of 100)."""
        owner, repo = get_owner_repo(repo_url)
        data = self._fetch_json(ctx, f"{self.api_url}/repos/{owner}/{repo}/releases?per_page=100")
        return [str(item.get("tag_name", "")) for item in data]


# ---------------------------------------------------------------------------
# Version listing
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ListVersionsConfig:
    """Where and how to read versions from a GitHub repository."""

    repo_owner: str
    repo_name: str
    version_prefix: str = "v"
    version_filter: str = ""
    use_tags: bool = True


def list_github_versions(ctx: Context, lister: VersionLister, cfg: ListVersionsConfig) -> list[str]:
    """List, normalise and sort the versions published in a repository.

    Tags without the version prefix are dropped (releases are only
    stripped), empty names and names rejected by ``version_filter`` are
    skipped. Stable versions are returned when any exist.
    """
    repo_url = f"https://github.com/{cfg.repo_owner}/{cfg.repo_name}"
    try:
        version_filter = re.compile(cfg.version_filter) if cfg.version_filter else None
    except re.error as exc:
        raise ConfigError(f"invalid version filter regex {cfg.version_filter!r}: {exc}") from exc

    if cfg.use_tags:
        names = lister.get_tags(ctx, repo_url)
    else:
        names = lister.get_releases(ctx, repo_url)

    versions = []
    for name in names:
        if cfg.version_prefix:
            if cfg.use_tags and not name.startswith(cfg.version_prefix):
                continue
            name = name.removeprefix(cfg.version_prefix)
        if not name:
            continue
        if version_filter is not None and not version_filter.search(name):
            continue
        versions.append(name)

    versions = sort_versions(versions)
    return stable_versions(versions) or versions
