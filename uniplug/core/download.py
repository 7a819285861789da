"""HTTP downloads and SHA-256 checks.

:class:`Downloader` is the port the install engines depend on;
:class:`HttpDownloader` implements it with httpx. Tests pass an
``httpx.Client`` built on ``httpx.MockTransport``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import httpx

from uniplug.core.context import Context
from uniplug.core.types import ChecksumMismatchError, DownloadError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
USER_AGENT = "uniplug"


class Downloader(Protocol):
    def download_file(self, ctx: Context, url: str, dest: Path) -> None: ...

    def download_string(self, ctx: Context, url: str) -> str: ...

    def fetch_json(self, ctx: Context, url: str) -> Any: ...


class HttpDownloader:
    """Streaming HTTP downloader.

    Args:
        client: Optional pre-configured ``httpx.Client``; one is created
            on first use otherwise.
        timeout: Request timeout in seconds when the context has no deadline.
    """

    def __init__(self, client: httpx.Client | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._client = client
        self.timeout = timeout

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(headers={"User-Agent": USER_AGENT}, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def _timeout(self, ctx: Context) -> float:
        left = ctx.remaining()
        return self.timeout if left is None else min(self.timeout, left)

    def download_file(self, ctx: Context, url: str, dest: Path) -> None:
        """Stream *url* into *dest*, replacing it only once the body is complete."""
        ctx.check()
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as fh:
                with self.client.stream(
                    "GET", url, follow_redirects=True, timeout=self._timeout(ctx),
                ) as resp:
                    if resp.status_code != httpx.codes.OK:
                        raise DownloadError(url, f"bad status {resp.status_code}", resp.status_code)
                    for chunk in resp.iter_bytes():
                        ctx.check()
                        fh.write(chunk)
            tmp.replace(dest)
        except httpx.HTTPError as exc:
            raise DownloadError(url, f"download failed ({exc})") from exc
        finally:
            tmp.unlink(missing_ok=True)

    def download_string(self, ctx: Context, url: str) -> str:
        """Return the body of *url* as text."""
        ctx.check()
        try:
            resp = self.client.get(url, follow_redirects=True, timeout=self._timeout(ctx))
        except httpx.HTTPError as exc:
            raise DownloadError(url, f"request failed ({exc})") from exc
        if resp.status_code != httpx.codes.OK:
            raise DownloadError(url, f"bad status {resp.status_code}", resp.status_code)
        return resp.text

    def fetch_json(self, ctx: Context, url: str) -> Any:
        """Return the decoded JSON body of *url*."""
        body = self.download_string(ctx, url)
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise DownloadError(url, f"malformed JSON response ({exc})") from exc


# ---------------------------------------------------------------------------
# Checksums
# ---------------------------------------------------------------------------

def sha256_file(path: Path) -> str:
    """Compute the SHA-256 hex digest of *path*."""
    h = hashlib.sha256()
    with open(path, "rb") as fh:
        while chunk := fh.read(1 << 20):
            h.update(chunk)
    return h.hexdigest()


def verify_sha256(path: Path, expected: str) -> None:
    """Raise :class:`ChecksumMismatchError` unless *path* hashes to *expected*.

    *expected* may be a ``sha256sum`` line; only its first field is used.
    """
    fields = expected.split()
    want = fields[0].lower() if fields else ""
    actual = sha256_file(path)
    if actual != want:
        raise ChecksumMismatchError(str(path), want, actual)


def find_checksum(shasums: str, file_name: str) -> str | None:
    """Return the digest listed for *file_name* in a ``SHASUMS256.txt`` body."""
    for line in shasums.splitlines():
        fields = line.split()
        if len(fields) >= 2 and fields[1].lstrip("*") == file_name:
            return fields[0]
    return None
