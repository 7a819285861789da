"""Shared fixtures: an in-process GitHub/download server and a fake command runner."""

from __future__ import annotations

import gzip
import io
import tarfile
import threading
import zipfile
from contextlib import contextmanager
from pathlib import Path

import httpx
import pytest

from uniplug.core.context import Context
from uniplug.core.download import HttpDownloader
from uniplug.core.github import GitHubClient
from uniplug.core.types import CommandError

API_URL = "https://api.github.test"


class RWLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self):
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class MockServer:
    """GitHub API and file server behind ``httpx.MockTransport``.

    Tags and releases are served under :data:`API_URL`; any other URL is
    looked up in the download table.
    """

    def __init__(self) -> None:
        self._lock = RWLock()
        self._log_lock = threading.Lock()
        self._tags: dict[str, list[str]] = {}
        self._releases: dict[str, list[str]] = {}
        self._downloads: dict[str, tuple[int, bytes]] = {}
        self.requests: list[httpx.Request] = []
        self.client = httpx.Client(transport=httpx.MockTransport(self.handle))

    def register_tag(self, repo: str, *tags: str) -> None:
        with self._lock.write():
            self._tags.setdefault(repo, []).extend(tags)

    def register_release(self, repo: str, *tags: str) -> None:
        with self._lock.write():
            self._releases.setdefault(repo, []).extend(tags)

    def register_download(self, url: str, body: bytes | str, status: int = 200) -> None:
        if isinstance(body, str):
            body = body.encode()
        with self._lock.write():
            self._downloads[url] = (status, body)

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._log_lock:
            self.requests.append(request)
        with self._lock.read():
            url = str(request.url)
            if url.startswith(API_URL):
                return self._api(request)
            if url in self._downloads:
                status, body = self._downloads[url]
                return httpx.Response(status, content=body)
        return httpx.Response(404, text="not found")

    def _api(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if len(parts) < 4 or parts[0] != "repos":
            return httpx.Response(404, text="not found")
        repo = f"{parts[1]}/{parts[2]}"
        if parts[3:] == ["git", "refs", "tags"]:
            if repo not in self._tags:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=[{"ref": f"refs/tags/{t}"} for t in self._tags[repo]])
        if parts[3:] == ["releases"]:
            if repo not in self._releases:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=[{"tag_name": t} for t in self._releases[repo]])
        return httpx.Response(404, text="not found")

    def github(self) -> GitHubClient:
        return GitHubClient(client=self.client, api_url=API_URL, token="")

    def downloader(self) -> HttpDownloader:
        return HttpDownloader(client=self.client)


class FakeRunner:
    """Records commands instead of running them.

    *handlers* maps a program's base name to a callable receiving the
    command and keyword arguments; its return value is the output.
    """

    def __init__(self, handlers: dict | None = None, fail: set[str] | None = None) -> None:
        self.handlers = handlers or {}
        self.fail = fail or set()
        self.calls: list[tuple[list[str], dict]] = []

    def run(self, ctx, cmd, *, cwd=None, env=None, input=None):
        ctx.check()
        self.calls.append((list(cmd), {"cwd": cwd, "env": env, "input": input}))
        program = Path(cmd[0]).name
        if program in self.fail:
            raise CommandError(list(cmd), 1, "boom")
        handler = self.handlers.get(program)
        return handler(cmd, cwd=cwd, env=env, input=input) if handler else ""

    def commands(self) -> list[list[str]]:
        return [cmd for cmd, _ in self.calls]


class ArchiveBuilder:
    """Writes small test archives from ``{name: content}`` mappings."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def _tar(self, name: str, files: dict[str, bytes | str], mode: str, exec_names=()) -> Path:
        path = self.root / name
        with tarfile.open(path, mode) as tf:
            for member, content in files.items():
                data = content.encode() if isinstance(content, str) else content
                info = tarfile.TarInfo(member)
                info.size = len(data)
                info.mode = 0o755 if member in exec_names else 0o644
                tf.addfile(info, io.BytesIO(data))
        return path

    def tar_gz(self, name: str, files: dict, exec_names=()) -> Path:
        return self._tar(name, files, "w:gz", exec_names)

    def tar_xz(self, name: str, files: dict, exec_names=()) -> Path:
        return self._tar(name, files, "w:xz", exec_names)

    def zip(self, name: str, files: dict) -> Path:
        path = self.root / name
        with zipfile.ZipFile(path, "w") as zf:
            for member, content in files.items():
                zf.writestr(member, content)
        return path

    def gz(self, name: str, content: bytes) -> Path:
        path = self.root / name
        path.write_bytes(gzip.compress(content))
        return path


@pytest.fixture()
def ctx() -> Context:
    return Context.background()


@pytest.fixture()
def server():
    srv = MockServer()
    yield srv
    srv.client.close()


@pytest.fixture()
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture()
def make_runner():
    """Factory for runners with custom handlers or failing programs."""
    return FakeRunner


@pytest.fixture()
def archives(tmp_path: Path) -> ArchiveBuilder:
    root = tmp_path / "archives"
    root.mkdir()
    return ArchiveBuilder(root)


@pytest.fixture()
def linux_amd64(monkeypatch):
    """Pin host detection to linux/amd64."""
    monkeypatch.setattr("platform.system", lambda: "Linux")
    monkeypatch.setattr("platform.machine", lambda: "x86_64")
    monkeypatch.delenv("ASDF_OVERWRITE_ARCH", raising=False)
