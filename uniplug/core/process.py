"""External command execution bound to a :class:`Context`."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Protocol

from uniplug.core.context import Context
from uniplug.core.types import CommandError

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.2


class CommandRunner(Protocol):
    def run(
        self, ctx: Context, cmd: list[str], *,
        cwd: Path | None = None, env: dict[str, str] | None = None, input: str | None = None,
    ) -> str: ...


class SubprocessRunner:
    """Run commands with :mod:`subprocess`, killing them when *ctx* ends.

    *env* entries are layered on top of the current process environment.
    Output (stdout and stderr combined) is returned on success and carried
    by :class:`CommandError` on failure.
    """

    def run(
        self, ctx: Context, cmd: list[str], *,
        cwd: Path | None = None, env: dict[str, str] | None = None, input: str | None = None,
    ) -> str:
        ctx.check()
        logger.debug("exec: %s", " ".join(cmd))
        full_env = {**os.environ, **env} if env else None
        try:
            proc = subprocess.Popen(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=full_env,
                stdin=subprocess.PIPE if input is not None else None,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except OSError as exc:
            raise CommandError(cmd, -1, str(exc)) from exc

        pending = input
        while True:
            try:
                output, _ = proc.communicate(pending, timeout=_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pending = None
                if ctx.done:
                    proc.kill()
                    proc.communicate()
                    ctx.check()

        if proc.returncode != 0:
            raise CommandError(cmd, proc.returncode, output or "")
        return output or ""


def ensure_git_repo(
    ctx: Context, runner: CommandRunner, repo_path: Path, git_url: str,
    install_msg: str = "", success_msg: str = "",
) -> None:
    """Clone *git_url* into *repo_path* or refresh an existing checkout.

    A failed ``git pull`` is only logged: a stale checkout still works.
    """
    repo_path = Path(repo_path)
    if not repo_path.exists():
        if install_msg:
            logger.info(install_msg)
        repo_path.parent.mkdir(parents=True, exist_ok=True)
        runner.run(ctx, ["git", "clone", "--depth", "1", git_url, str(repo_path)])
        if success_msg:
            logger.info(success_msg)
        return

    try:
        runner.run(ctx, ["git", "-C", str(repo_path), "pull", "--ff-only"])
    except CommandError as exc:
        logger.warning("Could not update %s: %s", repo_path, exc)

