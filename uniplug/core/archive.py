"""Archive extraction keyed by archive-type tag.

Every extractor creates the destination if needed, keeps the archive's
relative paths, refuses entries that would land outside the destination
and stops once a single entry exceeds 512 MiB or the archive exceeds
1 GiB in total.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import tarfile
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import IO

from uniplug.core.types import ArchiveError, UnsafeArchivePathError, UnsupportedArchiveTypeError

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 512 << 20
MAX_TOTAL_BYTES = 1 << 30

_CHUNK = 1 << 20


class _Budget:
    """Tracks bytes written across all entries of one archive."""

    def __init__(self, max_file: int | None = None, max_total: int | None = None) -> None:
        self.max_file = MAX_FILE_BYTES if max_file is None else max_file
        self.max_total = MAX_TOTAL_BYTES if max_total is None else max_total
        self.total = 0

    def copy(self, src: IO[bytes], target: Path, mode: int = 0o644) -> None:
        written = 0
        with open(target, "wb") as out:
            while chunk := src.read(_CHUNK):
                written += len(chunk)
                self.total += len(chunk)
                if written > self.max_file or self.total > self.max_total:
                    raise ArchiveError(f"archive size limit exceeded while writing {target}")
                out.write(chunk)
        os.chmod(target, mode & 0o777)


def _inside(root: Path, path: str) -> bool:
    return path == str(root) or path.startswith(str(root) + os.sep)


def _safe_target(dest: Path, name: str) -> Path:
    """Map entry *name* under *dest*, rejecting paths that escape it.

    Both the normalised path and the real path of its parent must stay
    inside *dest*, so a symlink extracted earlier cannot redirect writes.
    """
    target = Path(os.path.normpath(dest / name))
    if not _inside(dest, str(target)) or not _inside(dest, os.path.realpath(target.parent)):
        raise UnsafeArchivePathError(name)
    return target


def _safe_link(dest: Path, target: Path, linkname: str) -> None:
    """Reject a symlink at *target* whose destination lies outside *dest*."""
    joined = os.path.join(target.parent, linkname)
    if (
        os.path.isabs(linkname)
        or not _inside(dest, os.path.normpath(joined))
        or not _inside(dest, os.path.realpath(joined))
    ):
        raise UnsafeArchivePathError(f"{target.relative_to(dest)} -> {linkname}")


# ---------------------------------------------------------------------------
# Extractors
# ---------------------------------------------------------------------------

def _extract_tar(archive: Path, dest: Path, mode: str) -> None:
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()
    budget = _Budget()
    try:
        with tarfile.open(archive, mode) as tf:
            for member in tf:
                target = _safe_target(root, member.name)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                elif member.isreg():
                    if member.size > budget.max_file:
                        raise ArchiveError(f"tar entry too large: {member.name} ({member.size} bytes)")
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if target.is_symlink():
                        target.unlink()
                    src = tf.extractfile(member)
                    if src is None:
                        continue
                    with src:
                        budget.copy(src, target, member.mode)
                elif member.issym():
                    _safe_link(root, target, member.linkname)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if target.is_symlink() or target.exists():
                        target.unlink()
                    os.symlink(member.linkname, target)
                else:
                    logger.debug("Skipping tar entry %s (type %r)", member.name, member.type)
    except (tarfile.TarError, EOFError, OSError) as exc:
        raise ArchiveError(f"failed to extract {archive}: {exc}") from exc


def extract_tar_gz(archive: Path, dest: Path) -> None:
    """Extract a gzip-compressed tarball into *dest*."""
    _extract_tar(Path(archive), Path(dest), "r:gz")


def extract_tar_xz(archive: Path, dest: Path) -> None:
    """Extract an xz-compressed tarball into *dest*."""
    _extract_tar(Path(archive), Path(dest), "r:xz")


def extract_zip(archive: Path, dest: Path) -> None:
    """Extract a zip archive into *dest*."""
    archive, dest = Path(archive), Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    root = dest.resolve()
    budget = _Budget()
    try:
        with zipfile.ZipFile(archive) as zf:
            for info in zf.infolist():
                target = _safe_target(root, info.filename)
                if info.file_size > budget.max_file:
                    raise ArchiveError(f"zip entry too large: {info.filename} ({info.file_size} bytes)")
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                mode = (info.external_attr >> 16) & 0o777 or 0o644
                with zf.open(info) as src:
                    budget.copy(src, target, mode)
    except (zipfile.BadZipFile, OSError) as exc:
        raise ArchiveError(f"failed to extract {archive}: {exc}") from exc


def extract_gz(source: Path, dest_file: Path) -> None:
    """Decompress a single gzip-compressed file to *dest_file*."""
    budget = _Budget()
    try:
        with gzip.open(source, "rb") as src:
            budget.copy(src, Path(dest_file))
    except (gzip.BadGzipFile, EOFError, OSError) as exc:
        raise ArchiveError(f"failed to decompress {source}: {exc}") from exc


EXTRACTORS: dict[str, Callable[[Path, Path], None]] = {
    "tar.gz": extract_tar_gz,
    "tgz": extract_tar_gz,
    "tar.xz": extract_tar_xz,
    "zip": extract_zip,
}


def extract(archive_type: str, archive: Path, dest: Path) -> None:
    """Extract *archive* into *dest* with the extractor for *archive_type*."""
    extractor = EXTRACTORS.get(archive_type)
    if extractor is None:
        raise UnsupportedArchiveTypeError(archive_type)
    extractor(archive, dest)


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------

def first_subdirectory(directory: Path) -> Path | None:
    """Return the first directory entry of *directory* in name order."""
    for entry in sorted(Path(directory).iterdir()):
        if entry.is_dir() and not entry.is_symlink():
            return entry
    return None


def copy_dir(src: Path, dst: Path) -> None:
    """Recursively copy *src* into *dst*, merging with existing content."""
    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except (shutil.Error, OSError) as exc:
        raise ArchiveError(f"failed to copy {src} to {dst}: {exc}") from exc


def move_contents(src: Path, dst: Path) -> None:
    """Move every entry of *src* into *dst*, replacing entries of the same name."""
    dst = Path(dst)
    dst.mkdir(parents=True, exist_ok=True)
    for entry in Path(src).iterdir():
        target = dst / entry.name
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif target.exists() or target.is_symlink():
            target.unlink()
        shutil.move(str(entry), str(target))
