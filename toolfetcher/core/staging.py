"""Staging Fetcher — downloads and unpacks into a scratch directory.

Nothing here touches a tool's destination.  Each fetch gets its own scratch
directory, created under the configured staging parent (system temp by
default) and removed when the ``stage`` context exits, on success and on
failure alike.

Scratch layout::

    toolfetcher-XXXXXX/
        download/<filename>     -- the file as fetched
        payload/                -- what the reconciler installs
"""

from __future__ import annotations

import logging
import os
import shutil
import tarfile
import tempfile
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from toolfetcher.errors import ExtractionError

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIXES: tuple[str, ...] = (
    ".tar.gz",
    ".tar.bz2",
    ".tar.xz",
    ".tgz",
    ".tbz2",
    ".txz",
    ".zip",
    ".tar",
)


class Downloader(Protocol):
    """Anything that can fetch a URL into a local file."""

    def download(self, url: str, target: Path) -> Path: ...


class StagedPayload(BaseModel):
    """A fully staged fetch, valid only inside ``StagingFetcher.stage``."""

    model_config = ConfigDict(frozen=True)

    url: str
    downloaded_file: Path
    payload_dir: Path
    extracted: bool


def is_archive(filename: str) -> bool:
    """``True`` if *filename* has a recognized archive extension."""
    lower = filename.lower()
    return any(lower.endswith(suffix) for suffix in ARCHIVE_SUFFIXES)


# ---------------------------------------------------------------------------
# Unpacking
# ---------------------------------------------------------------------------


def _safe_member_path(root_real: str, member: str) -> str:
    """Resolve an archive member name under *root_real*, refusing escapes."""
    p = member.replace("\\", "/")
    if p.startswith("/") or (len(p) > 1 and p[1] == ":"):
        raise ExtractionError(f"absolute path in archive: {member!r}")
    full = os.path.realpath(os.path.join(root_real, os.path.normpath(p)))
    if not (full == root_real or full.startswith(root_real + os.sep)):
        raise ExtractionError(f"archive member escapes extraction root: {member!r}")
    return full


def _unpack_zip(archive: Path, dest: Path) -> None:
    root_real = os.path.realpath(dest)
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            target = _safe_member_path(root_real, info.filename)
            if info.is_dir():
                os.makedirs(target, exist_ok=True)
                continue
            os.makedirs(os.path.dirname(target), exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)


def _unpack_tar(archive: Path, dest: Path) -> None:
    with tarfile.open(archive) as tf:
        tf.extractall(dest, filter="data")


def unpack_archive(archive: Path, dest: Path) -> None:
    """Unpack *archive* into *dest*.

    Raises
    ------
    ExtractionError
        If the format is unsupported, the archive is corrupt, a member
        would land outside *dest*, or the archive contains no files.
    """
    archive = Path(archive)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    lower = archive.name.lower()
    try:
        if lower.endswith(".zip"):
            _unpack_zip(archive, dest)
        elif is_archive(archive.name):
            _unpack_tar(archive, dest)
        else:
            raise ExtractionError(f"not a supported archive: {archive.name}")
    except (zipfile.BadZipFile, tarfile.TarError, EOFError, OSError) as exc:
        raise ExtractionError(f"failed to unpack {archive.name}: {exc}") from exc

    if not any(p.is_file() for p in dest.rglob("*")):
        raise ExtractionError(f"archive {archive.name} contains no files")


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class StagingFetcher:
    """Fetches remote content into an isolated scratch directory.

    Parameters
    ----------
    downloader:
        Object with a ``download(url, target)`` method, normally a
        ``GitHubClient``.
    staging_parent:
        Directory under which scratch directories are created.  ``None``
        uses the system temp directory.
    """

    def __init__(self, downloader: Downloader, staging_parent: Path | None = None) -> None:
        self._downloader = downloader
        self._parent = Path(staging_parent) if staging_parent else None
        if self._parent is not None:
            self._parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def stage(self, url: str, filename: str, *, extract: bool) -> Iterator[StagedPayload]:
        """Download *url* as *filename* and yield the staged payload.

        When *extract* is true and *filename* is an archive, the payload is
        its unpacked content; otherwise the payload is the single file.
        The scratch directory is deleted when the block exits.
        """
        scratch = Path(tempfile.mkdtemp(prefix="toolfetcher-", dir=self._parent))
        logger.debug("Staging %s in %s", url, scratch)
        try:
            downloaded = self._downloader.download(url, scratch / "download" / filename)
            payload_dir = scratch / "payload"
            extracted = extract and is_archive(filename)
            if extracted:
                unpack_archive(downloaded, payload_dir)
            else:
                payload_dir.mkdir(parents=True, exist_ok=True)
                shutil.copy2(downloaded, payload_dir / filename)
            yield StagedPayload(
                url=url,
                downloaded_file=downloaded,
                payload_dir=payload_dir,
                extracted=extracted,
            )
        finally:
            self._cleanup(scratch)

    @staticmethod
    def _cleanup(scratch: Path) -> None:
        shutil.rmtree(scratch, ignore_errors=True)
        if scratch.exists():
            logger.warning("Could not fully remove staging directory %s", scratch)
        else:
            logger.debug("Removed staging directory %s", scratch)
