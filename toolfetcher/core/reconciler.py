"""Reconciler — merges a staged payload into a tool's destination directory.

Given a destination that may already hold a previous install (described by
its ``.downloaded.json``), user edits to files from that install, and files
the user added, the reconciler produces a destination containing:

* exactly the new payload,
* every file toolfetcher never owned, untouched,
* a ``<path>.saveN`` backup of every owned file the user modified.

Algorithm
---------
1. Load the prior record (a corrupt one counts as absent).
2. For every file currently in the destination, except the record itself
   and existing ``.saveN`` backups:

   - content digest matches a recorded digest  -> delete (superseded);
   - path is recorded but content differs      -> rename to ``.saveN``;
   - otherwise                                 -> leave untouched.

   A file that cannot be hashed, removed or renamed is logged and left in
   place.
3. Remove the prior record.
4. Copy the payload in.  An existing file in the way with different content
   is backed up first.  A payload copy of the record file is dropped, and a
   directory standing where a file should go is left alone.
5. Hash the installed payload files and write the new record.
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Iterator
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from toolfetcher.core.hasher import file_digest, is_readable_digest
from toolfetcher.core.manifest_store import ManifestStore
from toolfetcher.models.manifest import (
    ManifestRecord,
    normalize_relpath,
    utc_timestamp,
)

logger = logging.getLogger(__name__)

BACKUP_PATTERN = re.compile(r"\.save\d+$")


class ReconcileReport(BaseModel):
    """What a single reconciliation did, path by path (relative paths)."""

    model_config = ConfigDict(frozen=True)

    record: ManifestRecord
    deleted: list[str] = Field(default_factory=list)
    backed_up: dict[str, str] = Field(default_factory=dict)  # original -> backup
    untouched: list[str] = Field(default_factory=list)
    installed: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def resolve_payload_root(staged_dir: Path) -> Path:
    """Return the directory whose contents form the payload.

    When *staged_dir* holds exactly one entry and that entry is a directory
    (archives that wrap everything in a single root folder), its contents
    are the payload instead.
    """
    entries = list(Path(staged_dir).iterdir())
    if len(entries) == 1 and entries[0].is_dir():
        return entries[0]
    return Path(staged_dir)


def next_backup_path(path: Path) -> Path:
    """First ``<path>.saveN`` (N >= 1) that does not exist yet."""
    n = 1
    while True:
        candidate = path.with_name(f"{path.name}.save{n}")
        if not candidate.exists() and not candidate.is_symlink():
            return candidate
        n += 1


def iter_payload_files(root: Path) -> Iterator[tuple[str, Path]]:
    """Yield ``(relative_path, absolute_path)`` for every file under *root*."""
    root = Path(root)
    for path in sorted(root.rglob("*")):
        if path.is_file():
            yield normalize_relpath(path.relative_to(root).as_posix()), path


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------


class Reconciler:
    """Applies staged payloads to destination directories.

    Parameters
    ----------
    store:
        Manifest store used to read the prior record and write the new one.
    """

    def __init__(self, store: ManifestStore | None = None) -> None:
        self.store = store or ManifestStore()

    def reconcile(
        self,
        destination: Path,
        payload_dir: Path,
        provenance: ManifestRecord,
    ) -> ReconcileReport:
        """Install *payload_dir* into *destination* and record it.

        A payload that is a single top-level directory is flattened one
        level.  *provenance* carries the metadata of the new record (tool name,
        method, URL, version ...); its ``manifest`` is replaced by the
        digests of the files actually installed.

        Returns the report, whose ``record`` is what was written to disk.
        """
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)

        deleted: list[str] = []
        backed_up: dict[str, str] = {}
        untouched: list[str] = []
        errors: list[str] = []

        prior = self.store.load(destination)
        if prior is not None:
            self._retire_prior(
                destination, prior, deleted, backed_up, untouched, errors
            )
            self.store.remove(destination)

        payload_root = resolve_payload_root(payload_dir)
        installed = self._copy_in(destination, payload_root, backed_up, errors)

        manifest: dict[str, str] = {}
        for rel in installed:
            digest = file_digest(destination / rel)
            if not is_readable_digest(digest):
                errors.append(rel)
                continue
            manifest[rel] = digest

        record = provenance.model_copy(
            update={"manifest": manifest, "timestamp": utc_timestamp()}
        )
        self.store.write(destination, record)

        logger.info(
            "%s: installed %d files (%d superseded, %d backed up, %d untouched)",
            provenance.tool,
            len(manifest),
            len(deleted),
            len(backed_up),
            len(untouched),
        )
        return ReconcileReport(
            record=record,
            deleted=deleted,
            backed_up=backed_up,
            untouched=untouched,
            installed=sorted(manifest),
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _candidates(self, destination: Path) -> Iterator[tuple[str, Path]]:
        """Files in *destination* eligible for reconciliation."""
        record_name = self.store.filename
        for path in sorted(destination.rglob("*")):
            if not path.is_file():
                continue
            rel = normalize_relpath(path.relative_to(destination).as_posix())
            if rel == record_name:
                continue
            if path.parent == destination and path.name.startswith(record_name + "."):
                continue  # leftover temp record
            if BACKUP_PATTERN.search(path.name):
                continue
            yield rel, path

    def _retire_prior(
        self,
        destination: Path,
        prior: ManifestRecord,
        deleted: list[str],
        backed_up: dict[str, str],
        untouched: list[str],
        errors: list[str],
    ) -> None:
        index = prior.digest_index()
        emptied_dirs: set[Path] = set()

        for rel, path in list(self._candidates(destination)):
            digest = file_digest(path)
            if not is_readable_digest(digest):
                logger.warning(
                    "%s: cannot verify %s; leaving it in place.", prior.tool, rel
                )
                untouched.append(rel)
                continue

            if digest in index:
                try:
                    path.unlink()
                except OSError as exc:
                    logger.warning("%s: could not remove %s: %s", prior.tool, rel, exc)
                    errors.append(rel)
                    continue
                deleted.append(rel)
                emptied_dirs.add(path.parent)
            elif rel in prior.manifest:
                backup = self._backup(path, prior.tool, rel, errors)
                if backup is not None:
                    backed_up[rel] = normalize_relpath(
                        backup.relative_to(destination).as_posix()
                    )
            else:
                untouched.append(rel)

        self._prune_empty_dirs(destination, emptied_dirs)

    def _backup(self, path: Path, tool: str, rel: str, errors: list[str]) -> Path | None:
        target = next_backup_path(path)
        try:
            path.rename(target)
        except OSError as exc:
            logger.warning("%s: could not back up %s: %s", tool, rel, exc)
            errors.append(rel)
            return None
        logger.info("%s: %s was modified locally; saved as %s", tool, rel, target.name)
        return target

    def _copy_in(
        self,
        destination: Path,
        payload_dir: Path,
        backed_up: dict[str, str],
        errors: list[str],
    ) -> list[str]:
        installed: list[str] = []
        for rel, source in iter_payload_files(payload_dir):
            if rel == self.store.filename:
                logger.warning(
                    "Payload for %s ships its own %s; not installing it.",
                    destination.name,
                    rel,
                )
                continue
            target = destination / rel
            if target.is_dir():
                logger.warning(
                    "Cannot install %s into %s: a directory is in the way.",
                    rel,
                    destination,
                )
                errors.append(rel)
                continue
            try:
                if target.is_file() and file_digest(target) != file_digest(source):
                    backup = self._backup(target, destination.name, rel, errors)
                    if backup is None:
                        continue
                    backed_up[rel] = normalize_relpath(
                        backup.relative_to(destination).as_posix()
                    )
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            except OSError as exc:
                logger.warning("Could not install %s into %s: %s", rel, destination, exc)
                errors.append(rel)
                continue
            installed.append(rel)
        return installed

    @staticmethod
    def _prune_empty_dirs(destination: Path, dirs: set[Path]) -> None:
        """Remove directories left empty by deletions, innermost first."""
        for directory in sorted(dirs, key=lambda p: len(p.parts), reverse=True):
            current = directory
            while current != destination and destination in current.parents:
                try:
                    current.rmdir()
                except OSError:
                    break
                current = current.parent
