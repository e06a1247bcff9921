"""Manifest Store — reads and writes the per-tool ``.downloaded.json``.

The record is the single source of truth for which files in a destination
directory toolfetcher owns.  Writes go to a temporary file in the same
directory and are moved into place with ``os.replace``, so a crash never
leaves a half-written record behind under the real name.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from toolfetcher.errors import ManifestError
from toolfetcher.models.manifest import MANIFEST_FILENAME, ManifestRecord

logger = logging.getLogger(__name__)


class ManifestStore:
    """Persistence for ``ManifestRecord`` objects.

    Parameters
    ----------
    filename:
        Name of the sidecar file inside each destination directory.
    """

    def __init__(self, filename: str = MANIFEST_FILENAME) -> None:
        self.filename = filename

    def path_for(self, destination: Path) -> Path:
        return Path(destination) / self.filename

    def exists(self, destination: Path) -> bool:
        return self.path_for(destination).is_file()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def read(self, destination: Path) -> ManifestRecord | None:
        """Parse the record in *destination*.

        Returns ``None`` when no record exists.

        Raises
        ------
        ManifestError
            If the file exists but is not valid JSON or does not fit the
            record schema.
        """
        path = self.path_for(destination)
        if not path.is_file():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8-sig"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ManifestError(f"Unreadable manifest {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ManifestError(f"Manifest {path} is not a JSON object")
        try:
            return ManifestRecord.model_validate(raw)
        except ValidationError as exc:
            raise ManifestError(f"Invalid manifest {path}: {exc}") from exc

    def load(self, destination: Path) -> ManifestRecord | None:
        """Like ``read`` but treats a corrupt record as absent.

        A corrupt record must not block an update, so the error is logged
        and the destination is handled as a fresh install.
        """
        try:
            return self.read(destination)
        except ManifestError as exc:
            logger.warning("%s; treating %s as not installed.", exc, destination)
            return None

    # ------------------------------------------------------------------
    # Write / remove
    # ------------------------------------------------------------------

    def write(self, destination: Path, record: ManifestRecord) -> Path:
        """Persist *record* into *destination*, replacing any previous one."""
        destination = Path(destination)
        destination.mkdir(parents=True, exist_ok=True)
        target = self.path_for(destination)

        fd, tmp_name = tempfile.mkstemp(
            dir=destination, prefix=self.filename + ".", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
                json.dump(record.to_json_dict(), fh, indent=2)
                fh.write("\n")
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        logger.debug(
            "Wrote manifest for %s (%d files) to %s",
            record.tool,
            len(record.manifest),
            target,
        )
        return target

    def remove(self, destination: Path) -> bool:
        """Delete the record.  Returns ``True`` if a file was removed."""
        path = self.path_for(destination)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        logger.debug("Removed manifest %s", path)
        return True
