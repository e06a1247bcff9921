"""Content hashing for installed files.

Digests are upper-case hex MD5, the form ``Get-FileHash -Algorithm MD5``
writes, so records produced by earlier installs compare equal.  MD5 is used
for change detection only, never for integrity or trust.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Returned instead of a digest when a file cannot be read.  Never equal to a
# real digest, so an unreadable file is never treated as a match.
UNREADABLE = "UNREADABLE"

_CHUNK_SIZE = 1024 * 1024


def md5_hex(data: bytes) -> str:
    """Return the upper-case MD5 hex digest of raw bytes."""
    return hashlib.md5(data, usedforsecurity=False).hexdigest().upper()


def file_digest(path: Path) -> str:
    """Digest a file's content, streaming in 1 MiB chunks.

    Zero-length files hash normally.  On any ``OSError`` (permission denied,
    file vanished mid-read) the ``UNREADABLE`` sentinel is returned and a
    warning is logged; the caller decides what that means.
    """
    h = hashlib.md5(usedforsecurity=False)
    try:
        with open(path, "rb") as fh:
            for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                h.update(chunk)
    except OSError as exc:
        logger.warning("Could not hash %s: %s", path, exc)
        return UNREADABLE
    return h.hexdigest().upper()


def is_readable_digest(digest: str) -> bool:
    """False for the ``UNREADABLE`` sentinel."""
    return digest != UNREADABLE
