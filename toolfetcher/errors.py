"""Exception hierarchy for toolfetcher.

Fatal errors (``ConfigError``, ``DestinationError``) abort a batch before any
tool is processed.  ``FetchError`` and its subclasses are per-tool and
recoverable: the dispatcher logs them and moves on to the next tool.
"""

from __future__ import annotations


class ToolFetcherError(RuntimeError):
    """Base class for every error raised by toolfetcher."""


class ConfigError(ToolFetcherError):
    """Raised when the tool list cannot be loaded or fails validation."""


class DestinationError(ToolFetcherError):
    """Raised when the destination root cannot be created or accessed."""


class ManifestError(ValueError):
    """Raised when a ``.downloaded.json`` record is malformed."""


# ---------------------------------------------------------------------------
# Per-tool (recoverable)
# ---------------------------------------------------------------------------


class FetchError(ToolFetcherError):
    """A single tool could not be fetched.  The batch continues."""


class RemoteQueryError(FetchError):
    """A metadata query against the remote host failed."""


class BranchNotFoundError(FetchError):
    """None of the candidate branch names exist on the remote repository."""


class AssetNotFoundError(FetchError):
    """A release exists but none of its assets matched the selection hints."""


class DownloadError(FetchError):
    """Downloading a file failed."""


class ExtractionError(FetchError):
    """A downloaded archive could not be unpacked."""
