"""The persisted provenance record for one installed tool.

Stored as ``.downloaded.json`` inside the tool's destination directory.  The
PascalCase field names are the on-disk format and must not change: existing
tool directories are read back with them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MANIFEST_FILENAME = ".downloaded.json"


def normalize_relpath(path: str) -> str:
    """Canonical manifest key: forward slashes, no leading ``./`` or ``/``."""
    p = path.replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ManifestRecord(BaseModel):
    """Metadata plus the ``relative path -> digest`` map of owned files.

    The ``manifest`` map never contains the record file itself.  Any legacy
    shape found on disk (list of ``{Path, Hash}`` objects, backslash paths,
    lower-case digests, ``null``) is normalized here so nothing downstream
    has to branch on it.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tool: str = Field(alias="Tool")
    timestamp: str = Field(default_factory=utc_timestamp, alias="Timestamp")
    download_method: str = Field("", alias="DownloadMethod")
    download_url: str = Field("", alias="DownloadURL")
    version: str = Field("", alias="Version")
    commit_hash: str = Field("", alias="CommitHash")
    downloaded_file: str = Field("", alias="DownloadedFile")
    extraction_location: str = Field("", alias="ExtractionLocation")
    manifest: dict[str, str] = Field(default_factory=dict, alias="Manifest")

    @field_validator(
        "timestamp",
        "download_method",
        "download_url",
        "version",
        "commit_hash",
        "downloaded_file",
        "extraction_location",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, datetime):
            return value.isoformat(timespec="seconds")
        return value

    @field_validator("manifest", mode="before")
    @classmethod
    def _normalize_manifest(cls, value: Any) -> dict[str, str]:
        if value is None:
            return {}
        pairs: list[tuple[Any, Any]]
        if isinstance(value, dict):
            pairs = list(value.items())
        elif isinstance(value, list):
            pairs = []
            for item in value:
                if not isinstance(item, dict):
                    raise ValueError(f"unexpected manifest entry: {item!r}")
                path = item.get("Path", item.get("RelativePath", item.get("path")))
                digest = item.get("Hash", item.get("hash"))
                pairs.append((path, digest))
        else:
            raise ValueError(f"unexpected manifest type: {type(value).__name__}")

        result: dict[str, str] = {}
        for path, digest in pairs:
            if not isinstance(path, str) or not isinstance(digest, str):
                raise ValueError(f"manifest entry must map str to str: {path!r}")
            key = normalize_relpath(path)
            if key == MANIFEST_FILENAME:
                continue
            result[key] = digest.upper()
        return result

    def digest_index(self) -> dict[str, str]:
        """Reverse index: digest -> relative path."""
        return {digest: path for path, digest in self.manifest.items()}

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize using the on-disk field names."""
        return self.model_dump(mode="json", by_alias=True)
