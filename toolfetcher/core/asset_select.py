"""Latest-release asset selection.

Hints are applied in strict precedence; the first one present decides:

1. ``DownloadName``  -- exact asset name (case-insensitive);
2. ``AssetFilename`` -- exact name, else a regular expression searched in
   the name (case-insensitive);
3. ``AssetType``     -- a platform class from ``ASSET_CLASS_RULES``.

With no hints every asset qualifies.  The first qualifying asset, in the
order the release lists them, is selected.

Each platform class is a conjunction of required patterns minus a set of
excluded ones.  The 64-bit and 32-bit indicators are disjoint (``x86_64``
only ever counts as 64-bit), and every x86 class excludes ARM builds and
"live" variants, so one asset name never satisfies two x86 classes.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from toolfetcher.bridge.github import ReleaseAsset
from toolfetcher.models.tools import AssetType

logger = logging.getLogger(__name__)

_WIN = r"(?<![a-z])win(?:dows)?(?:32|64)?(?![a-z])|msvc|\.exe$|\.msi$"
_LINUX = r"linux"
_MAC = r"(?<![a-z])mac(?:os)?(?![a-z])|darwin|osx|apple"
_X64 = r"x64|x86[_-]64|amd64|64[-_]?bit|(?<![0-9.])64(?![0-9])"
_X86 = r"x86(?![_-]?64)|i[3-6]86|32[-_]?bit|(?<![0-9.])32(?![0-9])"
_ARM = r"(?<![a-z])arm(?:64|32|v\d+\w*|hf|el)?(?![a-z])|aarch"
_ARM64 = r"arm64|aarch64|armv8"
_ARM32 = r"armv[67]|armhf|armel|arm32"
_LIVE = r"(?<![a-z])live(?![a-z])"


class AssetClassRule(BaseModel):
    """An asset name belongs to a class when it matches every ``require``
    pattern and no ``exclude`` pattern."""

    model_config = ConfigDict(frozen=True)

    require: tuple[str, ...]
    exclude: tuple[str, ...] = ()

    def matches(self, name: str) -> bool:
        return all(re.search(p, name, re.IGNORECASE) for p in self.require) and not any(
            re.search(p, name, re.IGNORECASE) for p in self.exclude
        )


ASSET_CLASS_RULES: dict[AssetType, AssetClassRule] = {
    AssetType.WIN64: AssetClassRule(require=(_WIN, _X64), exclude=(_ARM, _LIVE)),
    AssetType.WIN32: AssetClassRule(require=(_WIN, _X86), exclude=(_ARM, _X64, _LIVE)),
    AssetType.LINUX64: AssetClassRule(require=(_LINUX, _X64), exclude=(_ARM, _LIVE)),
    AssetType.LINUX32: AssetClassRule(require=(_LINUX, _X86), exclude=(_ARM, _X64, _LIVE)),
    AssetType.MACOS64: AssetClassRule(
        require=(_MAC, _X64 + "|universal"), exclude=(_ARM, _LIVE)
    ),
    AssetType.MACOS32: AssetClassRule(require=(_MAC, _X86), exclude=(_ARM, _X64, _LIVE)),
    AssetType.ARM64: AssetClassRule(require=(_ARM64,), exclude=(_LIVE,)),
    AssetType.ARM32: AssetClassRule(require=(_ARM32,), exclude=(_ARM64, _LIVE)),
}


def matches_asset_class(name: str, asset_type: AssetType) -> bool:
    return ASSET_CLASS_RULES[asset_type].matches(name)


def _filename_matches(assets: list[ReleaseAsset], pattern: str) -> list[ReleaseAsset]:
    exact = [a for a in assets if a.name.casefold() == pattern.casefold()]
    if exact:
        return exact
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        logger.warning("AssetFilename %r is not a valid regex: %s", pattern, exc)
        return []
    return [a for a in assets if regex.search(a.name)]


def select_asset(
    assets: Iterable[ReleaseAsset],
    *,
    download_name: str | None = None,
    asset_filename: str | None = None,
    asset_type: AssetType | None = None,
) -> ReleaseAsset | None:
    """Pick the asset to download, or ``None`` if nothing qualifies."""
    pool = list(assets)
    if download_name:
        candidates = [a for a in pool if a.name.casefold() == download_name.casefold()]
    elif asset_filename:
        candidates = _filename_matches(pool, asset_filename)
    elif asset_type is not None:
        candidates = [a for a in pool if matches_asset_class(a.name, asset_type)]
    else:
        candidates = pool
    return candidates[0] if candidates else None
