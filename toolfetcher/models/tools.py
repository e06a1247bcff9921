"""Tool definitions — one frozen model per download method.

The YAML tool list uses PascalCase keys (``Name``, ``RepoUrl``, ...).  Each
entry is validated into exactly one of the variants below, chosen by its
``DownloadMethod`` through ``TOOL_TYPE_MAP``, so the resolver can dispatch
on the variant instead of probing for optional keys.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from toolfetcher.bridge.github import parse_repo_url


class DownloadMethod(str, Enum):
    """The four supported ways of obtaining a tool."""

    GIT_CLONE = "gitClone"
    LATEST_RELEASE = "latestRelease"
    BRANCH_ZIP = "branchZip"
    SPECIFIC_FILE = "specificFile"


class AssetType(str, Enum):
    """Platform classes understood by latest-release asset selection."""

    WIN64 = "win64"
    WIN32 = "win32"
    LINUX64 = "linux64"
    LINUX32 = "linux32"
    MACOS64 = "macos64"
    MACOS32 = "macos32"
    ARM64 = "arm64"
    ARM32 = "arm32"


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


OptionalStr = Annotated[Union[str, None], BeforeValidator(_blank_to_none)]
OptionalAssetType = Annotated[Union[AssetType, None], BeforeValidator(_blank_to_none)]


class ToolBase(BaseModel):
    """Fields shared by every tool variant."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(alias="Name")
    repo_url: str = Field(alias="RepoUrl")
    download_method: DownloadMethod = Field(alias="DownloadMethod")
    output_folder: str = Field("", alias="OutputFolder")
    extract: bool = Field(True, alias="Extract")
    skip_download: bool = Field(False, alias="SkipDownload")

    @field_validator("name", "repo_url")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("output_folder", mode="before")
    @classmethod
    def _folder(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.replace("\\", "/").strip("/")
        return value

    @property
    def is_github(self) -> bool:
        return parse_repo_url(self.repo_url) is not None

    def destination(self, root: Path) -> Path:
        """Return ``<root>/<OutputFolder>/<Name>``."""
        base = Path(root)
        if self.output_folder:
            base = base / self.output_folder
        return base / self.name


class GitCloneTool(ToolBase):
    """Snapshot of a branch head, pinned to the resolved commit."""

    download_method: DownloadMethod = Field(
        DownloadMethod.GIT_CLONE, alias="DownloadMethod"
    )
    branch: OptionalStr = Field(None, alias="Branch")


class LatestReleaseTool(ToolBase):
    """One asset from the repository's latest published release."""

    download_method: DownloadMethod = Field(
        DownloadMethod.LATEST_RELEASE, alias="DownloadMethod"
    )
    download_name: OptionalStr = Field(None, alias="DownloadName")
    asset_filename: OptionalStr = Field(None, alias="AssetFilename")
    asset_type: OptionalAssetType = Field(None, alias="AssetType")


class BranchZipTool(ToolBase):
    """Archive of a named branch, downloaded without resolving a commit."""

    download_method: DownloadMethod = Field(
        DownloadMethod.BRANCH_ZIP, alias="DownloadMethod"
    )
    branch: OptionalStr = Field(None, alias="Branch")


class SpecificFileTool(ToolBase):
    """Exactly one file, from a repository sub-path or a direct URL."""

    download_method: DownloadMethod = Field(
        DownloadMethod.SPECIFIC_FILE, alias="DownloadMethod"
    )
    branch: OptionalStr = Field(None, alias="Branch")
    specific_file_path: OptionalStr = Field(None, alias="SpecificFilePath")
    download_name: OptionalStr = Field(None, alias="DownloadName")

    @model_validator(mode="after")
    def _repository_needs_path(self) -> SpecificFileTool:
        if (
            self.is_github
            and not self.skip_download
            and self.specific_file_path is None
            and self.download_name is None
        ):
            raise ValueError(
                "specificFile on a repository URL needs SpecificFilePath or DownloadName"
            )
        return self


ToolDefinition = Union[GitCloneTool, LatestReleaseTool, BranchZipTool, SpecificFileTool]

TOOL_TYPE_MAP: dict[DownloadMethod, type[ToolBase]] = {
    DownloadMethod.GIT_CLONE: GitCloneTool,
    DownloadMethod.LATEST_RELEASE: LatestReleaseTool,
    DownloadMethod.BRANCH_ZIP: BranchZipTool,
    DownloadMethod.SPECIFIC_FILE: SpecificFileTool,
}


def parse_tool(raw: dict[str, Any]) -> ToolDefinition:
    """Validate one raw tool entry into its download-method variant.

    Raises
    ------
    ValueError
        If the method is unknown or the entry fails validation
        (``pydantic.ValidationError`` is a ``ValueError``).
    """
    method_raw = raw.get("DownloadMethod", raw.get("download_method"))
    try:
        method = DownloadMethod(method_raw)
    except ValueError:
        options = ", ".join(m.value for m in DownloadMethod)
        raise ValueError(
            f"unknown DownloadMethod {method_raw!r} (expected one of: {options})"
        ) from None
    return TOOL_TYPE_MAP[method].model_validate(raw)  # type: ignore[return-value]


class ToolsConfig(BaseModel):
    """The validated tool list plus its configured destination root."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tool_directory: str = Field("", alias="tooldirectory")
    tools: list[ToolBase] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_names(self) -> ToolsConfig:
        seen: set[str] = set()
        for tool in self.tools:
            key = tool.name.casefold()
            if key in seen:
                raise ValueError(f"duplicate tool name: {tool.name!r}")
            seen.add(key)
        return self

    def get(self, name: str) -> ToolBase | None:
        """Look up a tool by name (case-insensitive)."""
        key = name.casefold()
        for tool in self.tools:
            if tool.name.casefold() == key:
                return tool
        return None
