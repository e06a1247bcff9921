"""toolfetcher data models, all Pydantic v2 and frozen."""

from toolfetcher.models.manifest import MANIFEST_FILENAME, ManifestRecord
from toolfetcher.models.outcomes import BatchReport, OutcomeStatus, ToolAction, ToolOutcome
from toolfetcher.models.tools import (
    TOOL_TYPE_MAP,
    AssetType,
    BranchZipTool,
    DownloadMethod,
    GitCloneTool,
    LatestReleaseTool,
    SpecificFileTool,
    ToolBase,
    ToolDefinition,
    ToolsConfig,
    parse_tool,
)

__all__ = [
    # tools
    "DownloadMethod",
    "AssetType",
    "ToolBase",
    "GitCloneTool",
    "LatestReleaseTool",
    "BranchZipTool",
    "SpecificFileTool",
    "ToolDefinition",
    "TOOL_TYPE_MAP",
    "ToolsConfig",
    "parse_tool",
    # manifest
    "MANIFEST_FILENAME",
    "ManifestRecord",
    # outcomes
    "ToolAction",
    "OutcomeStatus",
    "ToolOutcome",
    "BatchReport",
]
