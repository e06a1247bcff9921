"""Loads the YAML tool list into a validated ``ToolsConfig``.

Expected shape::

    tooldirectory: ""            # destination root, may be empty
    tools:
      - Name: "hayabusa"
        RepoUrl: "https://github.com/Yamato-Security/hayabusa"
        DownloadMethod: "latestRelease"
        AssetType: "win64"
        OutputFolder: "WinEventlogs"

Every problem is reported as a single ``ConfigError`` naming the offending
entry, since a broken tool list aborts the whole batch.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from toolfetcher.errors import ConfigError
from toolfetcher.models.tools import ToolBase, ToolsConfig, parse_tool

logger = logging.getLogger(__name__)

DEFAULT_TOOLS_DIR = Path("tools")


def parse_config(data: Any, *, source: str = "<config>") -> ToolsConfig:
    """Validate an already-parsed YAML document."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a mapping")

    raw_tools = data.get("tools") or []
    if not isinstance(raw_tools, list):
        raise ConfigError(f"{source}: 'tools' must be a list")

    tools: list[ToolBase] = []
    for index, raw in enumerate(raw_tools):
        label = raw.get("Name", f"#{index + 1}") if isinstance(raw, dict) else f"#{index + 1}"
        if not isinstance(raw, dict):
            raise ConfigError(f"{source}: tool {label} must be a mapping")
        try:
            tools.append(parse_tool(raw))
        except ValueError as exc:
            raise ConfigError(f"{source}: tool {label!r} is invalid: {exc}") from exc

    tool_directory = data.get("tooldirectory") or ""
    try:
        return ToolsConfig(tool_directory=str(tool_directory), tools=tools)
    except ValidationError as exc:
        raise ConfigError(f"{source}: {exc}") from exc


def load_config(path: Path) -> ToolsConfig:
    """Read and validate the tool list at *path*.

    Raises
    ------
    ConfigError
        If the file is missing, is not valid YAML, or fails validation.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"{path}: invalid YAML: {exc}") from exc

    config = parse_config(data, source=str(path))
    logger.debug("Loaded %d tools from %s", len(config.tools), path)
    return config


def resolve_tools_root(
    config: ToolsConfig,
    override: Path | None = None,
    *,
    base_dir: Path | None = None,
) -> Path:
    """Pick the destination root: override > ``tooldirectory`` > ``./tools``.

    A relative ``tooldirectory`` is taken relative to *base_dir* (the config
    file's directory) when given.
    """
    if override is not None and str(override).strip():
        return Path(override).expanduser()
    if config.tool_directory.strip():
        root = Path(config.tool_directory.strip()).expanduser()
        if not root.is_absolute() and base_dir is not None:
            root = Path(base_dir) / root
        return root
    return DEFAULT_TOOLS_DIR
