"""``toolfetcher list`` — show configured tools and what is installed.

Read-only: no network access, and the destination root is not created.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from toolfetcher.cli.commands.fetch import console, load_tool_list
from toolfetcher.cli.renderer import ReportRenderer
from toolfetcher.config import FetcherSettings
from toolfetcher.core.manifest_store import ManifestStore


def list_cmd(
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the YAML tool list (default: tools.yaml).",
    ),
    tools_dir: Optional[Path] = typer.Option(
        None,
        "--tools-dir",
        "-d",
        help="Destination root; overrides 'tooldirectory' in the tool list.",
    ),
) -> None:
    """List configured tools with their installed version, if any."""
    settings = FetcherSettings()
    config, root = load_tool_list(settings, config_path, tools_dir)

    store = ManifestStore()
    rows = [(tool, store.load(tool.destination(root))) for tool in config.tools]
    ReportRenderer(console).print_tool_list(rows, str(root))
