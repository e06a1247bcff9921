"""``toolfetcher fetch`` — install or update the configured tools.

Loads the tool list, prepares the destination root, then hands every tool
to the lifecycle dispatcher.  Per-tool failures show up in the summary
table; only a broken configuration or an unusable destination root makes
the command exit non-zero.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from toolfetcher.cli.logging_setup import configure_logging
from toolfetcher.cli.renderer import ReportRenderer
from toolfetcher.config import FetcherSettings
from toolfetcher.core.config_loader import load_config, resolve_tools_root
from toolfetcher.core.dispatcher import (
    LifecycleDispatcher,
    SelectionPolicy,
    ensure_tools_root,
)
from toolfetcher.errors import ConfigError, DestinationError
from toolfetcher.models.tools import ToolsConfig

console = Console()


def split_names(values: Optional[List[str]]) -> list[str]:
    """Flatten repeated and comma-separated ``--update`` values."""
    names: list[str] = []
    for value in values or []:
        names.extend(part.strip() for part in value.split(",") if part.strip())
    return names


def load_tool_list(
    settings: FetcherSettings,
    config_path: Optional[Path],
    tools_dir: Optional[Path],
) -> tuple[ToolsConfig, Path]:
    """Load the tool list and pick the destination root, or exit with code 1."""
    path = config_path or settings.config_path
    try:
        config = load_config(path)
    except ConfigError as exc:
        console.print(f"[bold red]Configuration error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    root = resolve_tools_root(
        config,
        tools_dir or settings.tools_dir,
        base_dir=Path(path).parent,
    )
    return config, root


def fetch_cmd(
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
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Re-fetch every tool not marked SkipDownload, installed or not.",
    ),
    update_all: bool = typer.Option(
        False,
        "--update-all",
        "-U",
        help="Re-fetch every tool that is already installed.",
    ),
    update: Optional[List[str]] = typer.Option(
        None,
        "--update",
        "-u",
        help="Re-fetch only the named tool (repeatable, or comma-separated).",
    ),
    token: Optional[str] = typer.Option(
        None,
        "--token",
        help="GitHub token (default: TOOLFETCHER_GITHUB_TOKEN or GITHUB_TOKEN).",
        show_default=False,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log at DEBUG level.",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also write a detailed log to this file.",
    ),
    show_skipped: bool = typer.Option(
        False,
        "--show-skipped",
        help="List skipped tools in the summary table too.",
    ),
) -> None:
    """Download, unpack and install the configured tools.

    By default only tools that are not installed yet are fetched.
    """
    settings = FetcherSettings()
    overrides: dict[str, object] = {}
    if token:
        overrides["github_token"] = token
    if log_file is not None:
        overrides["log_file"] = log_file
    if overrides:
        settings = settings.model_copy(update=overrides)

    try:
        configure_logging(
            "DEBUG" if verbose else settings.log_level,
            settings.log_file,
            console=Console(stderr=True),
        )
    except (ValueError, OSError) as exc:
        console.print(f"[bold red]Logging setup failed:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    config, root = load_tool_list(settings, config_path, tools_dir)

    try:
        root = ensure_tools_root(root)
    except DestinationError as exc:
        console.print(f"[bold red]Destination error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc

    policy = SelectionPolicy(
        force=force,
        update_all=update_all,
        update_names=split_names(update),
    )
    dispatcher = LifecycleDispatcher.from_settings(settings, root)
    report = dispatcher.run(config.tools, policy)

    ReportRenderer(console).print_report(report, show_skipped=show_skipped)
