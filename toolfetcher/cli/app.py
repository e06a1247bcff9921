"""Main Typer application — registers the CLI commands.

Entry point: ``toolfetcher`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import typer

from toolfetcher.cli.commands.fetch import fetch_cmd
from toolfetcher.cli.commands.list_cmd import list_cmd

app = typer.Typer(
    name="toolfetcher",
    help="toolfetcher: fetch, unpack and track third-party tools from GitHub.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.command(name="fetch", help="Install or update the configured tools.")(fetch_cmd)
app.command(name="list", help="Show configured tools and their installed versions.")(list_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
