"""toolfetcher CLI, built on Typer.

Provides the ``toolfetcher`` command with ``fetch`` and ``list``
subcommands. All output uses Rich for formatted terminal display.
"""
