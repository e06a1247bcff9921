"""Log-level and log-file plumbing for the CLI.

Library modules only ever call ``logging.getLogger(__name__)``; this is the
one place handlers are attached, and only to the ``toolfetcher`` logger so
embedding applications keep control of the root logger.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "toolfetcher"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(
    level: str | int = "INFO",
    log_file: Path | None = None,
    *,
    console: Console | None = None,
) -> logging.Logger:
    """Attach a Rich console handler (and optionally a file handler).

    Calling it again replaces the handlers installed by the previous call.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"unknown log level: {level!r}")
        level = numeric

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(level)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        # The file always gets DEBUG detail; the console keeps *level*.
        logger.setLevel(min(level, logging.DEBUG))

    return logger
