"""
Logging setup for the command line entry point.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are attached here so embedding applications keep control of their own output.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console or Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
