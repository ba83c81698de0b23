"""Logging setup.

Library modules only call ``logging.getLogger(__name__)``; handlers are
installed by the process entry point (the CLI) through ``configure_logging``.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(level: str | int = "INFO", console: Console | None = None) -> None:
    """Route the ``wifigate`` logger tree through a Rich handler on stderr."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))

    root = logging.getLogger("wifigate")
    for existing in list(root.handlers):
        if isinstance(existing, RichHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
