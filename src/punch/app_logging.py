"""Logging configuration helpers."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Attach a single rich handler to the ``punch`` logger."""
    logger = logging.getLogger("punch")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    if logger.handlers:
        return
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        show_level=True,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
