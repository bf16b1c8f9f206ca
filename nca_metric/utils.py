"""Logging helpers shared across modules."""

from __future__ import annotations

import contextlib
import logging
import time
from typing import Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler


def configure_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Route log records through rich; DEBUG when ``verbose``."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@contextlib.contextmanager
def section(name: str) -> Iterator[None]:
    """Log entry, exit and wall time of a pipeline section."""
    logger = logging.getLogger(__name__)
    logger.info("Starting %s", name)
    started = time.perf_counter()
    try:
        yield
    finally:
        logger.info("Finished %s in %.2fs", name, time.perf_counter() - started)
