"""Logging helpers."""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)


def configure_logging(level: str = "INFO") -> None:
    """Install a Rich-powered handler on the root logger."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=False, markup=False)],
        force=True,
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "aicore")
