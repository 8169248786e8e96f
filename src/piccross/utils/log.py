import logging

from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = "%(message)s"
LOG_DATE_FORMAT = "[%X]"


def setup_logging(level: str = "INFO", console: Console | None = None) -> None:
    """Route the package loggers through rich."""
    handler = RichHandler(console=console, show_path=False, markup=False)
    logging.basicConfig(
        level=level.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[handler],
        force=True,
    )
