"""Console and file logging for archsetup.

The console handler is a :class:`rich.logging.RichHandler`; an optional
plain-text file handler keeps a full run log next to the command
transcript. A ``SUCCESS`` level sits between INFO and WARNING.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

#: Custom level between INFO (20) and WARNING (30).
SUCCESS_LEVEL = 25

#: Root logger of the package; every module logs below it.
LOGGER_NAME = "archsetup"

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")


def log_success(logger: logging.Logger, message: str, *args: object) -> None:
    """Log ``message`` at the SUCCESS level."""
    if logger.isEnabledFor(SUCCESS_LEVEL):
        logger.log(SUCCESS_LEVEL, message, *args)


def configure_logging(
    level: str | int = "INFO",
    *,
    log_file: str | Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Install handlers on the ``archsetup`` logger.

    Calling it again replaces the handlers it installed before.

    Args:
        level: Console level name or number.
        log_file: Optional path of a DEBUG-level run log.
        console: Console for the rich handler (stderr by default).

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    console_handler.setLevel(level if isinstance(level, int) else level.upper())
    logger.addHandler(console_handler)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = [
    "LOGGER_NAME",
    "SUCCESS_LEVEL",
    "configure_logging",
    "log_success",
]
