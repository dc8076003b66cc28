"""
Logging setup for the tablesync command line.

Library modules only create loggers with ``logging.getLogger(__name__)``;
handlers are attached here, once, by the CLI.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig


LOGGER_NAME = "tablesync"


def configure_logging(
    config: LoggingConfig,
    console: Optional[Console] = None,
    debug: bool = False,
) -> logging.Logger:
    """
    Attach handlers to the ``tablesync`` logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        config: Logging section of the configuration
        console: Console the rich handler writes to
        debug: Force DEBUG level regardless of ``config.level``
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if debug else getattr(logging, config.level)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if config.rich:
        stream_handler: logging.Handler = RichHandler(
            console=console,
            show_path=debug,
            rich_tracebacks=debug,
            markup=False,
        )
        stream_handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(logging.Formatter(config.format))
    logger.addHandler(stream_handler)

    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
