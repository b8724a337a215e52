"""Logging configuration for the kswitch CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "kswitch"


def configure_logging(verbose: bool = False) -> logging.Logger:
    """Attach a rich stderr handler to the package logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=True,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    return logger
