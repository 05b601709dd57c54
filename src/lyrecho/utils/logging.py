"""Logging configuration for lyrecho.

Everything logs under the ``lyrecho`` namespace. Console output goes to
stderr; ``player watch`` and the listing commands own stdout.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

ROOT_LOGGER = "lyrecho"

NOISY_LOGGERS = ("urllib3", "requests", "jeepney")

SHORT_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s [%(threadName)s] %(name)s %(levelname)s: %(message)s"


def _formatter(verbose: bool) -> logging.Formatter:
    return logging.Formatter(VERBOSE_FORMAT if verbose else SHORT_FORMAT)


def setup_logging(
    level: str = "INFO", log_file: Optional[Path] = None, verbose: bool = False
) -> logging.Logger:
    """Configure the lyrecho logger; safe to call more than once."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG if log_file else getattr(logging, level.upper()))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper()))
    console.setFormatter(_formatter(verbose))
    logger.addHandler(console)

    # the file log always carries debug detail
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(_formatter(True))
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)
