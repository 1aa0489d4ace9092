"""Log file setup for the updater."""

import logging
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "packer_updater"

LOG_FORMAT = "[%(asctime)s] [%(severity)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SEVERITY_TAGS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}


class SeverityFormatter(logging.Formatter):
    """Formatter that tags entries with INFO/WARN/ERROR."""

    def format(self, record: logging.LogRecord) -> str:
        record.severity = _SEVERITY_TAGS.get(record.levelno, record.levelname)
        return super().format(record)


def configure_logging(log_file: Optional[Path], verbose: bool = False) -> logging.Logger:
    """Attach handlers to the package logger.

    Args:
        log_file: Append-only log file (None disables file logging)
        verbose: Include debug entries and mirror the log to stderr

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = SeverityFormatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            print(f"Warning: cannot open log file {log_file}: {e}", file=sys.stderr)
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    if verbose:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
