"""Logging setup for the gateway process."""

import logging
from pathlib import Path

from blob_gateway.config.settings import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y/%m/%d %H:%M:%S"


def configure_logging(settings: Settings) -> None:
    """
    Configure the root logger from settings.

    Logs go to stdout unless `logfile` is set, in which case they are
    appended to that file.
    """
    if settings.logfile:
        log_path = Path(settings.logfile)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(settings.log_level.upper())
