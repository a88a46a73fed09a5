"""Logger setup: console output plus a rotating log file in the data directory."""

from __future__ import annotations

import logging
import logging.handlers

from .config import Config

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s.%(funcName)s:%(lineno)d %(message)s"


def setup_logging(config: Config) -> logging.Logger:
    """Configure the ``finance_tracker`` logger tree and return its root.

    Console output only shows warnings and above so it does not interleave
    with the shell; the log file records everything at ``LOG_LEVEL``.
    """
    root_logger = logging.getLogger("finance_tracker")
    root_logger.setLevel(config.LOG_LEVEL)
    root_logger.propagate = False

    # Avoid duplicate handlers when the shell is restarted in-process
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    if config.LOG_TO_FILE:
        config.log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=config.log_dir / "tracker.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)

    if config.REJECTED_LOG_LEVEL is not None:
        root_logger.warning("Unknown TRACKER_LOG_LEVEL %r, using INFO", config.REJECTED_LOG_LEVEL)
    root_logger.debug("Logging initialized (data dir %s)", config.DATA_DIR)
    return root_logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"finance_tracker.{name}")
