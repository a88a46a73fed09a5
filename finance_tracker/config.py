"""Settings read from the environment (and a local ``.env`` file)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _is_log_level(name: str) -> bool:
    return isinstance(logging.getLevelName(name), int)


class Config:
    APP_NAME = "finance-tracker"

    def __init__(self) -> None:
        self.DATA_DIR = Path(os.getenv("TRACKER_DATA_DIR", "saves")).expanduser()
        self.SAVE_NAME = os.getenv("TRACKER_SAVE_NAME", "default")
        self.LOG_LEVEL = os.getenv("TRACKER_LOG_LEVEL", "INFO").strip().upper()
        self.REJECTED_LOG_LEVEL = None
        if not _is_log_level(self.LOG_LEVEL):
            self.REJECTED_LOG_LEVEL, self.LOG_LEVEL = self.LOG_LEVEL, "INFO"
        self.LOG_TO_FILE = _env_bool("TRACKER_LOG_TO_FILE", default=True)

    @property
    def save_path(self) -> Path:
        return self.DATA_DIR / f"{self.SAVE_NAME}.json"

    @property
    def log_dir(self) -> Path:
        return self.DATA_DIR / "logs"
