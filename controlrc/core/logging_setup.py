"""Application-wide logging helpers with rotating files.

Each module logs to its own ``<name>.log`` under ``LOG_DIR`` (default
``logs/``). ``LOG_LEVEL`` raises or lowers the default level, e.g.
``LOG_LEVEL=DEBUG`` to trace every byte sent over the link.
"""
from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


def default_log_dir() -> Path:
    return Path(os.environ.get("LOG_DIR", "logs"))


def default_level() -> int:
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, log_dir: Optional[Path] = None, *, level: Optional[int] = None) -> logging.Logger:
    log_dir = log_dir or default_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    logger = logging.getLogger(f"controlrc.{name}")
    if logger.handlers:
        return logger

    logger.setLevel(default_level() if level is None else level)
    log_path = log_dir / f"{name}.log"
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False
    return logger
