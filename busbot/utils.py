"""
Utility helpers: logging setup and per-key async locks.
"""

from __future__ import annotations

import asyncio
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from weakref import WeakValueDictionary

from .config import LoggingConfig, get_settings


def setup_logging(logging_cfg: LoggingConfig | None = None) -> Path:
    """
    Configure application-wide logging with rotation.

    Writes to ``<logs_dir>/<log_file>`` (``logs/busbot.log`` unless
    LOG_FILE says otherwise) with rotation and mirrors to the console.
    Returns the path of the log file.
    """
    if logging_cfg is None:
        logging_cfg = get_settings().logging

    logs_dir: Path = logging_cfg.logs_dir
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / logging_cfg.log_file

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=logging_cfg.max_bytes,
        backupCount=logging_cfg.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging_cfg.log_level.upper())
    root.handlers.clear()
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return log_file


class KeyedLock:
    """
    One ``asyncio.Lock`` per key.

    Used to serialize events per chat and confirmations per vehicle.
    A lock lives only while something holds a reference to it (a task
    waiting on it or inside ``async with``), so idle chats do not pile up.
    """

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()

    def __call__(self, key: object) -> asyncio.Lock:
        name = str(key)
        lock = self._locks.get(name)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[name] = lock
        return lock

    def locked(self, key: object) -> bool:
        lock = self._locks.get(str(key))
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["setup_logging", "KeyedLock"]
