"""Logging setup shared by every module (stdlib ``logging``).

Console output goes to stdout at ``LOG_LEVEL``. Unless ``LOG_TO_FILE`` is off,
a dated file under ``logs/`` (or ``LOG_DIR``) also receives DEBUG and up.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date
from pathlib import Path

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
QUIET_LOGGERS = ("urllib3", "httpx", "httpcore")

_console: logging.Handler | None = None


def _level(name: str | None) -> int:
    value = logging.getLevelName((name or "INFO").upper())
    return value if isinstance(value, int) else logging.INFO


def _env_flag(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


def _file_handler(log_dir: Path) -> logging.Handler | None:
    # Read-only checkouts just lose the file log.
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / f"gigradar_{date.today():%Y-%m-%d}.log", encoding="utf-8")
    except OSError:
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def configure_logging(level: str | None = None, *, to_file: bool | None = None) -> None:
    """Install the root handlers; a repeat call only changes the console level."""
    global _console
    console_level = _level(level or os.environ.get("LOG_LEVEL"))
    root = logging.getLogger()

    if _console is not None:
        _console.setLevel(console_level)
        root.setLevel(min(root.level, console_level))
        return

    _console = logging.StreamHandler(sys.stdout)
    _console.setLevel(console_level)
    _console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(_console)
    root.setLevel(console_level)

    if to_file is None:
        to_file = _env_flag("LOG_TO_FILE", True)
    if to_file:
        fh = _file_handler(Path(os.environ.get("LOG_DIR") or DEFAULT_LOG_DIR))
        if fh is not None:
            root.addHandler(fh)
            root.setLevel(logging.DEBUG)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger, configuring the root on first use."""
    if _console is None:
        configure_logging()
    return logging.getLogger(name)
