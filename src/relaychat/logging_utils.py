"""Logging setup shared by the relay server and the chat GUI.

Both processes log through the standard library. :func:`configure_logging`
attaches a size-rotated file handler (and optionally a console handler) to the
root logger; calling it again replaces only the handlers it installed itself.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

__all__ = ["configure_logging", "resolve_level"]

_MANAGED = "_relaychat_handler"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def log_directory() -> Path:
    override = os.environ.get("RELAYCHAT_LOG_DIR")
    if override:
        return Path(override).expanduser()
    here = Path(__file__).resolve()
    for parent in here.parents:
        if (parent / "pyproject.toml").exists():
            return parent / "logs"
    return Path.cwd() / "logs"


def resolve_level(default: int = logging.INFO) -> int:
    """Level from ``RELAYCHAT_LOG_LEVEL`` (name or number), else ``default``."""
    raw = os.environ.get("RELAYCHAT_LOG_LEVEL", "").strip()
    if not raw:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else default


def configure_logging(
    log_name: str,
    *,
    level: Optional[int] = None,
    log_dir: Optional[Path] = None,
    include_console: bool = True,
    max_bytes: int = 5_000_000,
    backup_count: int = 3,
) -> Path:
    """Route root logging to ``<log_dir>/<log_name>.log`` and return that path."""
    level = resolve_level() if level is None else level
    directory = Path(log_dir).expanduser() if log_dir else log_directory()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / f"{log_name}.log"

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, _MANAGED, False):
            root.removeHandler(handler)
            handler.close()

    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if include_console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        setattr(handler, _MANAGED, True)
        root.addHandler(handler)

    # httpx logs every request at INFO; keep it out of the chat logs.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.captureWarnings(True)
    return log_path
