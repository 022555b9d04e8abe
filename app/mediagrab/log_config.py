"""File logger for the Mediagrab backend.

Entries look like ``[VERBOSE][2024-05-01T10:00:00.000000Z] job_created: {...}``
and are appended to ``logs.txt`` inside the configured cache directory.
"""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import Any, Optional, Union

from .config import get_server_environment
from .utils import now_iso

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _read_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


DEBUG = _read_flag("MEDIAGRAB_SERVER_DEBUG", False)
VERBOSE = _read_flag("MEDIAGRAB_SERVER_VERBOSE", True)

LOG_FILE_NAME = "logs.txt"

_log_folder: Optional[Path] = None
_write_lock = threading.Lock()


def configure_log_folder(folder: Union[str, Path]) -> None:
    """Send subsequent entries to ``folder``, normally the settings' cache dir."""
    global _log_folder
    _log_folder = Path(folder)


def log_file_path() -> Path:
    folder = _log_folder or get_server_environment().cache_dir
    return folder / LOG_FILE_NAME


def _write(level: str, label: str, payload: Any) -> None:
    line = f"[{level}][{now_iso()}] {label}: {payload}\n"
    encoding = getattr(sys.stdout, "encoding", None) or "utf-8"
    with _write_lock:
        path = log_file_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding=encoding, errors="replace") as log_file:
            log_file.write(line)


def verbose_log(label: str, payload: Any) -> None:
    """Record a lifecycle event unless verbose logging is switched off."""
    if VERBOSE:
        _write("VERBOSE", label, payload)


def debug_verbose(label: str, payload: Any) -> None:
    """Record high-volume detail such as raw worker output; debug mode only."""
    if DEBUG:
        _write("DEBUG", label, payload)


__all__ = [
    "DEBUG",
    "VERBOSE",
    "configure_log_folder",
    "debug_verbose",
    "log_file_path",
    "verbose_log",
]
