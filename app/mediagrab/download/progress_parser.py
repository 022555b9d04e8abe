"""Translate yt-dlp diagnostic text into structured progress updates.

This module is the only place that knows how the worker phrases its
progress lines. Everything downstream consumes :class:`ProgressUpdate`
and :class:`FatalSignal` instances.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ..utils import normalize_percent, strip_ansi

_PERCENT_RE = re.compile(r"(\d{1,3}\.\d+|\d{1,3})%")
_TOTAL_RE = re.compile(r"\bof\s+~?\s*([0-9.]+)([KMG]i?B)", re.IGNORECASE)
_SPEED_RE = re.compile(r"\bat\s+([0-9.]+[KMG]i?B/s)", re.IGNORECASE)
_ETA_RE = re.compile(r"\bETA\s+([0-9:]+)", re.IGNORECASE)
_ETA_ALT_RE = re.compile(r"\bin\s+([0-9:]+)", re.IGNORECASE)
_LINE_SPLIT_RE = re.compile(r"\r\n|\r|\n")

FATAL_MARKERS: Tuple[str, ...] = ("ERROR:", "Traceback")


@dataclass(frozen=True)
class ProgressUpdate:
    percent: Optional[float] = None
    total: Optional[str] = None
    speed: Optional[str] = None
    eta: Optional[str] = None

    def is_empty(self) -> bool:
        return (
            self.percent is None
            and self.total is None
            and self.speed is None
            and self.eta is None
        )

    def to_payload(self) -> dict:
        payload = {}
        if self.percent is not None:
            payload["percent"] = self.percent
        if self.total is not None:
            payload["total"] = self.total
        if self.speed is not None:
            payload["speed"] = self.speed
        if self.eta is not None:
            payload["eta"] = self.eta
        return payload


@dataclass(frozen=True)
class FatalSignal:
    line: str


ParsedLine = Union[ProgressUpdate, FatalSignal]


def detect_fatal(line: str) -> Optional[FatalSignal]:
    """Return a :class:`FatalSignal` when ``line`` carries an error marker."""
    if not line:
        return None
    for marker in FATAL_MARKERS:
        if marker in line:
            return FatalSignal(line=strip_ansi(line) or line.strip())
    return None


def parse_progress(line: str) -> Optional[ProgressUpdate]:
    """Extract progress tokens from a single line, or ``None`` if there are none."""
    if not line:
        return None
    text = strip_ansi(line)
    if not text:
        return None

    percent: Optional[float] = None
    percent_match = _PERCENT_RE.search(text)
    if percent_match:
        percent = normalize_percent(percent_match.group(1))

    total: Optional[str] = None
    total_match = _TOTAL_RE.search(text)
    if total_match:
        total = f"{total_match.group(1)}{total_match.group(2)}"

    speed: Optional[str] = None
    speed_match = _SPEED_RE.search(text)
    if speed_match:
        speed = speed_match.group(1)

    eta: Optional[str] = None
    eta_match = _ETA_RE.search(text) or _ETA_ALT_RE.search(text)
    if eta_match:
        eta = eta_match.group(1)

    update = ProgressUpdate(percent=percent, total=total, speed=speed, eta=eta)
    if update.is_empty():
        return None
    return update


def parse_line(line: str) -> List[ParsedLine]:
    """Classify one line. A fatal marker always comes first when present."""
    results: List[ParsedLine] = []
    fatal = detect_fatal(line)
    if fatal is not None:
        results.append(fatal)
    update = parse_progress(line)
    if update is not None:
        results.append(update)
    return results


class LineBuffer:
    """Reassemble lines from arbitrarily split byte chunks.

    yt-dlp rewrites its progress line with carriage returns when
    ``--newline`` is not honoured, so both ``\\r`` and ``\\n`` terminate
    a line here.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, data: Union[bytes, str]) -> List[str]:
        if isinstance(data, bytes):
            data = self._decoder.decode(data)
        text = self._pending + data
        parts = _LINE_SPLIT_RE.split(text)
        self._pending = parts.pop()
        return [part for part in parts if part.strip()]

    def flush(self) -> List[str]:
        remainder = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [remainder] if remainder.strip() else []


__all__ = [
    "FATAL_MARKERS",
    "FatalSignal",
    "LineBuffer",
    "ParsedLine",
    "ProgressUpdate",
    "detect_fatal",
    "parse_line",
    "parse_progress",
]
