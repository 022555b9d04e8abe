from __future__ import annotations

import math
import re
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

_ANSI_ESCAPE_RE = re.compile(r"\x1B[@-_][0-?]*[ -/]*[@-~]")
_UNSAFE_FILENAME_RE = re.compile(r'[/\\?%*:|"<>]')
_FALLBACK_FILENAME = "video"


def truncate_string(value: Optional[str], limit: int = 800) -> Optional[str]:
    if not value:
        return None
    text = value.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def to_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            numeric = float(text)
        except ValueError:
            return None
    if math.isnan(numeric) or math.isinf(numeric):
        return None
    return numeric


def normalize_percent(value: Any) -> Optional[float]:
    if isinstance(value, str) and value.strip().endswith("%"):
        value = value.strip()[:-1]
    numeric = to_float(value)
    if numeric is None:
        return None
    clamped = max(0.0, min(numeric, 100.0))
    return round(clamped, 2)


def strip_ansi(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    cleaned = _ANSI_ESCAPE_RE.sub("", text)
    trimmed = cleaned.strip()
    return trimmed or None


def safe_filename(title: Optional[str]) -> str:
    """Replace path-hostile characters so ``title`` can be used as a file name."""
    if not title:
        return _FALLBACK_FILENAME
    cleaned = _UNSAFE_FILENAME_RE.sub("_", title).strip()
    return cleaned or _FALLBACK_FILENAME


def generate_job_id() -> str:
    return secrets.token_hex(8)
