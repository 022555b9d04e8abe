from .helpers import (
    generate_job_id,
    normalize_percent,
    now_iso,
    safe_filename,
    strip_ansi,
    to_float,
    truncate_string,
)

__all__ = [
    "generate_job_id",
    "normalize_percent",
    "now_iso",
    "safe_filename",
    "strip_ansi",
    "to_float",
    "truncate_string",
]
