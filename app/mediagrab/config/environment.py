from __future__ import annotations

import os
import shlex
import sys
import tempfile
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

_DEFAULTS: Dict[str, str] = {
    "MEDIAGRAB_SERVER_NAME": "Mediagrab Download Service",
    "MEDIAGRAB_SERVER_HOST": "0.0.0.0",
    "MEDIAGRAB_SERVER_PORT": "8081",
    "MEDIAGRAB_SERVER_LOG_LEVEL": "info",
    "MEDIAGRAB_WORKER_EXTRA_ARGS": "--force-ipv4",
    "MEDIAGRAB_RETENTION_SECONDS": "600",
    "MEDIAGRAB_UNSTARTED_TTL_SECONDS": "3600",
    "MEDIAGRAB_KILL_GRACE_SECONDS": "5",
    "MEDIAGRAB_CORS_ORIGINS": "*",
}


@dataclass(frozen=True)
class ServerEnvironmentConfig:
    name: str
    host: str
    port: int
    log_level: str
    temp_dir: Path
    cache_dir: Path
    worker_command: Tuple[str, ...]
    worker_extra_args: Tuple[str, ...]
    cookies_file: Path
    retention_seconds: float
    unstarted_ttl_seconds: float
    kill_grace_seconds: float
    static_dir: Path
    cors_origins: Tuple[str, ...]

    def cookies_path(self) -> Optional[Path]:
        """Return the cookies file only when it is present on disk."""
        return self.cookies_file if self.cookies_file.is_file() else None


def _coalesce_env(env: Mapping[str, str], key: str, fallback: str = "") -> str:
    default = _DEFAULTS.get(key, fallback)
    value = env.get(key)
    if value is None:
        return default
    trimmed = value.strip()
    return trimmed or default


def _parse_int(env: Mapping[str, str], key: str) -> int:
    raw = _coalesce_env(env, key)
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{key}' must be an integer") from exc


def _parse_seconds(env: Mapping[str, str], key: str) -> float:
    raw = _coalesce_env(env, key)
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable '{key}' must be a number") from exc
    if value < 0:
        raise RuntimeError(f"Environment variable '{key}' cannot be negative")
    return value


def _parse_command(raw: str) -> Tuple[str, ...]:
    if not raw:
        return (sys.executable, "-m", "yt_dlp")
    return tuple(shlex.split(raw, posix=os.name != "nt"))


def _parse_origins(raw: str) -> Tuple[str, ...]:
    origins = [item.strip() for item in raw.split(",") if item.strip()]
    return tuple(origins) or ("*",)


def load_server_environment(
    env: Optional[Mapping[str, str]] = None,
) -> ServerEnvironmentConfig:
    """Build a configuration snapshot from ``env`` (defaults to ``os.environ``)."""

    source: Mapping[str, str] = os.environ if env is None else env
    cwd = Path.cwd()
    temp_dir = Path(
        _coalesce_env(source, "MEDIAGRAB_TEMP_DIR", str(cwd / "temp_downloads"))
    )
    cache_dir = Path(
        _coalesce_env(
            source,
            "MEDIAGRAB_CACHE_DIR",
            str(Path(tempfile.gettempdir()) / "mediagrab"),
        )
    )
    temp_dir.mkdir(parents=True, exist_ok=True)
    cache_dir.mkdir(parents=True, exist_ok=True)

    return ServerEnvironmentConfig(
        name=_coalesce_env(source, "MEDIAGRAB_SERVER_NAME"),
        host=_coalesce_env(source, "MEDIAGRAB_SERVER_HOST"),
        port=_parse_int(source, "MEDIAGRAB_SERVER_PORT"),
        log_level=_coalesce_env(source, "MEDIAGRAB_SERVER_LOG_LEVEL").lower(),
        temp_dir=temp_dir,
        cache_dir=cache_dir,
        worker_command=_parse_command(
            _coalesce_env(source, "MEDIAGRAB_WORKER_COMMAND")
        ),
        worker_extra_args=tuple(
            shlex.split(_coalesce_env(source, "MEDIAGRAB_WORKER_EXTRA_ARGS"))
        ),
        cookies_file=Path(
            _coalesce_env(source, "MEDIAGRAB_COOKIES_FILE", str(cwd / "cookies.txt"))
        ),
        retention_seconds=_parse_seconds(source, "MEDIAGRAB_RETENTION_SECONDS"),
        unstarted_ttl_seconds=_parse_seconds(
            source, "MEDIAGRAB_UNSTARTED_TTL_SECONDS"
        ),
        kill_grace_seconds=_parse_seconds(source, "MEDIAGRAB_KILL_GRACE_SECONDS"),
        static_dir=Path(
            _coalesce_env(source, "MEDIAGRAB_STATIC_DIR", str(cwd / "dist"))
        ),
        cors_origins=_parse_origins(_coalesce_env(source, "MEDIAGRAB_CORS_ORIGINS")),
    )


@lru_cache(maxsize=1)
def get_server_environment() -> ServerEnvironmentConfig:
    return load_server_environment()


__all__ = [
    "ServerEnvironmentConfig",
    "get_server_environment",
    "load_server_environment",
]
