from __future__ import annotations

import sys
from pathlib import Path

import pytest

from mediagrab import log_config
from mediagrab.config import load_server_environment
from mediagrab.download import DownloadManager

from fakes import make_settings


def test_defaults(tmp_path: Path) -> None:
    settings = load_server_environment(
        {
            "MEDIAGRAB_TEMP_DIR": str(tmp_path / "downloads"),
            "MEDIAGRAB_CACHE_DIR": str(tmp_path / "cache"),
        }
    )

    assert settings.port == 8081
    assert settings.host == "0.0.0.0"
    assert settings.log_level == "info"
    assert settings.worker_command == (sys.executable, "-m", "yt_dlp")
    assert settings.worker_extra_args == ("--force-ipv4",)
    assert settings.retention_seconds == 600
    assert settings.unstarted_ttl_seconds == 3600
    assert settings.cors_origins == ("*",)
    assert settings.temp_dir.is_dir()
    assert settings.cache_dir.is_dir()


def test_overrides(tmp_path: Path) -> None:
    cookies = tmp_path / "cookies.txt"
    settings = load_server_environment(
        {
            "MEDIAGRAB_TEMP_DIR": str(tmp_path / "downloads"),
            "MEDIAGRAB_CACHE_DIR": str(tmp_path / "cache"),
            "MEDIAGRAB_SERVER_PORT": " 9000 ",
            "MEDIAGRAB_SERVER_LOG_LEVEL": "DEBUG",
            "MEDIAGRAB_WORKER_COMMAND": "/usr/local/bin/yt-dlp --ignore-config",
            "MEDIAGRAB_WORKER_EXTRA_ARGS": "",
            "MEDIAGRAB_RETENTION_SECONDS": "0.5",
            "MEDIAGRAB_COOKIES_FILE": str(cookies),
            "MEDIAGRAB_CORS_ORIGINS": "http://localhost:5173, https://app.example",
        }
    )

    assert settings.port == 9000
    assert settings.log_level == "debug"
    assert settings.worker_command == ("/usr/local/bin/yt-dlp", "--ignore-config")
    # Blank values fall back to the default.
    assert settings.worker_extra_args == ("--force-ipv4",)
    assert settings.retention_seconds == 0.5
    assert settings.cors_origins == ("http://localhost:5173", "https://app.example")
    assert settings.cookies_path() is None

    cookies.write_text("# Netscape HTTP Cookie File\n")
    assert settings.cookies_path() == cookies


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("MEDIAGRAB_SERVER_PORT", "eighty"),
        ("MEDIAGRAB_RETENTION_SECONDS", "soon"),
        ("MEDIAGRAB_KILL_GRACE_SECONDS", "-1"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, key: str, value: str) -> None:
    with pytest.raises(RuntimeError):
        load_server_environment(
            {
                "MEDIAGRAB_TEMP_DIR": str(tmp_path / "downloads"),
                "MEDIAGRAB_CACHE_DIR": str(tmp_path / "cache"),
                key: value,
            }
        )


def test_manager_routes_log_file_to_cache_dir(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(log_config, "_log_folder", None)
    monkeypatch.setattr(log_config, "VERBOSE", True)
    settings = make_settings(tmp_path)

    DownloadManager(settings)
    log_config.verbose_log("cache_check", {"ok": True})

    assert log_config.log_file_path() == settings.cache_dir / "logs.txt"
    contents = (settings.cache_dir / "logs.txt").read_text()
    assert "cache_check: {'ok': True}" in contents
