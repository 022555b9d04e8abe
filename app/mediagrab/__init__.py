"""Mediagrab: supervised yt-dlp downloads behind a small HTTP API."""

__version__ = "0.1.0"
