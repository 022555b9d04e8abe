"""Glue around the yt-dlp package: metadata extraction and format shaping."""

from .formats import build_preview, choose_format_selector, find_format
from .metadata import MetadataFetcher, fetch_media_info

__all__ = [
    "MetadataFetcher",
    "build_preview",
    "choose_format_selector",
    "fetch_media_info",
    "find_format",
]
