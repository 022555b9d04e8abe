"""Format listing helpers used by the preview endpoint and the worker command."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Mapping, Optional, TypedDict

from ..config import (
    AUDIO_FORMAT_SELECTOR,
    DEFAULT_FORMAT_SELECTOR,
    MediaType,
    PAIRED_AUDIO_SUFFIX,
)
from ..models.shared import JSONValue, JsonDict, get_int, get_list, get_str
from ..utils import to_float

MIN_PREVIEW_HEIGHT = 144
PREVIEW_CONTAINERS = frozenset({"mp4", "webm"})
PREFERRED_CONTAINER = "mp4"
_EXCLUDED_PROTOCOLS = frozenset({"mhtml", "https_html"})
_STORYBOARD_ID_RE = re.compile(r"^sb\d+")
_EXCLUDED_NOTE_MARKERS = ("storyboard", "default")


class PreviewFormatPayload(TypedDict):
    format_id: Optional[str]
    ext: Optional[str]
    quality: str
    filesize: Optional[int]
    acodec: Optional[str]
    vcodec: Optional[str]
    url: Optional[str]
    note: Optional[str]


class PreviewPayload(TypedDict):
    title: Optional[str]
    thumbnail: Optional[str]
    duration: Optional[JSONValue]
    views: int
    formats: List[PreviewFormatPayload]
    preview_url: Optional[str]


def iter_formats(info: Mapping[str, JSONValue]) -> Iterable[JsonDict]:
    for entry in get_list(info, "formats") or []:
        if isinstance(entry, dict):
            yield entry


def find_format(
    info: Mapping[str, JSONValue], format_id: Optional[str]
) -> Optional[JsonDict]:
    if not format_id:
        return None
    for entry in iter_formats(info):
        candidate = entry.get("format_id")
        if candidate is not None and str(candidate) == str(format_id):
            return entry
    return None


def _reported_size(entry: Mapping[str, JSONValue]) -> int:
    size = to_float(entry.get("filesize")) or to_float(entry.get("filesize_approx"))
    return int(size) if size else 0


def _is_listable(entry: Mapping[str, JSONValue]) -> bool:
    if get_str(entry, "protocol") in _EXCLUDED_PROTOCOLS:
        return False
    format_id = entry.get("format_id")
    if format_id is not None and _STORYBOARD_ID_RE.match(str(format_id)):
        return False
    note = get_str(entry, "format_note")
    if note and any(marker in note for marker in _EXCLUDED_NOTE_MARKERS):
        return False
    if get_str(entry, "vcodec") == "none":
        return False
    height = get_int(entry, "height")
    return bool(height) and height >= MIN_PREVIEW_HEIGHT


def _prefer(candidate: JsonDict, existing: JsonDict) -> bool:
    """Whether ``candidate`` should replace ``existing`` at the same height."""
    candidate_mp4 = get_str(candidate, "ext") == PREFERRED_CONTAINER
    existing_mp4 = get_str(existing, "ext") == PREFERRED_CONTAINER
    if candidate_mp4 != existing_mp4:
        return candidate_mp4
    return _reported_size(candidate) > _reported_size(existing)


def quality_label(height: int) -> str:
    label = f"{height}p"
    if height >= 2160:
        return f"{label} 4K"
    if height >= 1440:
        return f"{label} 2K"
    if height == 1080:
        return f"{label} HD"
    return label


def select_formats(info: Mapping[str, JSONValue]) -> List[PreviewFormatPayload]:
    """One entry per vertical resolution, tallest first."""
    by_height: Dict[int, JsonDict] = {}
    for entry in iter_formats(info):
        if not _is_listable(entry):
            continue
        height = get_int(entry, "height") or 0
        existing = by_height.get(height)
        if existing is None or _prefer(entry, existing):
            by_height[height] = entry

    formats: List[PreviewFormatPayload] = []
    for height in sorted(by_height, reverse=True):
        entry = by_height[height]
        format_id = entry.get("format_id")
        formats.append(
            {
                "format_id": None if format_id is None else str(format_id),
                "ext": get_str(entry, "ext"),
                "quality": quality_label(height),
                "filesize": _reported_size(entry) or None,
                "acodec": get_str(entry, "acodec"),
                "vcodec": get_str(entry, "vcodec"),
                "url": get_str(entry, "url") or None,
                "note": get_str(entry, "format_note"),
            }
        )
    return formats


def pick_preview_url(formats: Iterable[PreviewFormatPayload]) -> Optional[str]:
    candidates = [
        entry
        for entry in formats
        if entry["url"]
        and entry["ext"] in PREVIEW_CONTAINERS
        and entry["vcodec"] != "none"
    ]
    for entry in candidates:
        if entry["acodec"] != "none":
            return entry["url"]
    for entry in candidates:
        return entry["url"]
    return None


def build_preview(info: Mapping[str, JSONValue]) -> PreviewPayload:
    formats = select_formats(info)
    return {
        "title": get_str(info, "title"),
        "thumbnail": get_str(info, "thumbnail"),
        "duration": info.get("duration"),
        "views": get_int(info, "view_count") or 0,
        "formats": formats,
        "preview_url": pick_preview_url(formats),
    }


def choose_format_selector(
    media_type: MediaType,
    format_id: Optional[str],
    info: Mapping[str, JSONValue],
) -> str:
    """Build the ``-f`` selector handed to the worker.

    A video-only encoding is paired with the best audio stream so the merged
    file has sound.
    """

    if media_type is MediaType.AUDIO:
        return AUDIO_FORMAT_SELECTOR
    if not format_id:
        return DEFAULT_FORMAT_SELECTOR
    entry = find_format(info, format_id)
    if (
        entry is not None
        and get_str(entry, "vcodec") != "none"
        and get_str(entry, "acodec") == "none"
    ):
        return f"{format_id}{PAIRED_AUDIO_SUFFIX}"
    return format_id


def format_height(info: Mapping[str, JSONValue], format_id: Optional[str]) -> Optional[int]:
    entry = find_format(info, format_id)
    if entry is None:
        return None
    return get_int(entry, "height")


__all__ = [
    "MIN_PREVIEW_HEIGHT",
    "PreviewFormatPayload",
    "PreviewPayload",
    "build_preview",
    "choose_format_selector",
    "find_format",
    "format_height",
    "pick_preview_url",
    "quality_label",
    "select_formats",
]
