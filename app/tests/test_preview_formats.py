from __future__ import annotations

from typing import Any, Dict, List

import pytest

from mediagrab.core.formats import build_preview, quality_label, select_formats

from fakes import SAMPLE_INFO


def _info(formats: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"title": "Clip", "formats": formats}


def _video(format_id: str, height: int, ext: str = "mp4", **extra: Any) -> Dict[str, Any]:
    entry: Dict[str, Any] = {
        "format_id": format_id,
        "ext": ext,
        "height": height,
        "vcodec": "avc1",
        "acodec": "none",
    }
    entry.update(extra)
    return entry


def test_preview_lists_one_format_per_height() -> None:
    preview = build_preview(SAMPLE_INFO)

    assert preview["title"] == "Sample: Clip?"
    assert preview["thumbnail"] == "https://img.example/abc123.jpg"
    assert preview["duration"] == 212
    assert preview["views"] == 1500
    assert [entry["format_id"] for entry in preview["formats"]] == ["137", "18"]
    assert [entry["quality"] for entry in preview["formats"]] == ["1080p HD", "360p"]
    assert preview["formats"][0]["ext"] == "mp4"
    assert preview["formats"][0]["filesize"] == 40_000_000


def test_preview_url_prefers_formats_with_audio() -> None:
    preview = build_preview(SAMPLE_INFO)

    assert preview["preview_url"] == "https://media.example/18"


def test_preview_url_falls_back_to_video_only() -> None:
    preview = build_preview(_info([_video("22", 720, url="https://media.example/22")]))

    assert preview["preview_url"] == "https://media.example/22"


def test_preview_without_formats() -> None:
    preview = build_preview({"title": "Clip"})

    assert preview["formats"] == []
    assert preview["preview_url"] is None
    assert preview["views"] == 0


def test_mp4_wins_over_larger_webm_at_same_height() -> None:
    formats = select_formats(
        _info(
            [
                _video("248", 1080, ext="webm", filesize=90_000_000),
                _video("137", 1080, filesize=10_000_000),
            ]
        )
    )

    assert [entry["format_id"] for entry in formats] == ["137"]


def test_larger_file_wins_between_same_containers() -> None:
    formats = select_formats(
        _info(
            [
                _video("136", 720, filesize=1_000),
                _video("298", 720, filesize_approx=5_000),
            ]
        )
    )

    assert [entry["format_id"] for entry in formats] == ["298"]
    assert formats[0]["filesize"] == 5_000


def test_unlistable_formats_are_dropped() -> None:
    formats = select_formats(
        _info(
            [
                _video("sb1", 180),
                _video("hls", 720, protocol="mhtml"),
                _video("low", 120),
                _video("nd", 480, format_note="default"),
                _video("sheet", 240, format_note="storyboard"),
                {"format_id": "140", "ext": "m4a", "vcodec": "none", "acodec": "mp4a"},
                _video("noheight", 0),
                _video("ok", 144),
            ]
        )
    )

    assert [entry["format_id"] for entry in formats] == ["ok"]


@pytest.mark.parametrize(
    ("height", "label"),
    [(2160, "2160p 4K"), (1440, "1440p 2K"), (1080, "1080p HD"), (720, "720p"), (4320, "4320p 4K")],
)
def test_quality_label(height: int, label: str) -> None:
    assert quality_label(height) == label
