from __future__ import annotations

from mediagrab.download.progress_parser import (
    FatalSignal,
    LineBuffer,
    ProgressUpdate,
    parse_line,
    parse_progress,
)


def test_full_progress_line_yields_every_token() -> None:
    update = parse_progress("[download]  42.0% of 10.00MiB at 1.20MiB/s ETA 00:05")

    assert update == ProgressUpdate(
        percent=42.0, total="10.00MiB", speed="1.20MiB/s", eta="00:05"
    )
    assert update.to_payload() == {
        "percent": 42.0,
        "total": "10.00MiB",
        "speed": "1.20MiB/s",
        "eta": "00:05",
    }


def test_estimated_total_and_alternate_eta_form() -> None:
    update = parse_progress("[download] 100% of ~ 3.50GiB in 00:03")

    assert update is not None
    assert update.percent == 100.0
    assert update.total == "3.50GiB"
    assert update.eta == "00:03"
    assert update.speed is None


def test_partial_line_only_reports_present_tokens() -> None:
    update = parse_progress("[download]   7.3% at 512.00KiB/s")

    assert update is not None
    assert update.to_payload() == {"percent": 7.3, "speed": "512.00KiB/s"}


def test_percent_is_clamped() -> None:
    update = parse_progress("[download] 250% of 1.00MiB")

    assert update is not None
    assert update.percent == 100.0


def test_lines_without_tokens_are_ignored() -> None:
    assert parse_progress("[youtube] abc123: Downloading webpage") is None
    assert parse_progress("") is None
    assert parse_line("[info] Writing video metadata") == []


def test_ansi_colouring_is_stripped() -> None:
    update = parse_progress("\x1b[0;94m 55.5%\x1b[0m of 2.00MiB")

    assert update is not None
    assert update.percent == 55.5
    assert update.total == "2.00MiB"


def test_error_line_is_fatal_even_with_percent() -> None:
    results = parse_line("ERROR: unable to download video data: HTTP 403 at 12.0%")

    assert isinstance(results[0], FatalSignal)
    assert results[0].line.startswith("ERROR: unable to download")
    assert isinstance(results[1], ProgressUpdate)


def test_traceback_marker_is_fatal() -> None:
    results = parse_line("Traceback (most recent call last):")

    assert results == [FatalSignal(line="Traceback (most recent call last):")]


def test_buffered_lines_parse_independently() -> None:
    chunk = "[download]  10.0% of 5.00MiB\r[download]  20.0% of 5.00MiB\nWARNING: slow\n"

    lines = LineBuffer().feed(chunk)
    percents = [
        item.percent
        for line in lines
        for item in parse_line(line)
        if isinstance(item, ProgressUpdate)
    ]

    assert percents == [10.0, 20.0]


def test_line_buffer_reassembles_split_lines() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"[download]  1.0% of 4") == []
    assert buffer.feed(b".00MiB\r\n[download]  2.0%") == ["[download]  1.0% of 4.00MiB"]
    assert buffer.feed(b"\r") == ["[download]  2.0%"]
    assert buffer.feed(b"tail") == []
    assert buffer.flush() == ["tail"]
    assert buffer.flush() == []


def test_line_buffer_keeps_multibyte_characters_intact() -> None:
    buffer = LineBuffer()
    encoded = "título\n".encode("utf-8")
    split_at = encoded.index(b"\xc3") + 1

    assert buffer.feed(encoded[:split_at]) == []
    assert buffer.feed(encoded[split_at:]) == ["título"]
