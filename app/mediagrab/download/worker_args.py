from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from ..config import MediaType
from ..core.formats import choose_format_selector, format_height
from ..models.shared import JSONValue
from ..utils import safe_filename
from .models import JobParameters


def build_output_path(temp_dir: Path, job_id: str, title: Optional[str], media_type: MediaType) -> Path:
    """Job-namespaced location the worker writes to."""
    return temp_dir / f"{job_id}_{safe_filename(title)}.{media_type.extension}"


def build_final_name(
    title: Optional[str],
    parameters: JobParameters,
    info: Mapping[str, JSONValue],
) -> str:
    """Filename offered to the user once the artifact is ready."""
    quality = ""
    if not parameters.is_audio and parameters.format_id:
        height = format_height(info, parameters.format_id)
        if height:
            quality = f" - {height}p"
    return f"{safe_filename(title)}{quality}.{parameters.media_type.extension}"


def build_worker_arguments(
    parameters: JobParameters,
    info: Mapping[str, JSONValue],
    output: Optional[str] = None,
    *,
    cookies_file: Optional[Path] = None,
    extra_args: Sequence[str] = (),
    to_stdout: bool = False,
) -> Tuple[str, ...]:
    """Assemble the yt-dlp argument list for one transfer.

    With ``to_stdout`` the media is piped to the worker's stdout and the
    post-processing flags are left out.
    """

    selector = choose_format_selector(
        parameters.media_type, parameters.format_id, info
    )
    args: List[str] = ["-f", selector]
    if to_stdout:
        args.extend(["-o", "-", "--no-playlist"])
    else:
        if output is None:
            raise ValueError("output path is required unless streaming to stdout")
        args.extend(["-o", output, "--no-playlist", "--newline"])
        if parameters.is_audio:
            args.extend(["--extract-audio", "--audio-format", "mp3"])
        else:
            args.extend(["--merge-output-format", "mp4"])
    if cookies_file is not None:
        args.extend(["--cookies", str(cookies_file)])
    args.extend(extra_args)
    args.append(parameters.url)
    return tuple(args)


__all__ = ["build_final_name", "build_output_path", "build_worker_arguments"]
