"""FFmpeg utilities for local clip and thumbnail rendering."""
import asyncio
import shutil
from pathlib import Path
from typing import Optional

from spotlight.config import settings


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


def check_ffmpeg_available() -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def _fit_filter(width: int, height: int) -> str:
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2"
    )


async def _run(cmd: list, error_prefix: str):
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
    except OSError as e:
        raise FFmpegError(f"{error_prefix}: could not run {cmd[0]} ({e})") from e
    _, stderr = await proc.communicate()

    if proc.returncode != 0:
        raise FFmpegError(f"{error_prefix}: {stderr.decode(errors='ignore')}")


async def export_clip(
    source_path: str | Path,
    output_path: str | Path,
    start_time: float,
    end_time: float,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Path:
    """
    Export a clip from the source video.

    Args:
        source_path: Path to source video
        output_path: Path for output file
        start_time: Start time in seconds
        end_time: End time in seconds
        width: Output width (defaults to settings.clip_width)
        height: Output height (defaults to settings.clip_height)

    Returns:
        Path to exported clip

    Raises:
        FFmpegError: If the source is missing or ffmpeg fails
    """
    source_path = Path(source_path)
    output_path = Path(output_path)

    if not source_path.exists():
        raise FFmpegError(f"Video file not found: {source_path}")
    if end_time < start_time:
        raise FFmpegError("End time must not precede start time")

    width = width or settings.clip_width
    height = height or settings.clip_height

    # Ensure output directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Single-timestamp highlights still get one second of footage
    duration = max(end_time - start_time, 1.0)

    cmd = [
        settings.ffmpeg_path,
        "-y",
        "-ss", str(start_time),
        "-i", str(source_path),
        "-t", str(duration),
        "-vf", _fit_filter(width, height),
        "-c:v", settings.export_video_codec,
        "-preset", settings.export_video_preset,
        "-crf", str(settings.export_video_crf),
        "-c:a", settings.export_audio_codec,
        "-b:a", settings.export_audio_bitrate,
        "-movflags", "+faststart",
        str(output_path)
    ]

    await _run(cmd, "Export failed")
    return output_path


async def generate_thumbnail(
    video_path: str | Path,
    output_path: str | Path,
    timestamp: float,
    width: Optional[int] = None,
    height: Optional[int] = None
) -> Path:
    """
    Generate a thumbnail from a video at a specific timestamp.

    Args:
        video_path: Path to video file
        output_path: Path to save thumbnail
        timestamp: Time in seconds to capture
        width: Optional thumbnail width
        height: Optional thumbnail height

    Returns:
        Path to generated thumbnail
    """
    video_path = Path(video_path)
    output_path = Path(output_path)

    width = width or settings.thumbnail_width
    height = height or settings.thumbnail_height

    output_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = [
        settings.ffmpeg_path,
        "-y",  # Overwrite
        "-ss", str(timestamp),
        "-i", str(video_path),
        "-vframes", "1",
        "-vf", _fit_filter(width, height),
        "-q:v", "2",
        str(output_path)
    ]

    await _run(cmd, "Thumbnail generation failed")
    return output_path
