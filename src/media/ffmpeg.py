"""ffmpeg/ffprobe helpers: audio extraction, duration probing, frame grabs."""

from __future__ import annotations

import logging
import math
import subprocess
from pathlib import Path

from src.errors import MediaError
from src.frames.models import FrameInfo

logger = logging.getLogger(__name__)


def _run(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    """Run an ffmpeg/ffprobe command, raising MediaError on failure."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as exc:
        raise MediaError(f"{cmd[0]} is not installed or not on PATH") from exc

    if result.returncode != 0:
        raise MediaError(f"{cmd[0]} failed: {result.stderr.strip()[-500:]}")
    return result


def extract_audio(input_path: Path, output_path: Path, sample_rate: int = 16000) -> Path:
    """Extract a mono 16-bit PCM WAV track suitable for speech recognition."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    _run(
        [
            "ffmpeg",
            "-y",
            "-i", str(input_path),
            "-vn",
            "-acodec", "pcm_s16le",
            "-ar", str(sample_rate),
            "-ac", "1",
            str(output_path),
        ]
    )
    return output_path


def probe_duration(input_path: Path) -> float:
    """Return the container duration in seconds."""
    result = _run(
        [
            "ffprobe",
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            str(input_path),
        ]
    )
    try:
        return float(result.stdout.strip())
    except ValueError as exc:
        raise MediaError(f"ffprobe returned no duration for {input_path}") from exc


def extract_frames_at_timestamps(
    input_path: Path,
    timestamps: list[float],
    output_dir: Path,
) -> list[FrameInfo]:
    """Grab one JPEG per timestamp, numbered in the given order."""
    output_dir.mkdir(parents=True, exist_ok=True)
    frames: list[FrameInfo] = []

    for number, timestamp in enumerate(timestamps, start=1):
        frame_path = output_dir / f"frame_{number:04d}.jpg"
        _run(
            [
                "ffmpeg",
                "-y",
                "-ss", f"{timestamp:.3f}",
                "-i", str(input_path),
                "-frames:v", "1",
                "-q:v", "2",
                str(frame_path),
            ]
        )
        frames.append(FrameInfo(path=frame_path, timestamp=timestamp, frame_number=number))

    logger.info("Extracted %d frames at key moments", len(frames))
    return frames


def extract_frames_interval(
    input_path: Path,
    output_dir: Path,
    interval: int = 3,
    max_frames: int = 30,
    duration: float | None = None,
) -> list[FrameInfo]:
    """Grab one frame every *interval* seconds, at most *max_frames*."""
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")

    if duration is None:
        duration = probe_duration(input_path)
    frame_count = min(max_frames, math.floor(duration / interval))
    if frame_count <= 0:
        return []

    output_dir.mkdir(parents=True, exist_ok=True)
    _run(
        [
            "ffmpeg",
            "-y",
            "-i", str(input_path),
            "-vf", f"fps=1/{interval}",
            "-frames:v", str(frame_count),
            str(output_dir / "frame_%04d.jpg"),
        ]
    )

    paths = sorted(output_dir.glob("frame_*.jpg"))[:max_frames]
    frames = [
        FrameInfo(path=path, timestamp=float(index * interval), frame_number=index + 1)
        for index, path in enumerate(paths)
    ]
    logger.info("Extracted %d frames at %ds intervals", len(frames), interval)
    return frames
