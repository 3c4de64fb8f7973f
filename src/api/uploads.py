"""Shared upload validation for transcript and video endpoints."""

from __future__ import annotations

from fastapi import HTTPException, UploadFile

from src.errors import Failure, FailureKind
from src.ingestion.models import TimestampedTranscript
from src.ingestion.parsers import parse_transcript

# 50 MB transcript upload limit
MAX_UPLOAD_BYTES = 50 * 1024 * 1024

# Videos are larger; 2 GB
MAX_VIDEO_BYTES = 2 * 1024 * 1024 * 1024

TRANSCRIPT_EXTENSIONS = {"vtt", "srt", "json"}

VIDEO_EXTENSIONS = {"mp4", "mov", "mkv", "webm", "avi", "m4v"}


def file_extension(filename: str | None) -> str:
    name = filename or ""
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


async def read_transcript_upload(file: UploadFile) -> TimestampedTranscript:
    """Read, size-check and parse an uploaded subtitle/transcript file.

    Raises:
        HTTPException(413): File too large.
        HTTPException(400): Unsupported extension, undecodable or empty transcript.
    """
    raw = await file.read()
    if len(raw) > MAX_UPLOAD_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)} MB.",
        )

    ext = file_extension(file.filename)
    if ext not in TRANSCRIPT_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported transcript type {ext!r}. Supported: {sorted(TRANSCRIPT_EXTENSIONS)}",
        )

    try:
        transcript = parse_transcript(raw.decode("utf-8"), ext)
    except (UnicodeDecodeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=f"Could not parse transcript: {exc}") from exc

    if not transcript.segments:
        raise HTTPException(status_code=400, detail="Transcript contains no timed segments")
    return transcript


def failure_status(failure: Failure) -> int:
    """HTTP status for a generation failure: 503 if unreachable, else 502."""
    return 503 if failure.kind is FailureKind.CONNECTIVITY else 502
