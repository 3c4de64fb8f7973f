"""Video endpoint: run the full pipeline on an uploaded recording."""

from __future__ import annotations

import asyncio
import tempfile
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from src.api.models import (
    FrameNarrationModel,
    KeyMomentsResponse,
    TranscriptResponse,
    VideoProcessResponse,
)
from src.api.uploads import MAX_VIDEO_BYTES, VIDEO_EXTENSIONS, file_extension
from src.config import settings
from src.errors import MediaError, TranscriptionError
from src.pipeline import process_video
from src.pipeline_config import FrameSelection, PipelineConfig, TranscriptStyle

router = APIRouter()


@router.post("/api/videos/process", response_model=VideoProcessResponse)
async def process_upload(
    file: Annotated[UploadFile, File(...)],
    analyze_frames: Annotated[bool, Form()] = True,
    frame_selection: Annotated[FrameSelection, Form()] = FrameSelection.KEY_MOMENTS,
    max_frames: Annotated[int, Form(ge=1, le=100)] = 30,
    transcribe_only: Annotated[bool, Form()] = False,
    transcript_style: Annotated[TranscriptStyle, Form()] = TranscriptStyle.TIMESTAMPED,
) -> VideoProcessResponse:
    """Transcribe, analyze and summarize an uploaded video.

    Audio extraction and transcription errors return 422/503; key-moment,
    frame and summary failures degrade the response instead.
    """
    ext = file_extension(file.filename)
    if ext not in VIDEO_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported video type {ext!r}. Supported: {sorted(VIDEO_EXTENSIONS)}",
        )

    raw = await file.read()
    if len(raw) > MAX_VIDEO_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {MAX_VIDEO_BYTES // (1024 * 1024)} MB.",
        )

    config = PipelineConfig(
        analyze_frames=analyze_frames,
        transcribe_only=transcribe_only,
        frame_selection=frame_selection,
        transcript_style=transcript_style,
        max_frames=max_frames,
        frame_interval=settings.frame_interval,
        context_window=settings.context_window,
        max_chunk_chars=settings.max_chunk_chars,
        map_workers=settings.map_workers,
    )

    source = file.filename or f"upload.{ext}"
    with tempfile.TemporaryDirectory(prefix="video-upload-") as upload_dir:
        video_path = Path(upload_dir) / f"upload.{ext}"
        video_path.write_bytes(raw)
        try:
            result = await asyncio.to_thread(
                process_video, video_path, config, None, settings, source=source
            )
        except MediaError as exc:
            raise HTTPException(status_code=422, detail=f"Media processing failed: {exc}") from exc
        except TranscriptionError as exc:
            raise HTTPException(status_code=503, detail=f"Transcription failed: {exc}") from exc

    return VideoProcessResponse(
        source=source,
        transcript=TranscriptResponse.from_transcript(result.transcript),
        key_moments=(
            KeyMomentsResponse.from_selection(result.key_selection) if result.key_selection else None
        ),
        narrations=[FrameNarrationModel.from_narration(n) for n in result.narrations],
        summary=result.summary.summary if result.summary else None,
        summary_error=result.summary_error,
        report=result.report,
        timestamps=result.timestamps,
    )
