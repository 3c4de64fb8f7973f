"""Key-moment endpoint: choose timestamps worth sampling as frames."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from src.api.deps import get_llm
from src.api.models import KeyMomentsResponse
from src.api.uploads import read_transcript_upload
from src.config import settings
from src.extraction.key_moments import filter_by_duration, identify_key_moments
from src.generation.base import TextGenerator
from src.generation.factory import default_models

router = APIRouter()


@router.post("/api/key-moments", response_model=KeyMomentsResponse)
async def key_moments(
    file: Annotated[UploadFile, File(...)],
    generator: Annotated[TextGenerator, Depends(get_llm)],
    max_frames: Annotated[int, Form(ge=1, le=100)] = 30,
    video_duration: Annotated[float | None, Form(gt=0)] = None,
) -> KeyMomentsResponse:
    """Select key moments from an uploaded transcript.

    Never fails because of the model: an unreachable host or an unusable
    answer falls back to the keyword heuristic, reported via
    ``used_fallback`` and ``failure``.
    """
    transcript = await read_transcript_upload(file)
    text_model, _ = default_models(settings)

    selection = await asyncio.to_thread(
        identify_key_moments,
        transcript.segments,
        max_frames,
        generator,
        text_model,
        video_duration,
    )
    selection.moments = filter_by_duration(selection.moments, video_duration)
    return KeyMomentsResponse.from_selection(selection)
