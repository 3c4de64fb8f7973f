"""Summary endpoint: map-reduce summary of an uploaded transcript."""

from __future__ import annotations

import asyncio
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from src.api.deps import get_llm
from src.api.models import SummaryResponse
from src.api.uploads import failure_status, read_transcript_upload
from src.config import settings
from src.errors import Failure, SummarizationError
from src.extraction.summarizer import summarize_transcript
from src.generation.base import TextGenerator
from src.generation.factory import default_models
from src.generation.resilient import ensure_model

router = APIRouter()


@router.post("/api/summarize", response_model=SummaryResponse)
async def summarize(
    file: Annotated[UploadFile, File(...)],
    generator: Annotated[TextGenerator, Depends(get_llm)],
    max_chunk_chars: Annotated[int | None, Form(gt=0)] = None,
) -> SummaryResponse:
    """Summarize an uploaded transcript.

    Returns 503 when the model host is unreachable and 502 for any other
    generation failure, so the client gets a proper JSON error.
    """
    transcript = await read_transcript_upload(file)
    text_model, _ = default_models(settings)

    ready = await asyncio.to_thread(ensure_model, generator, text_model)
    if isinstance(ready, Failure):
        raise HTTPException(status_code=failure_status(ready), detail=f"LLM unavailable: {ready.message}")

    try:
        result = await asyncio.to_thread(
            summarize_transcript,
            transcript.full_text,
            generator,
            text_model,
            max_chunk_chars=max_chunk_chars or settings.max_chunk_chars,
            max_workers=settings.map_workers,
        )
    except SummarizationError as exc:
        raise HTTPException(
            status_code=failure_status(exc.failure),
            detail=f"Summary generation failed: {exc.failure.message}",
        ) from exc

    return SummaryResponse(
        summary=result.summary,
        chunk_count=result.chunk_count,
        map_calls=result.map_calls,
    )
