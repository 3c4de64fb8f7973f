"""Transcript endpoint: parse an uploaded subtitle file."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, UploadFile

from src.api.models import TranscriptResponse
from src.api.uploads import read_transcript_upload

router = APIRouter()


@router.post("/api/transcripts/parse", response_model=TranscriptResponse)
async def parse_upload(file: Annotated[UploadFile, File(...)]) -> TranscriptResponse:
    """Parse a .vtt, .srt or Whisper/AssemblyAI .json transcript into segments."""
    transcript = await read_transcript_upload(file)
    return TranscriptResponse.from_transcript(transcript)
