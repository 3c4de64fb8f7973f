"""Speech-to-text via the Whisper CLI or AssemblyAI."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path

from src.errors import TranscriptionError
from src.ingestion.models import TimestampedTranscript
from src.ingestion.parsers import parse_assemblyai_json, parse_whisper_json

logger = logging.getLogger(__name__)


def transcribe_with_whisper(
    audio_path: Path,
    model_size: str = "base",
    language: str = "en",
) -> TimestampedTranscript:
    """Run the ``whisper`` CLI and parse its JSON output.

    Raises:
        TranscriptionError: If whisper is missing, fails, or writes no output.
    """
    if shutil.which("whisper") is None:
        raise TranscriptionError(
            "Whisper is not installed. Please install it with: pip install openai-whisper"
        )

    cmd = [
        "whisper",
        str(audio_path),
        "--model", model_size,
        "--output_format", "json",
        "--output_dir", str(audio_path.parent),
        "--language", language,
        "--fp16", "False",
    ]
    logger.info("Transcribing %s with Whisper (%s)", audio_path.name, model_size)
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise TranscriptionError(
            f"Whisper process exited with code {result.returncode}: {result.stderr.strip()[-500:]}"
        )

    json_path = audio_path.with_suffix(".json")
    try:
        content = json_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TranscriptionError(f"Failed to read transcript file {json_path}") from exc
    finally:
        json_path.unlink(missing_ok=True)

    return parse_whisper_json(content)


def transcribe_with_assemblyai(audio_path: Path, api_key: str) -> TimestampedTranscript:
    """Transcribe via the AssemblyAI SDK.

    Raises:
        TranscriptionError: If no key is configured or AssemblyAI fails.
    """
    if not api_key:
        raise TranscriptionError("AssemblyAI transcription requires ASSEMBLYAI_API_KEY")

    import assemblyai as aai  # type: ignore[import-untyped]  # no stubs; import inside function

    aai.settings.api_key = api_key
    config = aai.TranscriptionConfig(
        speech_models=["universal-3-pro"],
        speaker_labels=True,
    )

    logger.info("Transcribing %s with AssemblyAI", audio_path.name)
    try:
        transcript = aai.Transcriber().transcribe(str(audio_path), config=config)
    except Exception as exc:
        raise TranscriptionError(f"Transcription service unavailable: {exc}") from exc

    if transcript.status == aai.TranscriptStatus.error:
        raise TranscriptionError(f"Transcription failed: {transcript.error}")

    utterances = transcript.utterances or []
    if not utterances and transcript.text:
        # No diarization result; keep the text as one segment
        end_ms = int((transcript.audio_duration or 0) * 1000)
        payload = {"utterances": [{"text": transcript.text, "start": 0, "end": end_ms}]}
    else:
        payload = {
            "utterances": [
                {"speaker": u.speaker, "text": u.text, "start": u.start, "end": u.end}
                for u in utterances
            ]
        }
    return parse_assemblyai_json(json.dumps(payload))


def transcribe_audio(
    audio_path: Path,
    model_size: str = "base",
    provider: str = "whisper",
    api_key: str = "",
) -> TimestampedTranscript:
    """Transcribe *audio_path* with the configured provider.

    Raises:
        ValueError: If *provider* is unknown.
        TranscriptionError: If transcription fails.
    """
    if provider == "whisper":
        return transcribe_with_whisper(audio_path, model_size)
    if provider == "assemblyai":
        return transcribe_with_assemblyai(audio_path, api_key)
    msg = f"Unknown transcription provider: {provider!r}. Supported: ['whisper', 'assemblyai']"
    raise ValueError(msg)
