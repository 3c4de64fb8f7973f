"""End-to-end pipeline: audio -> transcript -> key moments -> frames -> narration -> summary."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from src.cancellation import CancelToken
from src.config import Settings, get_settings
from src.errors import Failure, MediaError, ParseError, SummarizationError
from src.extraction.key_moments import filter_by_duration, identify_key_moments
from src.extraction.models import KeySelection, SummaryResult
from src.extraction.summarizer import summarize_transcript
from src.frames.models import FrameInfo, FrameNarration
from src.frames.narrator import encode_image, narrate_frames
from src.generation.base import TextGenerator
from src.generation.factory import default_models, get_generator
from src.generation.resilient import ensure_model
from src.ingestion.models import TimestampedTranscript
from src.ingestion.parsers import parse_transcript
from src.media.ffmpeg import (
    extract_audio,
    extract_frames_at_timestamps,
    extract_frames_interval,
    probe_duration,
)
from src.media.transcription import transcribe_audio
from src.pipeline_config import FrameSelection, PipelineConfig
from src.report import render_output, timestamped_payload
from src.session import RunSession

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Everything one run produced.

    ``summary`` is ``None`` when summarization was skipped or failed; in
    the latter case ``summary_error`` explains why. ``report`` is the text
    report in the configured transcript style and ``timestamps`` the
    JSON-serialisable segment and frame record.
    """

    source: str
    transcript: TimestampedTranscript
    key_selection: KeySelection | None = None
    narrations: list[FrameNarration] = field(default_factory=list)
    summary: SummaryResult | None = None
    summary_error: str | None = None
    report: str = ""
    timestamps: dict[str, Any] = field(default_factory=dict)


def _render(result: PipelineResult, config: PipelineConfig) -> None:
    summary = result.summary.summary if result.summary else None
    result.report = render_output(result.source, result.transcript, summary, config.transcript_style)
    result.timestamps = timestamped_payload(result.source, result.transcript, result.narrations)


def _select_and_extract_frames(
    video_path: Path,
    transcript: TimestampedTranscript,
    config: PipelineConfig,
    generator: TextGenerator,
    text_model: str,
    session: RunSession,
    cancel: CancelToken | None,
) -> tuple[list[FrameInfo], KeySelection | None]:
    """Extract frames at key moments, falling back to fixed intervals."""
    selection: KeySelection | None = None
    duration: float | None = None

    if config.frame_selection is FrameSelection.KEY_MOMENTS and transcript.segments:
        try:
            duration = probe_duration(video_path)
            selection = identify_key_moments(
                transcript.segments,
                config.max_frames,
                generator,
                text_model,
                video_duration=duration,
                cancel=cancel,
            )
            moments = filter_by_duration(selection.moments, duration)
            if moments:
                logger.info("Identified %d key moments for frame extraction", len(moments))
                frames = extract_frames_at_timestamps(
                    video_path, [m.timestamp for m in moments], session.frames_dir
                )
                return frames, selection
            logger.warning("No key moments inside the video duration, using fixed intervals")
        except MediaError as exc:
            logger.warning("Intelligent frame extraction failed, using fixed intervals: %s", exc)
            session.reset_frames()

    frames = extract_frames_interval(
        video_path,
        session.frames_dir,
        interval=config.frame_interval,
        max_frames=config.max_frames,
        duration=duration,
    )
    return frames, selection


def _summarize(
    result: PipelineResult,
    config: PipelineConfig,
    generator: TextGenerator,
    model: str,
    frame_images: list[str] | None,
    cancel: CancelToken | None,
) -> None:
    """Fill ``result.summary``; a failed summary is reported, not raised."""
    ready = ensure_model(generator, model)
    if isinstance(ready, Failure):
        logger.warning("Failed to generate summary: %s", ready.message)
        result.summary_error = ready.message
        return

    try:
        result.summary = summarize_transcript(
            result.transcript.full_text,
            generator,
            model,
            frame_narrations=result.narrations or None,
            max_chunk_chars=config.max_chunk_chars,
            max_workers=config.map_workers,
            frame_images=frame_images,
            cancel=cancel,
        )
    except SummarizationError as exc:
        logger.warning("Failed to generate summary (%s): %s", exc.failure.kind, exc)
        result.summary_error = str(exc)


def process_video(
    video_path: Path,
    config: PipelineConfig | None = None,
    generator: TextGenerator | None = None,
    settings: Settings | None = None,
    cancel: CancelToken | None = None,
    source: str | None = None,
) -> PipelineResult:
    """Transcribe, analyze and summarize a video file.

    Audio extraction and transcription failures have no fallback and
    propagate. Key-moment, frame and summary failures are logged and
    degrade the result instead. A generator built here from *settings* is
    closed before returning; a caller-supplied one is left open.

    Raises:
        FileNotFoundError: If *video_path* does not exist.
        MediaError: If audio or fixed-interval frame extraction fails.
        TranscriptionError: If speech-to-text fails.
        PipelineCancelled: If *cancel* is set during the run.
    """
    config = config or PipelineConfig()
    settings = settings or get_settings()

    if not video_path.exists():
        raise FileNotFoundError(f"Input file not found: {video_path}")

    owns_generator = generator is None
    generator = generator or get_generator(settings)
    try:
        result = _run_video(video_path, source or str(video_path), config, generator, settings, cancel)
    finally:
        if owns_generator:
            generator.close()

    _render(result, config)
    return result


def _run_video(
    video_path: Path,
    source: str,
    config: PipelineConfig,
    generator: TextGenerator,
    settings: Settings,
    cancel: CancelToken | None,
) -> PipelineResult:
    text_model, vision_model = default_models(settings)

    with RunSession(video_path, keep_audio=config.keep_audio, keep_frames=config.keep_frames) as session:
        logger.info("Extracting audio from %s", video_path.name)
        extract_audio(video_path, session.audio_path)

        if cancel is not None:
            cancel.raise_if_cancelled()
        transcript = transcribe_audio(
            session.audio_path,
            model_size=settings.whisper_model,
            provider=settings.transcription_provider,
            api_key=settings.assemblyai_api_key,
        )
        logger.info("Transcribed %d segments", len(transcript.segments))
        result = PipelineResult(source=source, transcript=transcript)

        if config.transcribe_only:
            return result

        frame_images: list[str] | None = None
        if config.analyze_frames:
            frames, result.key_selection = _select_and_extract_frames(
                video_path, transcript, config, generator, text_model, session, cancel
            )
            ready = ensure_model(generator, vision_model) if frames else None
            if isinstance(ready, Failure):
                logger.warning("Skipping frame analysis: %s", ready.message)
            elif frames:
                result.narrations = narrate_frames(
                    frames,
                    generator,
                    vision_model,
                    transcript.segments,
                    context_window=config.context_window,
                    cancel=cancel,
                )
            if config.attach_frames_to_summary:
                frame_images = [encode_image(n.frame) for n in result.narrations if not n.failed] or None

        summary_model = vision_model if frame_images else text_model
        _summarize(result, config, generator, summary_model, frame_images, cancel)

    return result


def process_subtitles(
    content: str,
    format: str = "vtt",
    source: str = "subtitles",
    config: PipelineConfig | None = None,
    generator: TextGenerator | None = None,
    settings: Settings | None = None,
    video_duration: float | None = None,
    cancel: CancelToken | None = None,
) -> PipelineResult:
    """Parse a subtitle file, select key moments and summarize it.

    Raises:
        ValueError: If *format* is unknown.
        ParseError: If the file contains no usable cues.
        PipelineCancelled: If *cancel* is set during the run.
    """
    config = config or PipelineConfig()
    settings = settings or get_settings()
    text_model, _ = default_models(settings)

    transcript = parse_transcript(content, format)
    if not transcript.segments:
        raise ParseError(f"No timed cues found in {source}")

    result = PipelineResult(source=source, transcript=transcript)
    if config.transcribe_only:
        _render(result, config)
        return result

    owns_generator = generator is None
    generator = generator or get_generator(settings)
    try:
        if config.analyze_frames:
            selection = identify_key_moments(
                transcript.segments,
                config.max_frames,
                generator,
                text_model,
                video_duration=video_duration,
                cancel=cancel,
            )
            selection.moments = filter_by_duration(selection.moments, video_duration)
            result.key_selection = selection

        _summarize(result, config, generator, text_model, None, cancel)
    finally:
        if owns_generator:
            generator.close()

    _render(result, config)
    return result
