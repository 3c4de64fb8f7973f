"""Sequential, continuity-aware description of extracted frames.

Frames are described one at a time in ``frame_number`` order. The previous
successful description is threaded forward as an explicit accumulator so
each prompt can relate the new frame to the last one. A failed frame resets
the accumulator to ``None``.
"""

from __future__ import annotations

import base64
import logging
import re

from src.cancellation import CancelToken
from src.errors import (
    Failure,
    FailureKind,
    FrameAnalysisError,
    PipelineCancelled,
    failure_from_exception,
)
from src.frames.context import transcript_for_frame
from src.frames.models import FrameInfo, FrameNarration
from src.generation.base import TextGenerator
from src.generation.resilient import generate_vision
from src.ingestion.models import TranscriptSegment

logger = logging.getLogger(__name__)

# "[12.5s] Frame 3: ..." or "Frame 3: ..." at the start of a model answer
_FRAME_PREFIX_RE = re.compile(r"^\s*(?:\[[^\]]*\]\s*)?Frame\s+\d+\s*:\s*", re.IGNORECASE)


def strip_frame_prefix(text: str) -> str:
    """Remove a leading ``[timestamp] Frame N:`` label from a description."""
    return _FRAME_PREFIX_RE.sub("", text.strip(), count=1).strip()


def encode_image(frame: FrameInfo) -> str:
    """Read a frame image and return it base64-encoded."""
    return base64.b64encode(frame.path.read_bytes()).decode("utf-8")


def build_frame_prompt(
    frame: FrameInfo,
    total_frames: int,
    previous_description: str | None = None,
) -> str:
    """Build the vision prompt for one frame."""
    prompt = (
        f"This is frame {frame.frame_number} of {total_frames}, captured at "
        f"{frame.timestamp:.1f} seconds into a video.\n"
        "Describe what is visible: people, slides, code, diagrams, on-screen text, "
        "and what appears to be happening. Be concise (2-3 sentences)."
    )
    if previous_description:
        prompt += (
            f"\n\nThe previous frame showed: {previous_description}\n"
            "Relate this frame to the previous one: what changed, what continues, "
            "and how the video is progressing."
        )
    return prompt


def describe_frame(
    frame: FrameInfo,
    total_frames: int,
    generator: TextGenerator,
    model: str,
    segments: list[TranscriptSegment],
    previous_description: str | None,
    context_window: float = 5.0,
    cancel: CancelToken | None = None,
) -> tuple[FrameNarration, str | None]:
    """Describe one frame.

    Returns:
        ``(narration, next_description)``. ``next_description`` is the
        accumulator for the following frame: this frame's description on
        success, ``None`` on failure.
    """
    transcript_context = transcript_for_frame(frame.timestamp, segments, context_window)

    try:
        image = encode_image(frame)
    except OSError as exc:
        failure = failure_from_exception(FrameAnalysisError(f"Cannot read frame image {frame.path}: {exc}"))
        logger.warning("Frame %d failed (%s): %s", frame.frame_number, failure.kind, failure.message)
        return _failed(frame, transcript_context, failure.message), None

    prompt = build_frame_prompt(frame, total_frames, previous_description)
    result = generate_vision(
        generator, prompt, model, [image], allow_text_fallback=False, cancel=cancel
    )

    if isinstance(result, Failure):
        if result.kind is FailureKind.CANCELLED:
            raise PipelineCancelled(result.message)
        logger.warning("Frame %d failed (%s): %s", frame.frame_number, result.kind, result.message)
        return _failed(frame, transcript_context, result.message), None

    description = strip_frame_prefix(result.value)
    if not description:
        logger.warning("Frame %d failed: empty description", frame.frame_number)
        return _failed(frame, transcript_context, "Empty description"), None

    narration = FrameNarration(
        frame=frame,
        description=description,
        transcript_context=transcript_context,
    )
    return narration, description


def _failed(frame: FrameInfo, transcript_context: str, error: str) -> FrameNarration:
    return FrameNarration(
        frame=frame,
        description=None,
        transcript_context=transcript_context,
        failed=True,
        error=error,
    )


def narrate_frames(
    frames: list[FrameInfo],
    generator: TextGenerator,
    model: str,
    segments: list[TranscriptSegment],
    context_window: float = 5.0,
    cancel: CancelToken | None = None,
) -> list[FrameNarration]:
    """Describe every frame sequentially, carrying context forward.

    Calls are never issued concurrently: each prompt depends on the
    previous frame's accepted description.

    Raises:
        PipelineCancelled: If *cancel* is set between frames.
    """
    ordered = sorted(frames, key=lambda f: f.frame_number)
    total = len(ordered)
    narrations: list[FrameNarration] = []
    previous: str | None = None

    for frame in ordered:
        if cancel is not None:
            cancel.raise_if_cancelled()
        logger.info("Analyzing frame %d/%d", frame.frame_number, total)
        narration, previous = describe_frame(
            frame,
            total,
            generator,
            model,
            segments,
            previous,
            context_window=context_window,
            cancel=cancel,
        )
        narrations.append(narration)

    succeeded = sum(1 for n in narrations if not n.failed)
    logger.info("Analyzed %d/%d frames", succeeded, total)
    return narrations
