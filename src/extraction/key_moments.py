"""Key-moment selection: pick transcript timestamps worth sampling as frames.

The model is asked to choose segment start times and explain each choice.
Its answer is parsed leniently, snapped onto real segment starts, and
replaced by a deterministic keyword/stride heuristic when it is unusable.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from src.cancellation import CancelToken
from src.errors import (
    Failure,
    FailureKind,
    PipelineCancelled,
    SelectionParseError,
    failure_from_exception,
)
from src.extraction.models import MAX_REASON_CHARS, KeyMoment, KeySelection
from src.generation.base import TextGenerator
from src.generation.resilient import generate_text
from src.ingestion.models import TranscriptSegment

logger = logging.getLogger(__name__)

# Maximum distance (seconds) for snapping a proposed timestamp onto a segment start
SNAP_TOLERANCE = 1.0

# Upper bound on how many moments the model is asked to propose
MAX_PROMPT_PICKS = 10

# Discourse markers that tend to open a new topic, demo, recap or Q&A
KEYWORDS: tuple[str, ...] = (
    "today",
    "let's",
    "let me",
    "next",
    "first",
    "second",
    "finally",
    "example",
    "demo",
    "show you",
    "important",
    "summary",
    "in conclusion",
    "question",
)

_PREVIEW_CHARS = 50
_SEGMENT_PROMPT_CHARS = 100
_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*|\s*```$")


def _preview(text: str) -> str:
    return text[:_PREVIEW_CHARS] + ("..." if len(text) > _PREVIEW_CHARS else "")


def build_selection_prompt(
    segments: list[TranscriptSegment],
    max_frames: int,
    video_duration: float | None = None,
) -> str:
    """Build the prompt asking the model to pick key timestamps."""
    picks = min(max_frames, MAX_PROMPT_PICKS)
    listing = "\n".join(f"[{s.start:.2f}s] {s.text[:_SEGMENT_PROMPT_CHARS]}" for s in segments)
    duration_line = f"The video is {video_duration:.0f} seconds long.\n" if video_duration else ""

    return f"""You are analyzing the transcript of a video to decide which moments deserve a screenshot.
{duration_line}
Select about {picks} timestamps where something significant happens, such as:
- a new topic or section is introduced
- something is demonstrated or shown on screen
- an important point, example or conclusion is made
- a question is asked or answered

Only use timestamps from the list below. Spread your picks across the whole video.

Transcript segments:
{listing}

Respond ONLY with pipe-separated timestamp:reason pairs, for example:
12.50:Introduces the agenda|95.00:Demonstrates the setup|310.20:Summarizes the results"""


def parse_selection_response(response: str) -> list[KeyMoment]:
    """Parse a model's key-moment answer.

    Grammar:

    - A response starting with ``[`` (after stripping a markdown code fence)
      is a JSON array whose items are ``{"timestamp": t, "reason": r}``
      objects or ``[t, r]`` pairs.
    - Anything else is a list of ``timestamp:reason`` entries separated by
      ``|`` or newlines. Entries without ``:`` are ignored. The text before
      the first ``:`` (brackets and a trailing ``s`` removed) must be a
      finite float.

    Entries that do not fit the grammar are dropped. Reasons are truncated
    to 100 characters.

    Raises:
        SelectionParseError: If the JSON form is invalid or no entry at all
            could be parsed.
    """
    text = _FENCE_RE.sub("", response.strip()).strip()

    if text.startswith("["):
        moments = _parse_json_selection(text)
    else:
        moments = []
        for entry in re.split(r"[|\n]", text):
            if ":" not in entry:
                continue
            left, right = entry.split(":", 1)
            timestamp = _to_timestamp(left.strip().strip("[]").strip().rstrip("s"))
            if timestamp is None:
                continue
            moments.append(KeyMoment(timestamp=timestamp, reason=right.strip()[:MAX_REASON_CHARS]))

    if not moments:
        raise SelectionParseError(f"No timestamp:reason entries in response: {text[:80]!r}")
    return moments


def _parse_json_selection(text: str) -> list[KeyMoment]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SelectionParseError(f"Invalid JSON selection: {exc}") from exc
    if not isinstance(data, list):
        raise SelectionParseError("JSON selection is not an array")

    moments: list[KeyMoment] = []
    for item in data:
        raw_ts: Any
        if isinstance(item, dict):
            raw_ts, reason = item.get("timestamp"), item.get("reason", "")
        elif isinstance(item, list | tuple) and len(item) >= 2:
            raw_ts, reason = item[0], item[1]
        else:
            continue
        timestamp = _to_timestamp(raw_ts)
        if timestamp is not None:
            moments.append(KeyMoment(timestamp=timestamp, reason=str(reason).strip()))
    return moments


def _to_timestamp(value: Any) -> float | None:
    try:
        timestamp = float(value)
    except (TypeError, ValueError):
        return None
    return timestamp if math.isfinite(timestamp) else None


def validate_moments(
    candidates: list[KeyMoment],
    segments: list[TranscriptSegment],
    tolerance: float = SNAP_TOLERANCE,
) -> list[KeyMoment]:
    """Snap candidates onto real segment starts and drop the rest.

    A candidate is moved to the closest segment start within *tolerance*
    seconds if that start is still unclaimed; otherwise it is kept only if it
    exactly equals an unclaimed start. Accepted timestamps are unique.
    """
    if not segments:
        return []

    starts = [s.start for s in segments]
    start_set = set(starts)
    claimed: set[float] = set()
    accepted: list[KeyMoment] = []

    for candidate in candidates:
        closest = min(starts, key=lambda start: abs(start - candidate.timestamp))
        if abs(closest - candidate.timestamp) <= tolerance and closest not in claimed:
            timestamp = closest
        elif candidate.timestamp in start_set and candidate.timestamp not in claimed:
            timestamp = candidate.timestamp
        else:
            logger.debug("Discarding key moment at %.2fs (no unclaimed segment start)", candidate.timestamp)
            continue
        claimed.add(timestamp)
        accepted.append(KeyMoment(timestamp=timestamp, reason=candidate.reason))

    return accepted


def fallback_key_moments(segments: list[TranscriptSegment], max_frames: int) -> list[KeyMoment]:
    """Deterministic selection used when the model's answer is unusable.

    1. The first segment is always included.
    2. Segments containing a :data:`KEYWORDS` marker are sampled with a
       stride that spreads about ``max_frames - 2`` picks across them.
    3. If still short of ``min(10, max_frames)``, all segments are sampled
       with an even stride.
    4. The last segment is included.

    When ``max_frames`` is 1 only the opening segment is returned; the cap
    always wins over the closing anchor.
    """
    if not segments or max_frames <= 0:
        return []

    moments: list[KeyMoment] = []
    claimed: set[float] = set()

    def add(segment: TranscriptSegment, reason: str) -> None:
        if segment.start not in claimed:
            claimed.add(segment.start)
            moments.append(KeyMoment(timestamp=segment.start, reason=reason))

    first, last = segments[0], segments[-1]
    add(first, f"Opening: {first.text[:_PREVIEW_CHARS]}")
    if max_frames == 1:
        return moments

    matches = [s for s in segments if any(k in s.text.lower() for k in KEYWORDS)]
    if matches:
        step = max(1, len(matches) // max(1, max_frames - 2))
        for segment in matches[::step]:
            if len(moments) >= max_frames - 1:
                break
            add(segment, _preview(segment.text))

    # One slot stays reserved for the closing segment
    target = min(MAX_PROMPT_PICKS, max_frames)
    reserve = 0 if last.start in claimed else 1
    remaining = target - reserve - len(moments)
    if remaining > 0:
        step = max(1, len(segments) // remaining)
        for segment in segments[::step]:
            if len(moments) >= target - reserve:
                break
            add(segment, _preview(segment.text))

    add(last, f"Conclusion: {_preview(last.text)}")

    return sorted(moments, key=lambda m: m.timestamp)[:max_frames]


def filter_by_duration(moments: list[KeyMoment], video_duration: float | None) -> list[KeyMoment]:
    """Drop moments at or beyond the end of the video."""
    if video_duration is None:
        return list(moments)
    return [m for m in moments if 0 <= m.timestamp < video_duration]


def identify_key_moments(
    segments: list[TranscriptSegment],
    max_frames: int,
    generator: TextGenerator,
    model: str,
    video_duration: float | None = None,
    cancel: CancelToken | None = None,
) -> KeySelection:
    """Select up to *max_frames* key moments, chronologically sorted.

    The model's answer is used when at least ``min(3, len(segments))``
    moments survive validation; otherwise, or when the call or parsing
    fails, :func:`fallback_key_moments` is used. Moments are not filtered by
    *video_duration*; callers apply :func:`filter_by_duration` before
    extraction.
    """
    if not segments or max_frames <= 0:
        return KeySelection()

    if cancel is not None:
        cancel.raise_if_cancelled()

    prompt = build_selection_prompt(segments, max_frames, video_duration)
    result = generate_text(generator, prompt, model, cancel)

    failure: Failure | None = None
    moments: list[KeyMoment] = []
    if isinstance(result, Failure):
        if result.kind is FailureKind.CANCELLED:
            raise PipelineCancelled(result.message)
        failure = result
    else:
        try:
            moments = validate_moments(parse_selection_response(result.value), segments)
        except SelectionParseError as exc:
            failure = failure_from_exception(exc)

    required = min(3, len(segments))
    if failure is not None or len(moments) < required:
        if failure is not None:
            logger.warning("Key-moment selection failed (%s): %s; using heuristic", failure.kind, failure.message)
        else:
            logger.warning(
                "Only %d valid key moments returned (need %d); using heuristic", len(moments), required
            )
        return KeySelection(
            moments=fallback_key_moments(segments, max_frames),
            used_fallback=True,
            failure=failure,
        )

    moments.sort(key=lambda m: m.timestamp)
    return KeySelection(moments=moments[:max_frames])
