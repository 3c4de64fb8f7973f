"""Map-reduce summarization of long transcripts.

Map: each sentence-aligned chunk gets a structured extraction.
Reduce: one call merges all extractions (in chunk order) plus any frame
narrations into a single comprehensive summary.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from src.cancellation import CancelToken
from src.errors import Failure, FailureKind, PipelineCancelled, Result, SummarizationError
from src.extraction.models import MappedChunk, SummaryResult
from src.frames.models import FrameNarration
from src.generation.base import TextGenerator
from src.generation.resilient import generate_text, generate_vision
from src.ingestion.chunking import sentence_chunk
from src.ingestion.models import Chunk

logger = logging.getLogger(__name__)

MAP_PROMPT_TEMPLATE = """\
You are extracting structured notes from part {part} of {total} of a video transcript.
Extract only what the text supports. Write "None" for empty sections.

1. **Topics** - main subjects discussed
2. **Speakers** - who is speaking and their role, if identifiable
3. **Decisions** - conclusions or agreements reached
4. **Action items** - tasks, owners and deadlines
5. **Tools and systems** - software, products, services or platforms mentioned
6. **Technical details** - configurations, versions, architectures, commands
7. **Problems and solutions** - issues raised and how they were addressed
8. **Metrics** - numbers, dates, amounts and measurements
9. **Quotes** - notable statements, verbatim
10. **Context** - background needed to understand this part

Transcript part {part}:
{chunk}"""

REDUCE_PROMPT_TEMPLATE = """\
You are writing a comprehensive summary of a video. Below are structured notes \
extracted from {source} in chronological order{frames_clause}.
Merge them, remove repetition, and keep specific names, numbers and quotes.

Use exactly these sections:
1. **Overview** - what the video is about, in 2-4 sentences
2. **Topic breakdown** - each major topic in the order it appears
3. **Key decisions**
4. **Action items** - with owners and deadlines where stated
5. **Tools and systems**
6. **Technical specifications**
7. **Problems and solutions**
8. **Insights and notable quotes**
9. **Visual context** - what the frames add (write "None" if no frames were analyzed)
10. **Next steps**

{notes}"""


def build_map_prompt(chunk: Chunk, total: int) -> str:
    return MAP_PROMPT_TEMPLATE.format(part=chunk.chunk_index + 1, total=total, chunk=chunk.content)


def build_reduce_prompt(mapped: list[MappedChunk], frame_notes: str | None = None) -> str:
    """Build the single reduce prompt from mapped chunks and frame narrations."""
    parts = [
        f"### Notes for part {m.chunk_index + 1}\n{m.extraction.strip()}"
        for m in sorted(mapped, key=lambda m: m.chunk_index)
    ]
    if frame_notes:
        parts.append(f"### Frame analysis\n{frame_notes}")

    if not mapped:
        source = "a video without a usable transcript"
    elif len(mapped) == 1:
        source = "the full transcript"
    else:
        source = f"{len(mapped)} consecutive transcript parts"
    return REDUCE_PROMPT_TEMPLATE.format(
        source=source,
        frames_clause=", followed by descriptions of video frames" if frame_notes else "",
        notes="\n\n".join(parts),
    )


def map_chunks(
    chunks: list[Chunk],
    generator: TextGenerator,
    model: str,
    max_workers: int = 1,
    cancel: CancelToken | None = None,
) -> list[MappedChunk]:
    """Run one map call per chunk and return results in chunk order.

    Map calls are independent, so they run in a thread pool when
    *max_workers* > 1. Every chunk is attempted even if another fails.

    Raises:
        PipelineCancelled: If *cancel* is set.
        SummarizationError: If any map call failed.
    """
    total = len(chunks)

    def run(chunk: Chunk) -> Result[str]:
        logger.info("Mapping chunk %d/%d (%d chars)", chunk.chunk_index + 1, total, len(chunk.content))
        return generate_text(generator, build_map_prompt(chunk, total), model, cancel)

    if max_workers > 1 and total > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(run, chunks))
    else:
        results = [run(chunk) for chunk in chunks]

    if cancel is not None:
        cancel.raise_if_cancelled()

    mapped: list[MappedChunk] = []
    failures: list[Failure] = []
    for chunk, result in zip(chunks, results, strict=True):
        if isinstance(result, Failure):
            logger.warning("Map call for chunk %d failed (%s): %s", chunk.chunk_index + 1, result.kind, result.message)
            failures.append(result)
        else:
            mapped.append(MappedChunk(chunk_index=chunk.chunk_index, extraction=result.value))

    if failures:
        raise SummarizationError(failures[0])
    return mapped


def summarize_transcript(
    full_text: str,
    generator: TextGenerator,
    model: str,
    frame_narrations: list[FrameNarration] | None = None,
    max_chunk_chars: int = 4000,
    max_workers: int = 1,
    frame_images: list[str] | None = None,
    cancel: CancelToken | None = None,
) -> SummaryResult:
    """Summarize a transcript (and optional frame narrations) with map-reduce.

    Args:
        full_text: The transcript's full text.
        generator: Generation client.
        model: Model used for both map and reduce calls.
        frame_narrations: Narrations to include in the reduce call.
        max_chunk_chars: Maximum chunk size for the map phase.
        max_workers: Thread count for map calls (1 = sequential).
        frame_images: Base64 frame images to attach to the reduce call; the
            call is retried text-only if the model rejects images.
        cancel: Optional cancellation token.

    Returns:
        The summary and the number of calls made.

    Raises:
        ValueError: If there is neither transcript text nor frame narrations.
        SummarizationError: If a map or the reduce call fails.
        PipelineCancelled: If *cancel* is set.
    """
    chunks = sentence_chunk(full_text, max_chunk_chars)
    frame_notes = "\n".join(n.render() for n in frame_narrations) if frame_narrations else None
    if not chunks and not frame_notes:
        raise ValueError("Nothing to summarize: transcript is empty and no frames were analyzed")

    if len(chunks) > 1:
        logger.info("Transcript split into %d chunks for map-reduce", len(chunks))
    mapped = map_chunks(chunks, generator, model, max_workers=max_workers, cancel=cancel)

    if cancel is not None:
        cancel.raise_if_cancelled()

    prompt = build_reduce_prompt(mapped, frame_notes)
    if frame_images:
        result = generate_vision(generator, prompt, model, frame_images, cancel=cancel)
    else:
        result = generate_text(generator, prompt, model, cancel)

    if isinstance(result, Failure):
        if result.kind is FailureKind.CANCELLED:
            raise PipelineCancelled(result.message)
        raise SummarizationError(result)

    return SummaryResult(
        summary=result.value.strip(),
        chunk_count=len(chunks),
        map_calls=len(mapped),
    )
