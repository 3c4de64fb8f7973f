"""Data models for transcript ingestion."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class TranscriptSegment:
    """One cue or transcribed utterance, in seconds."""

    text: str
    start: float
    end: float

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Segment ends before it starts: {self.start} > {self.end}")


@dataclass
class TimestampedTranscript:
    """Ordered segments plus their space-joined full text.

    Build instances with :meth:`from_segments` so ``full_text`` and segment
    order stay consistent.
    """

    full_text: str
    segments: list[TranscriptSegment] = field(default_factory=list)

    @classmethod
    def from_segments(cls, segments: list[TranscriptSegment]) -> TimestampedTranscript:
        ordered = sorted(segments, key=lambda s: s.start)
        return cls(full_text=" ".join(s.text for s in ordered), segments=ordered)

    @property
    def duration(self) -> float:
        return self.segments[-1].end if self.segments else 0.0


@dataclass
class Chunk:
    """A sentence-aligned slice of the full transcript text."""

    content: str
    chunk_index: int = 0
