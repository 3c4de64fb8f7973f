"""Data models for key-moment selection and summarization results."""

from __future__ import annotations

from dataclasses import dataclass, field

from src.errors import Failure

MAX_REASON_CHARS = 100


@dataclass
class KeyMoment:
    """A timestamp worth sampling as a frame, with a short rationale."""

    timestamp: float
    reason: str

    def __post_init__(self) -> None:
        self.reason = self.reason[:MAX_REASON_CHARS]


@dataclass
class KeySelection:
    """Outcome of key-moment selection.

    ``failure`` records why the AI path was abandoned when ``used_fallback``
    is set; it is ``None`` when the fallback ran only because too few valid
    moments came back.
    """

    moments: list[KeyMoment] = field(default_factory=list)
    used_fallback: bool = False
    failure: Failure | None = None

    @property
    def timestamps(self) -> list[float]:
        return [m.timestamp for m in self.moments]


@dataclass
class MappedChunk:
    """Structured extraction for one transcript chunk."""

    chunk_index: int
    extraction: str


@dataclass
class SummaryResult:
    """Final summary plus the call counts that produced it."""

    summary: str
    chunk_count: int
    map_calls: int
    reduce_calls: int = 1
