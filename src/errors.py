"""Exception hierarchy and result variants for the summarization pipeline.

Recoverable failures are surfaced to callers as :class:`Failure` values so
they can branch on :class:`FailureKind` instead of exception identity.
Exceptions are still used at the collaborator boundary (HTTP clients, ffmpeg,
transcription) and for failures that have no local fallback.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class VideoDigestError(Exception):
    """Base exception for the project."""


class ParseError(VideoDigestError):
    """A transcript or cue could not be parsed."""


class GenerationError(VideoDigestError):
    """A text or vision generation call failed."""


class GenerationConnectivityError(GenerationError):
    """The generation endpoint is unreachable."""


class GenerationApiError(GenerationError):
    """The generation endpoint returned an error response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelNotFoundError(GenerationError):
    """The requested model is not installed on the host."""


class UnsupportedMediaError(GenerationError):
    """The model rejected image input."""


class SelectionParseError(VideoDigestError):
    """A key-moment selection response could not be parsed."""


class FrameAnalysisError(VideoDigestError):
    """A single frame could not be described."""


class SummarizationError(VideoDigestError):
    """A map or reduce call failed and no summary could be produced."""

    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


class MediaError(VideoDigestError):
    """ffmpeg or ffprobe failed."""


class TranscriptionError(VideoDigestError):
    """Speech-to-text failed."""


class PipelineCancelled(VideoDigestError):
    """The run was cancelled by the caller."""


class FailureKind(StrEnum):
    """Named failure kinds for result-returning calls."""

    CONNECTIVITY = "connectivity"
    API = "api"
    MODEL_NOT_FOUND = "model_not_found"
    UNSUPPORTED_MEDIA = "unsupported_media"
    SELECTION_PARSE = "selection_parse"
    FRAME = "frame"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful call result."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Failed call result with a named kind."""

    kind: FailureKind
    message: str

    @property
    def ok(self) -> bool:
        return False


Result = Success[T] | Failure


def failure_from_exception(exc: Exception) -> Failure:
    """Map a collaborator exception to its :class:`Failure` variant."""
    if isinstance(exc, GenerationConnectivityError):
        kind = FailureKind.CONNECTIVITY
    elif isinstance(exc, ModelNotFoundError):
        kind = FailureKind.MODEL_NOT_FOUND
    elif isinstance(exc, UnsupportedMediaError):
        kind = FailureKind.UNSUPPORTED_MEDIA
    elif isinstance(exc, SelectionParseError):
        kind = FailureKind.SELECTION_PARSE
    elif isinstance(exc, PipelineCancelled):
        kind = FailureKind.CANCELLED
    elif isinstance(exc, FrameAnalysisError):
        kind = FailureKind.FRAME
    else:
        kind = FailureKind.API
    return Failure(kind=kind, message=str(exc))
