"""Data models for extracted frames and their narrations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

FAILED_PLACEHOLDER = "[Analysis failed]"


@dataclass
class FrameInfo:
    """One extracted still, numbered from 1 in extraction order."""

    path: Path
    timestamp: float
    frame_number: int


@dataclass
class FrameNarration:
    """Description of one frame paired with its transcript excerpt."""

    frame: FrameInfo
    description: str | None
    transcript_context: str
    failed: bool = False
    error: str | None = None

    def render(self) -> str:
        """Narration line as it is fed to the reduce step."""
        header = f"[{self.frame.timestamp:g}s] Frame {self.frame.frame_number}:"
        if self.failed:
            return f"{header} {FAILED_PLACEHOLDER}"
        return f'{header} {self.description}\n    Transcript context: "{self.transcript_context}"'
