"""Run-scoped temporary storage for intermediate audio and frames."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class RunSession:
    """Owns a temporary work directory for one pipeline run.

    Use as a context manager; the directory is always removed on exit.
    With ``keep_audio`` / ``keep_frames`` the artefacts are first copied
    next to the source file (``<stem>.wav`` and ``<stem>_frames/``).
    """

    def __init__(self, source: Path, keep_audio: bool = False, keep_frames: bool = False) -> None:
        self.source = source
        self.keep_audio = keep_audio
        self.keep_frames = keep_frames
        self._tmp: tempfile.TemporaryDirectory[str] | None = None

    @property
    def work_dir(self) -> Path:
        if self._tmp is None:
            raise RuntimeError("RunSession used outside of a with-block")
        return Path(self._tmp.name)

    @property
    def audio_path(self) -> Path:
        return self.work_dir / f"{self.source.stem}.wav"

    @property
    def frames_dir(self) -> Path:
        return self.work_dir / "frames"

    @property
    def kept_audio_path(self) -> Path:
        return self.source.with_suffix(".wav")

    @property
    def kept_frames_dir(self) -> Path:
        return self.source.parent / f"{self.source.stem}_frames"

    def reset_frames(self) -> None:
        """Remove any frames written so far (before re-extracting)."""
        shutil.rmtree(self.frames_dir, ignore_errors=True)

    def __enter__(self) -> RunSession:
        self._tmp = tempfile.TemporaryDirectory(prefix="video-digest-")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if self.keep_audio and self.audio_path.exists():
                shutil.copy2(self.audio_path, self.kept_audio_path)
                logger.info("Audio saved to %s", self.kept_audio_path)
            if self.keep_frames and self.frames_dir.exists():
                shutil.copytree(self.frames_dir, self.kept_frames_dir, dirs_exist_ok=True)
                logger.info("Frames saved to %s", self.kept_frames_dir)
        finally:
            if self._tmp is not None:
                self._tmp.cleanup()
                self._tmp = None
