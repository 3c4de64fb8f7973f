"""Tests for ffmpeg helpers and transcription (subprocess patched)."""

from __future__ import annotations

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from src.errors import MediaError, TranscriptionError
from src.media.ffmpeg import (
    extract_audio,
    extract_frames_at_timestamps,
    extract_frames_interval,
    probe_duration,
)
from src.media.transcription import transcribe_audio, transcribe_with_whisper


def _completed(cmd: list[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr=stderr)


class TestFfmpeg:
    def test_extract_audio_command(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=lambda cmd, **kw: _completed(cmd)) as run:
            out = extract_audio(tmp_path / "in.mp4", tmp_path / "audio" / "in.wav")

        cmd = run.call_args.args[0]
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-acodec") + 1] == "pcm_s16le"
        assert out == tmp_path / "audio" / "in.wav"

    def test_missing_binary(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
            with pytest.raises(MediaError, match="not installed"):
                extract_audio(tmp_path / "in.mp4", tmp_path / "out.wav")

    def test_nonzero_exit(self, tmp_path: Path) -> None:
        with patch(
            "src.media.ffmpeg.subprocess.run",
            side_effect=lambda cmd, **kw: _completed(cmd, 1, stderr="Invalid data found"),
        ):
            with pytest.raises(MediaError, match="Invalid data found"):
                extract_audio(tmp_path / "in.mp4", tmp_path / "out.wav")

    def test_probe_duration(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=lambda cmd, **kw: _completed(cmd, stdout="93.48\n")):
            assert probe_duration(tmp_path / "in.mp4") == 93.48

    def test_probe_duration_unparsable(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=lambda cmd, **kw: _completed(cmd, stdout="N/A")):
            with pytest.raises(MediaError):
                probe_duration(tmp_path / "in.mp4")

    def test_frames_at_timestamps(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=lambda cmd, **kw: _completed(cmd)) as run:
            frames = extract_frames_at_timestamps(tmp_path / "in.mp4", [1.5, 42.0], tmp_path / "frames")

        assert [f.frame_number for f in frames] == [1, 2]
        assert [f.timestamp for f in frames] == [1.5, 42.0]
        assert frames[1].path.name == "frame_0002.jpg"
        seek = [c.args[0][c.args[0].index("-ss") + 1] for c in run.call_args_list]
        assert seek == ["1.500", "42.000"]

    def test_frames_interval(self, tmp_path: Path) -> None:
        out_dir = tmp_path / "frames"

        def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            count = int(cmd[cmd.index("-frames:v") + 1])
            for i in range(1, count + 1):
                (out_dir / f"frame_{i:04d}.jpg").write_bytes(b"jpg")
            return _completed(cmd)

        with patch("src.media.ffmpeg.subprocess.run", side_effect=fake_run) as run:
            frames = extract_frames_interval(tmp_path / "in.mp4", out_dir, interval=3, max_frames=30, duration=10.0)

        cmd = run.call_args.args[0]
        assert cmd[cmd.index("-vf") + 1] == "fps=1/3"
        # floor(10 / 3) == 3 frames
        assert [f.timestamp for f in frames] == [0.0, 3.0, 6.0]
        assert [f.frame_number for f in frames] == [1, 2, 3]

    def test_frames_interval_capped(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run", side_effect=lambda cmd, **kw: _completed(cmd)) as run:
            extract_frames_interval(tmp_path / "in.mp4", tmp_path / "frames", interval=2, max_frames=5, duration=600.0)
        cmd = run.call_args.args[0]
        assert cmd[cmd.index("-frames:v") + 1] == "5"

    def test_frames_interval_short_video(self, tmp_path: Path) -> None:
        with patch("src.media.ffmpeg.subprocess.run") as run:
            assert extract_frames_interval(tmp_path / "in.mp4", tmp_path / "frames", interval=3, duration=2.0) == []
        run.assert_not_called()

    def test_frames_interval_rejects_zero(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            extract_frames_interval(tmp_path / "in.mp4", tmp_path / "frames", interval=0, duration=5.0)


class TestTranscription:
    def test_whisper_missing(self, tmp_path: Path) -> None:
        with patch("src.media.transcription.shutil.which", return_value=None):
            with pytest.raises(TranscriptionError, match="not installed"):
                transcribe_with_whisper(tmp_path / "audio.wav")

    def test_whisper_parses_and_removes_output(self, tmp_path: Path) -> None:
        audio = tmp_path / "audio.wav"
        output = tmp_path / "audio.json"

        def fake_run(cmd: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            output.write_text(json.dumps({"segments": [{"start": 0.0, "end": 2.0, "text": " Hi all."}]}))
            return _completed(cmd)

        with (
            patch("src.media.transcription.shutil.which", return_value="/usr/bin/whisper"),
            patch("src.media.transcription.subprocess.run", side_effect=fake_run) as run,
        ):
            transcript = transcribe_with_whisper(audio, model_size="small")

        assert transcript.full_text == "Hi all."
        assert not output.exists()
        cmd = run.call_args.args[0]
        assert cmd[cmd.index("--model") + 1] == "small"
        assert cmd[cmd.index("--output_format") + 1] == "json"

    def test_whisper_failure(self, tmp_path: Path) -> None:
        with (
            patch("src.media.transcription.shutil.which", return_value="/usr/bin/whisper"),
            patch(
                "src.media.transcription.subprocess.run",
                side_effect=lambda cmd, **kw: _completed(cmd, 2, stderr="CUDA error"),
            ),
        ):
            with pytest.raises(TranscriptionError, match="code 2"):
                transcribe_with_whisper(tmp_path / "audio.wav")

    def test_assemblyai_requires_key(self, tmp_path: Path) -> None:
        with pytest.raises(TranscriptionError, match="ASSEMBLYAI_API_KEY"):
            transcribe_audio(tmp_path / "audio.wav", provider="assemblyai", api_key="")

    def test_assemblyai_utterances(self, tmp_path: Path) -> None:
        utterance = MagicMock(speaker="A", text="Welcome back.", start=500, end=2500)
        result = MagicMock(status="completed", utterances=[utterance], text="Welcome back.")
        with patch("assemblyai.Transcriber") as transcriber:
            transcriber.return_value.transcribe.return_value = result
            transcript = transcribe_audio(tmp_path / "audio.wav", provider="assemblyai", api_key="key")

        assert transcript.segments[0].start == 0.5
        assert transcript.segments[0].end == 2.5

    def test_unknown_provider(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unknown transcription provider"):
            transcribe_audio(tmp_path / "audio.wav", provider="vosk")
