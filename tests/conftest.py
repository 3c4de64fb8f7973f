"""Shared fixtures: a scripted stand-in for the generation client."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator

import pytest

from src.generation.base import PullProgress
from src.ingestion.models import TranscriptSegment

Handler = Callable[[str, list[str] | None], str]


class FakeGenerator:
    """Implements the TextGenerator protocol from scripted replies.

    Replies come from *handler* if given, otherwise from *responses* in
    order. A reply that is an exception instance is raised instead.
    """

    def __init__(
        self,
        responses: list[str | Exception] | None = None,
        handler: Handler | None = None,
        available: bool = True,
    ) -> None:
        self.responses = list(responses or [])
        self.handler = handler
        self.available = available
        self.calls: list[dict[str, object]] = []
        self.pulled: list[str] = []
        self.closed = False
        self._lock = threading.Lock()

    def generate(self, prompt: str, model: str) -> str:
        return self._reply("text", prompt, model, None)

    def generate_with_images(self, prompt: str, model: str, images: list[str]) -> str:
        return self._reply("vision", prompt, model, images)

    def model_available(self, model: str) -> bool:
        return self.available

    def pull_model(self, model: str) -> Iterator[PullProgress]:
        self.pulled.append(model)
        yield PullProgress(status="pulling manifest")
        yield PullProgress(status="downloading", completed=50, total=100)
        self.available = True
        yield PullProgress(status="success")

    def close(self) -> None:
        self.closed = True

    def _reply(self, kind: str, prompt: str, model: str, images: list[str] | None) -> str:
        with self._lock:
            self.calls.append({"kind": kind, "prompt": prompt, "model": model, "images": images})
            scripted = None if self.handler else self.responses.pop(0)
        reply = self.handler(prompt, images) if self.handler else scripted
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def prompts(self) -> list[str]:
        return [str(c["prompt"]) for c in self.calls]


@pytest.fixture
def make_generator() -> Callable[..., FakeGenerator]:
    return FakeGenerator


@pytest.fixture
def segments() -> list[TranscriptSegment]:
    """Ten-segment talk with a few discourse markers."""
    texts = [
        "Welcome everyone to the session.",
        "Today we are covering deployment pipelines.",
        "The build runs on every push.",
        "Let's look at the configuration file.",
        "It defines three stages.",
        "Here is an example of a failing job.",
        "The logs point to a missing secret.",
        "This is the important part about rollbacks.",
        "Any question so far?",
        "Thanks for watching, see you next time.",
    ]
    return [
        TranscriptSegment(text=text, start=float(i * 10), end=float(i * 10 + 8))
        for i, text in enumerate(texts)
    ]
