"""Generation collaborator contract shared by the Ollama and Claude clients."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol


@dataclass
class PullProgress:
    """One progress update while a model is being pulled."""

    status: str
    completed: int | None = None
    total: int | None = None

    @property
    def percent(self) -> float | None:
        if not self.total or self.completed is None:
            return None
        return 100.0 * self.completed / self.total


class TextGenerator(Protocol):
    """Text and vision generation against a model host.

    Implementations raise the :mod:`src.errors` generation exceptions:
    ``GenerationConnectivityError`` when the host is unreachable,
    ``ModelNotFoundError`` when the model is missing,
    ``UnsupportedMediaError`` when image input is rejected, and
    ``GenerationApiError`` for any other server-side error.
    """

    def generate(self, prompt: str, model: str) -> str: ...

    def generate_with_images(self, prompt: str, model: str, images: list[str]) -> str:
        """Generate from a prompt plus base64-encoded images."""
        ...

    def model_available(self, model: str) -> bool: ...

    def pull_model(self, model: str) -> Iterator[PullProgress]: ...

    def close(self) -> None:
        """Release any connection the client holds."""
        ...
