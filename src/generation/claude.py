"""Claude-backed implementation of the generation contract."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import anthropic
from anthropic import Anthropic
from anthropic.types import TextBlock

from src.errors import (
    GenerationApiError,
    GenerationConnectivityError,
    ModelNotFoundError,
    UnsupportedMediaError,
)
from src.generation.base import PullProgress


class ClaudeClient:
    """Sends text and image prompts to the Anthropic Messages API.

    Hosted models need no pulling, so :meth:`model_available` is always true
    and :meth:`pull_model` yields nothing.
    """

    def __init__(
        self,
        api_key: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        client: Anthropic | None = None,
    ) -> None:
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client or Anthropic(api_key=api_key)

    def generate(self, prompt: str, model: str) -> str:
        return self._create(model, [{"type": "text", "text": prompt}], with_images=False)

    def generate_with_images(self, prompt: str, model: str, images: list[str]) -> str:
        content: list[dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": "image/jpeg", "data": image},
            }
            for image in images
        ]
        content.append({"type": "text", "text": prompt})
        return self._create(model, content, with_images=True)

    def model_available(self, model: str) -> bool:
        return True

    def pull_model(self, model: str) -> Iterator[PullProgress]:
        return iter(())

    def close(self) -> None:
        self._client.close()

    def _create(self, model: str, content: list[dict[str, Any]], with_images: bool) -> str:
        try:
            response = self._client.messages.create(
                model=model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": content}],  # type: ignore[typeddict-item]
            )
        except anthropic.APIConnectionError as exc:
            raise GenerationConnectivityError(f"Cannot connect to Anthropic API: {exc}") from exc
        except anthropic.NotFoundError as exc:
            raise ModelNotFoundError(f"Model {model!r} not found: {exc.message}") from exc
        except anthropic.BadRequestError as exc:
            if with_images:
                raise UnsupportedMediaError(
                    f"Model {model!r} rejected image input: {exc.message}"
                ) from exc
            raise GenerationApiError(f"Claude API error: {exc.message}", status_code=400) from exc
        except anthropic.APIStatusError as exc:
            raise GenerationApiError(
                f"Claude API error: {exc.message}", status_code=exc.status_code
            ) from exc

        return "".join(block.text for block in response.content if isinstance(block, TextBlock))
