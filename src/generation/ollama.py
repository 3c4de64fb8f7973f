"""HTTP client for an Ollama-compatible generation host."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import httpx

from src.errors import (
    GenerationApiError,
    GenerationConnectivityError,
    ModelNotFoundError,
    UnsupportedMediaError,
)
from src.generation.base import PullProgress

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"


class OllamaClient:
    """Calls ``/api/generate``, ``/api/chat``, ``/api/tags`` and ``/api/pull``.

    Args:
        host: Base URL of the Ollama server.
        timeout: Per-request timeout in seconds.
        temperature: Sampling temperature sent with every request.
        num_predict: Maximum number of tokens to generate.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        timeout: float = 300.0,
        temperature: float = 0.7,
        num_predict: int = 1000,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.options = {"temperature": temperature, "num_predict": num_predict}
        self._client = httpx.Client(base_url=self.host, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> OllamaClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def generate(self, prompt: str, model: str) -> str:
        data = self._post(
            "/api/generate",
            {"model": model, "prompt": prompt, "stream": False, "options": self.options},
        )
        if "response" not in data:
            raise GenerationApiError("Ollama API error: reply has no 'response' field")
        return str(data["response"])

    def generate_with_images(self, prompt: str, model: str, images: list[str]) -> str:
        data = self._post(
            "/api/chat",
            {
                "model": model,
                "messages": [{"role": "user", "content": prompt, "images": images}],
                "stream": False,
                "options": self.options,
            },
            with_images=True,
        )
        message = data.get("message")
        if not isinstance(message, dict) or "content" not in message:
            raise GenerationApiError("Ollama API error: reply has no 'message.content' field")
        return str(message["content"])

    def model_available(self, model: str) -> bool:
        """Return True if *model* is installed on the host.

        A name without a tag matches the ``:latest`` tag.
        """
        try:
            r = self._client.get("/api/tags")
            r.raise_for_status()
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise GenerationConnectivityError(self._unreachable_message()) from exc
        except httpx.TransportError as exc:
            raise GenerationApiError(f"Ollama API error: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise GenerationApiError(
                f"Ollama API error: {_error_message(exc.response)}",
                status_code=exc.response.status_code,
            ) from exc

        models = _json_body(r).get("models")
        if not isinstance(models, list):
            raise GenerationApiError("Ollama API error: tag list has no 'models' field")
        wanted = {model, model if ":" in model else f"{model}:latest"}
        names = {m.get("name") for m in models if isinstance(m, dict)}
        return bool(wanted & names)

    def pull_model(self, model: str) -> Iterator[PullProgress]:
        """Pull *model*, yielding progress updates from the NDJSON stream."""
        logger.info("Pulling model %s from %s", model, self.host)
        try:
            with self._client.stream(
                "POST", "/api/pull", json={"model": model, "stream": True}, timeout=None
            ) as r:
                if r.status_code >= 400:
                    r.read()
                    raise GenerationApiError(
                        f"Failed to pull {model}: {_error_message(r)}", status_code=r.status_code
                    )
                for line in r.iter_lines():
                    if not line.strip():
                        continue
                    try:
                        event = json.loads(line)
                    except ValueError as exc:
                        raise GenerationApiError(
                            f"Failed to pull {model}: invalid progress line {line[:80]!r}"
                        ) from exc
                    if not isinstance(event, dict):
                        raise GenerationApiError(f"Failed to pull {model}: invalid progress line {line[:80]!r}")
                    if "error" in event:
                        raise GenerationApiError(f"Failed to pull {model}: {event['error']}")
                    yield PullProgress(
                        status=event.get("status", ""),
                        completed=event.get("completed"),
                        total=event.get("total"),
                    )
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise GenerationConnectivityError(self._unreachable_message()) from exc
        except httpx.TransportError as exc:
            raise GenerationApiError(f"Failed to pull {model}: {exc}") from exc

    def _post(self, path: str, payload: dict[str, Any], with_images: bool = False) -> dict[str, Any]:
        """POST *payload* and map transport/HTTP failures to generation errors."""
        try:
            r = self._client.post(path, json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            raise GenerationConnectivityError(self._unreachable_message()) from exc
        except httpx.TransportError as exc:
            raise GenerationApiError(f"Ollama API error: {exc}") from exc

        if r.status_code >= 400:
            message = _error_message(r)
            lowered = message.lower()
            if r.status_code == 404 and "not found" in lowered:
                raise ModelNotFoundError(f"Model {payload.get('model')!r} not found: {message}")
            if with_images and (r.status_code == 400 or "image" in lowered):
                raise UnsupportedMediaError(
                    f"Model {payload.get('model')!r} rejected image input: {message}"
                )
            raise GenerationApiError(f"Ollama API error: {message}", status_code=r.status_code)

        return _json_body(r)

    def _unreachable_message(self) -> str:
        return f"Cannot connect to Ollama. Make sure it is running on {self.host}"


def _json_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a successful reply, which must be a JSON object."""
    try:
        body = response.json()
    except ValueError as exc:
        snippet = response.text[:200]
        raise GenerationApiError(
            f"Ollama API error: invalid JSON response: {snippet!r}",
            status_code=response.status_code,
        ) from exc
    if not isinstance(body, dict):
        raise GenerationApiError(
            "Ollama API error: expected a JSON object", status_code=response.status_code
        )
    return body


def _error_message(response: httpx.Response) -> str:
    """Return the server-provided ``error`` field, or the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text or f"HTTP {response.status_code}"
