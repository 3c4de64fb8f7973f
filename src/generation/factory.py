"""Select the generation client configured in settings."""

from __future__ import annotations

from src.config import Settings
from src.generation.base import TextGenerator
from src.generation.claude import ClaudeClient
from src.generation.ollama import OllamaClient


def get_generator(settings: Settings) -> TextGenerator:
    """Build the client for ``settings.llm_provider``.

    Raises:
        ValueError: If the provider is unknown.
    """
    provider = settings.llm_provider.lower()
    if provider == "ollama":
        return OllamaClient(
            host=settings.ollama_host,
            timeout=settings.request_timeout,
            temperature=settings.temperature,
            num_predict=settings.num_predict,
        )
    if provider in ("anthropic", "claude"):
        return ClaudeClient(
            api_key=settings.anthropic_api_key,
            temperature=settings.temperature,
            max_tokens=settings.num_predict,
        )
    msg = f"Unknown LLM provider: {settings.llm_provider!r}. Supported: ['ollama', 'anthropic']"
    raise ValueError(msg)


def default_models(settings: Settings) -> tuple[str, str]:
    """Return ``(text_model, vision_model)`` for the configured provider."""
    if settings.llm_provider.lower() in ("anthropic", "claude"):
        return settings.claude_model, settings.claude_model
    return settings.text_model, settings.vision_model
