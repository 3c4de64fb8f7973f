from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings validated via Pydantic.

    Values are loaded from environment variables and/or a .env file.
    """

    # Generation provider: "ollama" (local host) or "anthropic"
    llm_provider: str = "ollama"
    ollama_host: str = "http://localhost:11434"
    text_model: str = "gemma3"
    vision_model: str = "llava"
    request_timeout: float = 300.0
    temperature: float = 0.7
    num_predict: int = 1000

    # API Keys
    anthropic_api_key: str = ""
    claude_model: str = "claude-sonnet-4-20250514"
    assemblyai_api_key: str = ""  # Only needed when transcription_provider is "assemblyai"

    # Transcription
    transcription_provider: str = "whisper"
    whisper_model: str = "base"

    # Frame analysis
    max_frames: int = 30
    frame_interval: int = 3
    context_window: float = 5.0

    # Summarization
    max_chunk_chars: int = 4000
    map_workers: int = 1

    # App config
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance.

    Gracefully handles missing .env files (e.g. in CI/testing) by falling
    back to environment variables and defaults.
    """
    try:
        return Settings()
    except Exception:
        # If .env is missing or unreadable, build settings from env vars only.
        return Settings(_env_file=None)  # type: ignore[call-arg]


settings = get_settings()
