"""FastAPI dependencies shared by the routes."""

from __future__ import annotations

from collections.abc import Iterator

from src.config import settings
from src.generation.base import TextGenerator
from src.generation.factory import get_generator


def get_llm() -> Iterator[TextGenerator]:
    """Yield a generation client for one request and close it afterwards."""
    generator = get_generator(settings)
    try:
        yield generator
    finally:
        generator.close()
