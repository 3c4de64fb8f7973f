"""Recovery policy around generation calls, returning result variants.

- Model not found: pull the model, then retry the call once.
- Image input rejected: retry the same prompt text-only (when allowed).
- Connectivity and other API errors: no retry, returned as a Failure.

Every recovered error is logged at WARNING so degraded output is explained.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from src.cancellation import CancelToken
from src.errors import (
    Failure,
    FailureKind,
    GenerationError,
    ModelNotFoundError,
    Result,
    Success,
    failure_from_exception,
)
from src.generation.base import TextGenerator

logger = logging.getLogger(__name__)


def ensure_model(generator: TextGenerator, model: str) -> Result[None]:
    """Make sure *model* is available, pulling it if needed.

    A failed pull is fatal for the calling chain and is returned as a
    ``MODEL_NOT_FOUND`` failure.
    """
    try:
        if generator.model_available(model):
            return Success(None)
    except GenerationError as exc:
        return failure_from_exception(exc)

    return _pull(generator, model)


def generate_text(
    generator: TextGenerator,
    prompt: str,
    model: str,
    cancel: CancelToken | None = None,
) -> Result[str]:
    """Run a text generation call with pull-then-retry recovery."""
    if cancel is not None and cancel.cancelled:
        return Failure(FailureKind.CANCELLED, "Run cancelled by caller")
    return _call_with_pull(lambda: generator.generate(prompt, model), generator, model)


def generate_vision(
    generator: TextGenerator,
    prompt: str,
    model: str,
    images: list[str],
    allow_text_fallback: bool = True,
    cancel: CancelToken | None = None,
) -> Result[str]:
    """Run a vision generation call.

    If the model rejects image input and *allow_text_fallback* is set, the
    same prompt is retried without images.
    """
    if cancel is not None and cancel.cancelled:
        return Failure(FailureKind.CANCELLED, "Run cancelled by caller")

    result = _call_with_pull(
        lambda: generator.generate_with_images(prompt, model, images), generator, model
    )
    if (
        isinstance(result, Failure)
        and result.kind is FailureKind.UNSUPPORTED_MEDIA
        and allow_text_fallback
    ):
        logger.warning("Model %s may not support images, retrying with text-only: %s", model, result.message)
        return generate_text(generator, prompt, model, cancel)
    return result


def _call_with_pull(call: Callable[[], str], generator: TextGenerator, model: str) -> Result[str]:
    try:
        return Success(call())
    except ModelNotFoundError as exc:
        logger.warning("Model %s not found, pulling before retry: %s", model, exc)
    except GenerationError as exc:
        return failure_from_exception(exc)

    pulled = _pull(generator, model)
    if isinstance(pulled, Failure):
        return pulled

    try:
        return Success(call())
    except GenerationError as exc:
        return failure_from_exception(exc)


def _pull(generator: TextGenerator, model: str) -> Result[None]:
    try:
        for progress in generator.pull_model(model):
            if progress.percent is not None:
                logger.debug("Pulling %s: %s %.0f%%", model, progress.status, progress.percent)
            else:
                logger.debug("Pulling %s: %s", model, progress.status)
    except GenerationError as exc:
        logger.warning("Failed to pull model %s: %s", model, exc)
        return Failure(FailureKind.MODEL_NOT_FOUND, f"Failed to pull model {model}: {exc}")

    logger.info("Model %s pulled", model)
    return Success(None)
