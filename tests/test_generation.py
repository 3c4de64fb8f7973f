"""Tests for generation clients (Ollama over httpx, Claude) and the recovery policy."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock

from src.cancellation import CancelToken
from src.errors import (
    FailureKind,
    FrameAnalysisError,
    GenerationApiError,
    GenerationConnectivityError,
    ModelNotFoundError,
    PipelineCancelled,
    SelectionParseError,
    Success,
    UnsupportedMediaError,
    failure_from_exception,
)
from src.extraction.key_moments import identify_key_moments
from src.frames.models import FrameInfo
from src.frames.narrator import narrate_frames
from src.generation.base import PullProgress
from src.generation.claude import ClaudeClient
from src.generation.ollama import OllamaClient
from src.generation.resilient import ensure_model, generate_text, generate_vision

HOST = "http://ollama.test:11434"


def _ollama(handler: Callable[[httpx.Request], httpx.Response]) -> OllamaClient:
    return OllamaClient(host=HOST, transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Ollama client
# ---------------------------------------------------------------------------


class TestOllamaClient:
    def test_generate_payload(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "Hello there"})

        with _ollama(handler) as client:
            assert client.generate("Say hi", "gemma3") == "Hello there"

        body = seen["body"]
        assert seen["path"] == "/api/generate"
        assert isinstance(body, dict)
        assert body["model"] == "gemma3"
        assert body["stream"] is False
        assert body["options"] == {"temperature": 0.7, "num_predict": 1000}

    def test_generate_with_images_uses_chat(self) -> None:
        seen: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": "A slide."}})

        with _ollama(handler) as client:
            assert client.generate_with_images("Describe", "llava", ["aW1n"]) == "A slide."

        body = seen["body"]
        assert seen["path"] == "/api/chat"
        assert isinstance(body, dict)
        assert body["messages"] == [{"role": "user", "content": "Describe", "images": ["aW1n"]}]

    def test_connection_refused(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        with _ollama(handler) as client, pytest.raises(GenerationConnectivityError) as exc_info:
            client.generate("hi", "gemma3")
        assert str(exc_info.value) == f"Cannot connect to Ollama. Make sure it is running on {HOST}"

    def test_model_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"error": 'model "nope" not found, try pulling it first'})

        with _ollama(handler) as client, pytest.raises(ModelNotFoundError):
            client.generate("hi", "nope")

    def test_image_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "model does not support images"})

        with _ollama(handler) as client, pytest.raises(UnsupportedMediaError):
            client.generate_with_images("Describe", "gemma3", ["aW1n"])

    def test_text_bad_request_is_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "invalid options"})

        with _ollama(handler) as client, pytest.raises(GenerationApiError) as exc_info:
            client.generate("hi", "gemma3")
        assert exc_info.value.status_code == 400
        assert "invalid options" in str(exc_info.value)

    def test_server_error_message_carried(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        with _ollama(handler) as client, pytest.raises(GenerationApiError) as exc_info:
            client.generate("hi", "gemma3")
        assert exc_info.value.status_code == 500
        assert "upstream exploded" in str(exc_info.value)

    def test_model_available_matches_latest_tag(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "llava:latest"}, {"name": "gemma3:4b"}]})

        with _ollama(handler) as client:
            assert client.model_available("llava")
            assert client.model_available("gemma3:4b")
            assert not client.model_available("gemma3")

    def test_pull_streams_progress(self) -> None:
        lines = [
            {"status": "pulling manifest"},
            {"status": "downloading", "completed": 25, "total": 100},
            {"status": "success"},
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/pull"
            return httpx.Response(200, content="\n".join(json.dumps(line) for line in lines).encode())

        with _ollama(handler) as client:
            progress = list(client.pull_model("llava"))

        assert [p.status for p in progress] == ["pulling manifest", "downloading", "success"]
        assert progress[1].percent == 25.0
        assert progress[0].percent is None

    def test_pull_error_event(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b'{"status": "pulling manifest"}\n{"error": "file does not exist"}\n')

        with _ollama(handler) as client, pytest.raises(GenerationApiError, match="file does not exist"):
            list(client.pull_model("missing"))

    def test_non_json_reply_is_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy login</html>")

        with _ollama(handler) as client:
            with pytest.raises(GenerationApiError, match="invalid JSON response"):
                client.generate("hi", "gemma3")
            with pytest.raises(GenerationApiError, match="invalid JSON response"):
                client.generate_with_images("hi", "llava", ["aGk="])

    @pytest.mark.parametrize(
        ("path", "body"),
        [("/api/generate", {"done": True}), ("/api/chat", {"message": "oops"})],
    )
    def test_reply_missing_text_field(self, path: str, body: dict) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=body)

        with _ollama(handler) as client, pytest.raises(GenerationApiError):
            if path == "/api/generate":
                client.generate("hi", "gemma3")
            else:
                client.generate_with_images("hi", "llava", ["aGk="])

    def test_read_timeout_is_api_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with _ollama(handler) as client:
            with pytest.raises(GenerationApiError, match="timed out"):
                client.model_available("gemma3")
            with pytest.raises(GenerationApiError, match="timed out"):
                list(client.pull_model("gemma3"))
            with pytest.raises(GenerationApiError, match="timed out"):
                client.generate("hi", "gemma3")

    def test_non_json_tag_list(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="not json")

        with _ollama(handler) as client, pytest.raises(GenerationApiError, match="invalid JSON response"):
            client.model_available("gemma3")

    def test_garbled_pull_line(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b'{"status": "pulling manifest"}\n<garbage>\n')

        with _ollama(handler) as client, pytest.raises(GenerationApiError, match="invalid progress line"):
            list(client.pull_model("gemma3"))

    def test_close_releases_http_client(self) -> None:
        client = _ollama(lambda request: httpx.Response(200, json={"response": "x"}))
        client.close()
        assert client._client.is_closed


# ---------------------------------------------------------------------------
# Claude client
# ---------------------------------------------------------------------------


def _anthropic_response(status: int) -> httpx.Response:
    return httpx.Response(status, request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


class TestClaudeClient:
    def test_generate_joins_text_blocks(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.return_value = MagicMock(
            content=[TextBlock(type="text", text="Hello "), TextBlock(type="text", text="world")]
        )
        client = ClaudeClient(api_key="sk-test", client=sdk)

        assert client.generate("Say hi", "claude-x") == "Hello world"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-x"
        assert kwargs["messages"][0]["content"] == [{"type": "text", "text": "Say hi"}]

    def test_images_sent_as_base64_blocks(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.return_value = MagicMock(content=[TextBlock(type="text", text="A chart")])
        client = ClaudeClient(api_key="sk-test", client=sdk)

        client.generate_with_images("Describe", "claude-x", ["aW1n"])
        content = sdk.messages.create.call_args.kwargs["messages"][0]["content"]
        assert content[0]["type"] == "image"
        assert content[0]["source"]["data"] == "aW1n"
        assert content[-1] == {"type": "text", "text": "Describe"}

    def test_connection_error(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        client = ClaudeClient(api_key="sk-test", client=sdk)
        with pytest.raises(GenerationConnectivityError):
            client.generate("hi", "claude-x")

    def test_bad_request_with_images_is_unsupported_media(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.side_effect = anthropic.BadRequestError(
            "image too large", response=_anthropic_response(400), body=None
        )
        client = ClaudeClient(api_key="sk-test", client=sdk)
        with pytest.raises(UnsupportedMediaError):
            client.generate_with_images("Describe", "claude-x", ["aW1n"])
        with pytest.raises(GenerationApiError):
            client.generate("hi", "claude-x")

    def test_not_found(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.side_effect = anthropic.NotFoundError(
            "model: claude-x", response=_anthropic_response(404), body=None
        )
        client = ClaudeClient(api_key="sk-test", client=sdk)
        with pytest.raises(ModelNotFoundError):
            client.generate("hi", "claude-x")

    def test_hosted_models_need_no_pull(self) -> None:
        client = ClaudeClient(api_key="sk-test", client=MagicMock())
        assert client.model_available("anything")
        assert list(client.pull_model("anything")) == []

    def test_close_closes_sdk_client(self) -> None:
        sdk = MagicMock()
        ClaudeClient(api_key="sk-test", client=sdk).close()
        sdk.close.assert_called_once()


# ---------------------------------------------------------------------------
# Recovery policy
# ---------------------------------------------------------------------------


class TestResilient:
    def test_model_not_found_pulls_then_retries_once(self, make_generator) -> None:
        gen = make_generator([ModelNotFoundError("missing"), "after pull"], available=False)
        result = generate_text(gen, "prompt", "gemma3")

        assert result == Success("after pull")
        assert gen.pulled == ["gemma3"]
        assert len(gen.calls) == 2

    def test_second_not_found_is_not_retried_again(self, make_generator) -> None:
        gen = make_generator([ModelNotFoundError("missing"), ModelNotFoundError("still missing")])
        result = generate_text(gen, "prompt", "gemma3")

        assert not result.ok
        assert result.kind is FailureKind.MODEL_NOT_FOUND  # type: ignore[union-attr]
        assert len(gen.calls) == 2

    def test_failed_pull_is_fatal(self, make_generator) -> None:
        gen = make_generator([ModelNotFoundError("missing")])

        def broken_pull(model: str) -> Iterator[PullProgress]:
            raise GenerationApiError("registry unreachable")
            yield  # pragma: no cover

        gen.pull_model = broken_pull
        result = generate_text(gen, "prompt", "gemma3")

        assert not result.ok
        assert result.kind is FailureKind.MODEL_NOT_FOUND  # type: ignore[union-attr]
        assert len(gen.calls) == 1

    def test_connectivity_not_retried(self, make_generator) -> None:
        gen = make_generator([GenerationConnectivityError("down")])
        result = generate_text(gen, "prompt", "gemma3")

        assert result.kind is FailureKind.CONNECTIVITY  # type: ignore[union-attr]
        assert len(gen.calls) == 1
        assert gen.pulled == []

    def test_vision_falls_back_to_text(self, make_generator) -> None:
        gen = make_generator([UnsupportedMediaError("no images"), "text answer"])
        result = generate_vision(gen, "prompt", "gemma3", ["aW1n"])

        assert result == Success("text answer")
        assert [c["kind"] for c in gen.calls] == ["vision", "text"]

    def test_vision_without_fallback(self, make_generator) -> None:
        gen = make_generator([UnsupportedMediaError("no images")])
        result = generate_vision(gen, "prompt", "gemma3", ["aW1n"], allow_text_fallback=False)

        assert result.kind is FailureKind.UNSUPPORTED_MEDIA  # type: ignore[union-attr]
        assert len(gen.calls) == 1

    def test_cancelled_skips_call(self, make_generator) -> None:
        token = CancelToken()
        token.cancel()
        gen = make_generator([])

        assert generate_text(gen, "p", "m", token).kind is FailureKind.CANCELLED  # type: ignore[union-attr]
        assert generate_vision(gen, "p", "m", ["x"], cancel=token).kind is FailureKind.CANCELLED  # type: ignore[union-attr]
        assert gen.calls == []

    def test_ensure_model(self, make_generator) -> None:
        ready = make_generator([], available=True)
        assert ensure_model(ready, "llava") == Success(None)
        assert ready.pulled == []

        missing = make_generator([], available=False)
        assert ensure_model(missing, "llava") == Success(None)
        assert missing.pulled == ["llava"]

    def test_ensure_model_unreachable(self, make_generator) -> None:
        gen = make_generator([])
        gen.model_available = MagicMock(side_effect=GenerationConnectivityError("down"))
        result = ensure_model(gen, "llava")
        assert result.kind is FailureKind.CONNECTIVITY  # type: ignore[union-attr]


# ---------------------------------------------------------------------------
# Malformed host replies end up as failures, not exceptions
# ---------------------------------------------------------------------------


def _html_reply(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html><body>Sign in to continue</body></html>")


class TestMalformedRepliesDegrade:
    def test_ensure_model_read_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with _ollama(handler) as client:
            result = ensure_model(client, "gemma3")
        assert result.kind is FailureKind.API  # type: ignore[union-attr]
        assert "timed out" in result.message  # type: ignore[union-attr]

    def test_generate_text_returns_failure(self) -> None:
        with _ollama(_html_reply) as client:
            result = generate_text(client, "hi", "gemma3")
        assert result.kind is FailureKind.API  # type: ignore[union-attr]

    def test_key_moments_fall_back(self, segments) -> None:
        with _ollama(_html_reply) as client:
            selection = identify_key_moments(segments, 5, client, "gemma3")
        assert selection.used_fallback
        assert selection.failure is not None
        assert "invalid JSON response" in selection.failure.message
        assert selection.moments[0].timestamp == 0.0

    def test_narrator_marks_frames_failed(self, tmp_path, segments) -> None:
        frames = []
        for number in (1, 2):
            path = tmp_path / f"frame_{number:04d}.jpg"
            path.write_bytes(b"jpeg")
            frames.append(FrameInfo(path=path, timestamp=float(number), frame_number=number))

        with _ollama(_html_reply) as client:
            narrations = narrate_frames(frames, client, "llava", segments)
        assert [n.failed for n in narrations] == [True, True]
        assert "invalid JSON response" in (narrations[0].error or "")


class TestFailureMapping:
    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (GenerationConnectivityError("down"), FailureKind.CONNECTIVITY),
            (ModelNotFoundError("missing"), FailureKind.MODEL_NOT_FOUND),
            (UnsupportedMediaError("no images"), FailureKind.UNSUPPORTED_MEDIA),
            (SelectionParseError("garbled"), FailureKind.SELECTION_PARSE),
            (FrameAnalysisError("unreadable"), FailureKind.FRAME),
            (PipelineCancelled("stop"), FailureKind.CANCELLED),
            (GenerationApiError("500"), FailureKind.API),
        ],
    )
    def test_kind(self, exc: Exception, kind: FailureKind) -> None:
        failure = failure_from_exception(exc)
        assert failure.kind is kind
        assert failure.message == str(exc)
        assert not failure.ok
