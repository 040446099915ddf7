"""Tests for the HTTP embeddings client: payload shape, retries and failure mapping."""

import json

import httpx
import pytest

from codes.errors import (
    EmbeddingDimensionMismatch,
    EmbeddingUnavailable,
    ValidationFailed,
)
from config.settings import Settings
from embeddings.client import EmbeddingsClient

API_URL = "http://embeddings.test/api/embeddings"


def make_client(handler, dims=4, max_attempts=3, backoff=(1.0, 2.0, 4.0)):
    sleeps: list[float] = []
    client = EmbeddingsClient(
        api_url=API_URL,
        model="nomic-embed-text",
        embedding_dims=dims,
        max_attempts=max_attempts,
        backoff=backoff,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
        sleep=sleeps.append,
    )
    return client, sleeps


class TestEmbeddingsClientSuccess:
    def test_sends_model_and_prompt(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"embedding": [0.1, 0.2, 0.3, 0.4]})

        client, sleeps = make_client(handler)

        assert client.embed("Cholera due to Vibrio") == [0.1, 0.2, 0.3, 0.4]
        assert seen == [{"model": "nomic-embed-text", "prompt": "Cholera due to Vibrio"}]
        assert sleeps == []

    def test_recovers_after_transient_failure(self):
        responses = iter(
            [
                httpx.Response(503, text="busy"),
                httpx.Response(200, json={"embedding": [1.0, 0.0, 0.0, 0.0]}),
            ]
        )
        client, sleeps = make_client(lambda request: next(responses))

        assert client.embed("text") == [1.0, 0.0, 0.0, 0.0]
        assert sleeps == [1.0]

    def test_dimensions_reported(self):
        client, _ = make_client(lambda request: httpx.Response(200, json={}), dims=12)

        assert client.get_embedding_dimensions() == 12


class TestEmbeddingsClientFailures:
    def test_blank_text_makes_no_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"embedding": [0.0] * 4})

        client, _ = make_client(handler)

        with pytest.raises(ValidationFailed):
            client.embed("   ")
        assert calls == []

    def test_gives_up_after_max_attempts(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="boom")

        client, sleeps = make_client(handler, max_attempts=3)

        with pytest.raises(EmbeddingUnavailable) as exc_info:
            client.embed("text")

        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]
        assert exc_info.value.attempts == 3

    def test_connection_errors_are_retried(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client, sleeps = make_client(handler, max_attempts=2, backoff=(0.5,))

        with pytest.raises(EmbeddingUnavailable):
            client.embed("text")
        assert sleeps == [0.5]

    def test_timeouts_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ReadTimeout("read timed out", request=request)

        client, sleeps = make_client(handler, max_attempts=3)

        with pytest.raises(EmbeddingUnavailable) as exc_info:
            client.embed("text")

        assert len(calls) == 3
        assert sleeps == [1.0, 2.0]
        assert exc_info.value.attempts == 3

    def test_malformed_payload_is_retried(self):
        client, sleeps = make_client(
            lambda request: httpx.Response(200, json={"data": []}), max_attempts=2
        )

        with pytest.raises(EmbeddingUnavailable):
            client.embed("text")
        assert sleeps == [1.0]

    def test_wrong_dimension_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"embedding": [0.1, 0.2]})

        client, sleeps = make_client(handler, dims=4)

        with pytest.raises(EmbeddingDimensionMismatch) as exc_info:
            client.embed("text")

        assert (exc_info.value.expected, exc_info.value.actual) == (4, 2)
        assert len(calls) == 1
        assert sleeps == []

    def test_invalid_attempt_count(self):
        with pytest.raises(ValueError):
            EmbeddingsClient(max_attempts=0)


def test_from_settings_uses_configured_values():
    settings = Settings(
        embeddings_api_url=API_URL,
        embeddings_model="mini",
        embedding_dimension=16,
        embeddings_max_attempts=5,
        embeddings_backoff=(0.25,),
    )

    client = EmbeddingsClient.from_settings(settings)
    try:
        assert client.api_url == API_URL
        assert client.model == "mini"
        assert client.get_embedding_dimensions() == 16
        assert client.max_attempts == 5
        assert client.backoff == (0.25,)
    finally:
        client.close()
