"""HTTP embeddings client for generating vector embeddings."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

import httpx
from pydantic import ValidationError
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_fixed,
)

from codes.errors import (
    EmbeddingDimensionMismatch,
    EmbeddingUnavailable,
    ValidationFailed,
)
from config.settings import Settings
from .models import EmbeddingRequest, EmbeddingResponse

logger = logging.getLogger(__name__)


class TransientEmbeddingError(Exception):
    """A single failed attempt that is worth retrying."""


class EmbeddingsClient:
    """Client for an Ollama-style `POST {model, prompt} -> {embedding}` service."""

    def __init__(
        self,
        api_url: str = "http://localhost:11434/api/embeddings",
        model: str = "nomic-embed-text",
        embedding_dims: int = 768,
        timeout: float = 10.0,
        max_attempts: int = 3,
        backoff: Sequence[float] = (1.0, 2.0, 4.0),
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the embeddings client.

        Args:
            api_url: Full URL of the embeddings endpoint
            model: Embedding model name sent with every request
            embedding_dims: Expected vector length; other lengths are rejected
            timeout: Per-attempt timeout in seconds
            max_attempts: Total attempts per text, including the first
            backoff: Delay before each retry; the last value is reused
            client: Optional preconfigured httpx client (tests inject a mock transport)
            sleep: Function used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not backoff:
            raise ValueError("backoff schedule must not be empty")

        self.api_url = api_url
        self.model = model
        self.dimensions = embedding_dims
        self.max_attempts = max_attempts
        self.backoff = tuple(backoff)
        self._sleep = sleep
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

        logger.info(
            f"Initialized embeddings client with model: {model} ({embedding_dims} dims) at {api_url}"
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmbeddingsClient":
        return cls(
            api_url=settings.embeddings_api_url,
            model=settings.embeddings_model,
            embedding_dims=settings.embedding_dimension,
            timeout=settings.embeddings_timeout,
            max_attempts=settings.embeddings_max_attempts,
            backoff=settings.embeddings_backoff,
        )

    def _request_once(self, text: str) -> list[float]:
        """One remote call; every failure mode is reported as transient."""
        payload = EmbeddingRequest(model=self.model, prompt=text)
        try:
            response = self._client.post(self.api_url, json=payload.model_dump())
        except httpx.TimeoutException as e:
            raise TransientEmbeddingError(f"timed out calling {self.api_url}") from e
        except httpx.HTTPError as e:
            raise TransientEmbeddingError(f"could not reach {self.api_url}: {e}") from e

        if not response.is_success:
            raise TransientEmbeddingError(
                f"embedding service returned HTTP {response.status_code}"
            )

        try:
            parsed = EmbeddingResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise TransientEmbeddingError(
                "embedding service returned a malformed payload"
            ) from e
        return parsed.embedding

    def _log_retry(self, retry_state) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome else None
        logger.warning(
            f"Embedding attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}; "
            f"retrying in {retry_state.next_action.sleep:.1f}s"
        )

    def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single non-blank text.

        Raises:
            ValidationFailed: text is blank
            EmbeddingUnavailable: every attempt failed
            EmbeddingDimensionMismatch: the service answered with a wrong-length vector
        """
        if not text or not text.strip():
            raise ValidationFailed("Text to embed must not be blank", field="text")

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_chain(*(wait_fixed(delay) for delay in self.backoff)),
            retry=retry_if_exception_type(TransientEmbeddingError),
            sleep=self._sleep,
            before_sleep=self._log_retry,
        )

        vector: list[float] = []
        try:
            for attempt in retrying:
                with attempt:
                    vector = self._request_once(text)
        except RetryError as e:
            cause = e.last_attempt.exception()
            logger.error(
                f"Embedding service unavailable after {self.max_attempts} attempts: {cause}"
            )
            raise EmbeddingUnavailable(
                f"Failed to generate embedding after {self.max_attempts} attempts: {cause}",
                attempts=self.max_attempts,
            ) from cause

        if len(vector) != self.dimensions:
            logger.error(
                f"Embedding service returned {len(vector)} dims, expected {self.dimensions}"
            )
            raise EmbeddingDimensionMismatch(self.dimensions, len(vector))

        logger.debug(f"Generated embedding for text of {len(text)} chars")
        return vector

    def get_embedding_dimensions(self) -> int:
        """Get the dimensionality of embeddings produced by this client."""
        return self.dimensions

    def close(self) -> None:
        self._client.close()
