"""Typed error hierarchy for the code search service.

Services and the store raise these; only the API layer maps them to HTTP
status codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ingestion.csv_pipeline import IngestionResult

__all__ = [
    "CodeSearchError",
    "NotFound",
    "DuplicateCode",
    "ValidationFailed",
    "MalformedInput",
    "EmbeddingError",
    "EmbeddingUnavailable",
    "EmbeddingDimensionMismatch",
    "StoreUnitFailure",
]


class CodeSearchError(Exception):
    """Base class for all service errors."""


class NotFound(CodeSearchError):
    """Raised when a referenced code record does not exist."""

    def __init__(self, key: int | str):
        self.key = key
        if isinstance(key, int):
            message = f"Code not found with id: {key}"
        else:
            message = f"Code not found: {key}"
        super().__init__(message)


class DuplicateCode(CodeSearchError):
    """Raised when a code value collides with an existing record."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"A code with this identifier already exists: {code}")


class ValidationFailed(CodeSearchError):
    """Raised for malformed request shapes or out-of-bounds values."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class MalformedInput(CodeSearchError):
    """Raised for unusable upload files or unreadable streams.

    `partial` carries the counters of rows already committed when the stream
    broke mid-way; it is None for failures detected before any row was read.
    """

    def __init__(self, message: str, partial: "IngestionResult | None" = None):
        self.partial = partial
        super().__init__(message)


class EmbeddingError(CodeSearchError):
    """Base class for failures producing an embedding."""


class EmbeddingUnavailable(EmbeddingError):
    """Raised when the embedding service could not be used after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class EmbeddingDimensionMismatch(EmbeddingError):
    """Raised when a vector does not have the configured dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )


class StoreUnitFailure(CodeSearchError):
    """Raised when a persistence unit (row or chunk) could not be committed."""
