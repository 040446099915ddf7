"""Code records, their error taxonomy and single-record CRUD orchestration."""

from .errors import (
    CodeSearchError,
    DuplicateCode,
    EmbeddingDimensionMismatch,
    EmbeddingError,
    EmbeddingUnavailable,
    MalformedInput,
    NotFound,
    StoreUnitFailure,
    ValidationFailed,
)
from .records import CodeRecord

__all__ = [
    "CodeRecord",
    "CodeSearchError",
    "DuplicateCode",
    "EmbeddingDimensionMismatch",
    "EmbeddingError",
    "EmbeddingUnavailable",
    "MalformedInput",
    "NotFound",
    "StoreUnitFailure",
    "ValidationFailed",
]
