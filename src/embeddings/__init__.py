"""Embedding generation and semantic search.

This package talks to the external embedding service and converts nearest
neighbor distances from the store into ranked search results.
"""

from .client import EmbeddingsClient
from .search import SemanticSearchService, SearchResult
from .models import EmbeddingRequest, EmbeddingResponse

__all__ = [
    "EmbeddingsClient",
    "EmbeddingRequest",
    "EmbeddingResponse",
    "SemanticSearchService",
    "SearchResult",
]
