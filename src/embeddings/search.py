"""Semantic search over stored code descriptions.

The store returns cosine distances (0 = same direction, 2 = opposite); they
are reported as `similarity = 1 - distance`, in the store's order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from codes.errors import ValidationFailed
from database.vector_store import VectorStore
from embeddings.client import EmbeddingsClient

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH: Final[int] = 500


@dataclass(frozen=True)
class SearchResult:
    id: int
    code: str
    description: str
    similarity: float


def to_similarity(distance: float) -> float:
    return 1.0 - distance


@dataclass
class SemanticSearchService:
    store: VectorStore
    embedder: EmbeddingsClient
    default_limit: int = 5

    def search(self, query: str, limit: int | None = None) -> list[SearchResult]:
        """Nearest stored codes for `query`, highest similarity first."""
        if limit is None:
            limit = self.default_limit
        if not isinstance(query, str) or not query.strip():
            raise ValidationFailed("Query must not be blank", field="query")
        if len(query) > MAX_QUERY_LENGTH:
            raise ValidationFailed(
                f"Query must not exceed {MAX_QUERY_LENGTH} characters", field="query"
            )
        max_limit = self.store.max_search_limit
        if (
            isinstance(limit, bool)
            or not isinstance(limit, int)
            or not 1 <= limit <= max_limit
        ):
            raise ValidationFailed(
                f"limit must be between 1 and {max_limit}", field="limit"
            )

        vector = self.embedder.embed(query)
        neighbors = self.store.nearest_neighbors(vector, limit)

        results = [
            SearchResult(
                id=record.id,  # type: ignore[arg-type]
                code=record.code,
                description=record.description,
                similarity=to_similarity(distance),
            )
            for record, distance in neighbors
        ]
        logger.info(f"Search returned {len(results)} results (limit={limit})")
        return results
