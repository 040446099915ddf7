"""Shared pytest fixtures for testing."""

import hashlib
import sys
from pathlib import Path

import pytest

# Add src to Python path
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from codes.errors import EmbeddingUnavailable  # noqa: E402
from codes.service import CodeService  # noqa: E402
from database.manager import DatabaseManager  # noqa: E402
from database.vector_store import VectorStore  # noqa: E402
from embeddings.search import SemanticSearchService  # noqa: E402
from ingestion.csv_pipeline import CsvIngestionPipeline  # noqa: E402

TEST_DIMS = 8


class FakeEmbedder:
    """Deterministic stand-in for EmbeddingsClient.

    Each text maps to a fixed vector derived from its SHA-256 digest, so equal
    texts embed identically and different texts (almost surely) do not.
    """

    def __init__(self, dims: int = TEST_DIMS, fail_for: set[str] | None = None):
        self.dimensions = dims
        self.fail_for: set[str] = set(fail_for or ())
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_for:
            raise EmbeddingUnavailable(
                "Failed to generate embedding after 3 attempts", attempts=3
            )
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [(b - 127.5) / 127.5 for b in digest[: self.dimensions]]

    def get_embedding_dimensions(self) -> int:
        return self.dimensions

    def close(self) -> None:
        pass


@pytest.fixture
def db_manager():
    """Create an in-memory database manager for testing."""
    manager = DatabaseManager(db_path=":memory:", echo=False, expire_on_commit=False)
    yield manager
    manager.close()


@pytest.fixture
def store(db_manager):
    return VectorStore(db_manager, dimension=TEST_DIMS, max_search_limit=50)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def code_service(store, embedder):
    return CodeService(store=store, embedder=embedder)


@pytest.fixture
def search_service(store, embedder):
    return SemanticSearchService(store=store, embedder=embedder, default_limit=5)


@pytest.fixture
def pipeline(store, embedder):
    return CsvIngestionPipeline(
        store=store,
        embedder=embedder,
        max_rows=1000,
        chunk_size=100,
        chunk_delay=0.0,
    )
