"""Test configuration for API tests."""

import pytest
from fastapi.testclient import TestClient

from api.dependencies import AppContainer, get_container
from api.main import app
from config.settings import Settings


@pytest.fixture
def container(db_manager, embedder):
    """Service graph over the in-memory database and the fake embedder."""
    settings = Settings(
        db_path=":memory:",
        embedding_dimension=embedder.get_embedding_dimensions(),
        csv_chunk_delay=0.0,
    )
    return AppContainer(settings, db_manager=db_manager, embedder=embedder)


@pytest.fixture
def client(container):
    """Create test client with the container override installed."""
    app.dependency_overrides[get_container] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()
