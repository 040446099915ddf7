"""Application wiring and FastAPI dependency providers.

`AppContainer` owns the heavy objects (database, HTTP client) and builds the
services once; endpoints receive them through `Depends`. Tests replace
`get_container` via `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Depends

from codes.service import CodeService
from config.settings import Settings
from database.manager import DatabaseManager
from database.vector_store import VectorStore
from embeddings.client import EmbeddingsClient
from embeddings.search import SemanticSearchService
from ingestion.csv_pipeline import CsvIngestionPipeline

logger = logging.getLogger(__name__)


class AppContainer:
    """Builds and holds the service graph for one settings instance."""

    def __init__(
        self,
        settings: Settings,
        db_manager: DatabaseManager | None = None,
        embedder: EmbeddingsClient | None = None,
    ) -> None:
        self.settings = settings
        self.db_manager = db_manager or DatabaseManager(db_path=settings.db_path)
        self.embedder = embedder or EmbeddingsClient.from_settings(settings)
        self.store = VectorStore(
            self.db_manager,
            dimension=settings.embedding_dimension,
            max_search_limit=settings.search_max_limit,
        )
        self.code_service = CodeService(store=self.store, embedder=self.embedder)
        self.search_service = SemanticSearchService(
            store=self.store,
            embedder=self.embedder,
            default_limit=settings.search_default_limit,
        )
        self.ingestion_pipeline = CsvIngestionPipeline.from_settings(
            settings, store=self.store, embedder=self.embedder
        )
        logger.info("Application container initialized")

    def close(self) -> None:
        self.embedder.close()
        self.db_manager.close()


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_container() -> AppContainer:
    return AppContainer(get_settings())


def get_code_service(container: AppContainer = Depends(get_container)) -> CodeService:
    return container.code_service


def get_search_service(
    container: AppContainer = Depends(get_container),
) -> SemanticSearchService:
    return container.search_service


def get_ingestion_pipeline(
    container: AppContainer = Depends(get_container),
) -> CsvIngestionPipeline:
    return container.ingestion_pipeline


def get_vector_store(container: AppContainer = Depends(get_container)) -> VectorStore:
    return container.store
