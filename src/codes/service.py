"""Single-record CRUD orchestration for code records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from database.vector_store import CodePage, VectorStore
from embeddings.client import EmbeddingsClient
from .errors import ValidationFailed
from .records import MAX_RECORD_ID, CodeRecord

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE: Final[int] = 100


@dataclass
class CodeService:
    store: VectorStore
    embedder: EmbeddingsClient

    def create(self, code: str, description: str) -> CodeRecord:
        """Embed the description, then insert. Nothing is written if either step fails."""
        record = CodeRecord.new(code, description)
        embedding = self.embedder.embed(record.description)
        new_id = self.store.insert(record.with_embedding(embedding))
        logger.info(f"Created code {code!r} with id {new_id}")
        return self.store.get_by_id(new_id)

    def get_by_id(self, record_id: int) -> CodeRecord:
        return self.store.get_by_id(record_id)

    def get_by_code(self, code: str) -> CodeRecord:
        return self.store.get_by_code(code)

    def list_page(self, page: int = 0, size: int = 20) -> CodePage:
        if page < 0:
            raise ValidationFailed("page must not be negative", field="page")
        if not 1 <= size <= MAX_PAGE_SIZE:
            raise ValidationFailed(
                f"size must be between 1 and {MAX_PAGE_SIZE}", field="size"
            )
        if page * size > MAX_RECORD_ID:
            raise ValidationFailed("page is out of range", field="page")
        return self.store.list_page(page, size)

    def update(self, record_id: int, code: str, description: str) -> CodeRecord:
        """Update a record, re-embedding only when the description text changed."""
        existing = self.store.get_by_id(record_id)
        updated = existing.with_changes(code=code, description=description)

        embedding = None
        if updated.description != existing.description:
            embedding = self.embedder.embed(updated.description)
            logger.info(f"Description changed for code id {record_id}; regenerated embedding")

        return self.store.update(
            record_id,
            code=updated.code,
            description=updated.description,
            embedding=embedding,
        )

    def delete(self, record_id: int) -> None:
        self.store.get_by_id(record_id)
        self.store.delete(record_id)
        logger.info(f"Deleted code id {record_id}")
