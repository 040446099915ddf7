"""Vector-aware persistence for code records.

Every public operation runs in its own `DatabaseManager.get_session()` unit:
committed on success, rolled back on any error. Embeddings are stored as packed
float32 blobs so sqlite-vec can compute `vec_distance_cosine` natively.
"""

from __future__ import annotations

import logging
import math
from array import array
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import DateTime, LargeBinary, func, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from codes.errors import (
    DuplicateCode,
    EmbeddingDimensionMismatch,
    NotFound,
    StoreUnitFailure,
    ValidationFailed,
)
from codes.records import MAX_RECORD_ID, CodeRecord
from .manager import DatabaseManager
from .models import IndustryCodeModel

logger = logging.getLogger(__name__)

# Ties on distance are ordered by id so results are reproducible.
_NEAREST_NEIGHBORS_SQL = (
    "SELECT id, code, description, embedding, created_at, updated_at,"
    " vec_distance_cosine(embedding, :query) AS distance "
    "FROM industry_codes "
    "WHERE embedding IS NOT NULL "
    "ORDER BY distance ASC, id ASC "
    "LIMIT :limit"
)


def pack_vector(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def unpack_vector(blob: bytes | None) -> tuple[float, ...] | None:
    if blob is None:
        return None
    values = array("f")
    values.frombytes(blob)
    return tuple(values)


def _is_unique_violation(error: IntegrityError) -> bool:
    return "UNIQUE" in str(error.orig).upper()


def _to_record(model: IndustryCodeModel) -> CodeRecord:
    return CodeRecord(
        id=model.id,
        code=model.code,
        description=model.description,
        embedding=unpack_vector(model.embedding),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


@dataclass(frozen=True)
class CodePage:
    """One page of records ordered by id."""

    items: list[CodeRecord]
    page: int
    size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.size) if self.size else 0


class VectorStore:
    """CRUD plus nearest-neighbor search over the industry_codes table."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        dimension: int = 768,
        max_search_limit: int = 50,
    ):
        self.db_manager = db_manager
        self.dimension = dimension
        self.max_search_limit = max_search_limit

    def _check_dimension(self, vector: Sequence[float]) -> None:
        if len(vector) != self.dimension:
            raise EmbeddingDimensionMismatch(self.dimension, len(vector))

    @staticmethod
    def _require_addressable(record_id: int) -> None:
        # Ids outside the INTEGER range can never be stored; sqlite3 would
        # raise OverflowError binding them.
        if not 1 <= record_id <= MAX_RECORD_ID:
            raise NotFound(record_id)

    def _packed(self, record: CodeRecord) -> bytes | None:
        if record.embedding is None:
            return None
        self._check_dimension(record.embedding)
        return pack_vector(record.embedding)

    # -----------------------------
    # Writes
    # -----------------------------

    def insert(self, record: CodeRecord) -> int:
        """Insert a single record and return its new id."""
        packed = self._packed(record)
        try:
            with self.db_manager.get_session() as session:
                model = IndustryCodeModel(
                    code=record.code,
                    description=record.description,
                    embedding=packed,
                )
                session.add(model)
                session.flush()
                new_id = model.id
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateCode(record.code) from e
            raise StoreUnitFailure(f"Failed to insert code {record.code!r}: {e}") from e
        except SQLAlchemyError as e:
            raise StoreUnitFailure(f"Failed to insert code {record.code!r}: {e}") from e

        logger.debug(f"Inserted code {record.code!r} with id {new_id}")
        return new_id

    def insert_batch(self, records: Sequence[CodeRecord]) -> int:
        """Insert all records as one unit; on failure none of them is visible."""
        if not records:
            return 0

        to_insert = [
            IndustryCodeModel(
                code=r.code,
                description=r.description,
                embedding=self._packed(r),
            )
            for r in records
        ]
        try:
            with self.db_manager.get_session() as session:
                session.add_all(to_insert)
                session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert batch of {len(records)} codes: {e}")
            raise StoreUnitFailure(
                f"Failed to insert batch of {len(records)} codes: {e}"
            ) from e
        return len(to_insert)

    def update(
        self,
        record_id: int,
        code: str,
        description: str,
        embedding: Sequence[float] | None = None,
    ) -> CodeRecord:
        """Update code/description, and the embedding when one is supplied."""
        self._require_addressable(record_id)
        packed = None
        if embedding is not None:
            self._check_dimension(embedding)
            packed = pack_vector(embedding)

        try:
            with self.db_manager.get_session() as session:
                model = session.get(IndustryCodeModel, record_id)
                if model is None:
                    raise NotFound(record_id)
                model.code = code
                model.description = description
                if packed is not None:
                    model.embedding = packed
                session.flush()
                updated = _to_record(model)
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateCode(code) from e
            raise StoreUnitFailure(f"Failed to update code id {record_id}: {e}") from e
        except SQLAlchemyError as e:
            raise StoreUnitFailure(f"Failed to update code id {record_id}: {e}") from e
        return updated

    def delete(self, record_id: int) -> None:
        self._require_addressable(record_id)
        try:
            with self.db_manager.get_session() as session:
                model = session.get(IndustryCodeModel, record_id)
                if model is None:
                    raise NotFound(record_id)
                session.delete(model)
        except SQLAlchemyError as e:
            raise StoreUnitFailure(f"Failed to delete code id {record_id}: {e}") from e
        logger.debug(f"Deleted code id {record_id}")

    # -----------------------------
    # Reads
    # -----------------------------

    def get_by_id(self, record_id: int) -> CodeRecord:
        self._require_addressable(record_id)
        with self.db_manager.get_session() as session:
            model = session.get(IndustryCodeModel, record_id)
            if model is None:
                raise NotFound(record_id)
            return _to_record(model)

    def get_by_code(self, code: str) -> CodeRecord:
        with self.db_manager.get_session() as session:
            model = session.scalars(
                select(IndustryCodeModel).where(IndustryCodeModel.code == code)
            ).first()
            if model is None:
                raise NotFound(code)
            return _to_record(model)

    def count(self) -> int:
        with self.db_manager.get_session() as session:
            return session.scalar(select(func.count(IndustryCodeModel.id))) or 0

    def list_page(self, page: int, size: int) -> CodePage:
        """Return page `page` (zero-based) of `size` records ordered by id."""
        with self.db_manager.get_session() as session:
            total = session.scalar(select(func.count(IndustryCodeModel.id))) or 0
            models = session.scalars(
                select(IndustryCodeModel)
                .order_by(IndustryCodeModel.id.asc())
                .offset(page * size)
                .limit(size)
            ).all()
            items = [_to_record(m) for m in models]
        return CodePage(items=items, page=page, size=size, total_items=total)

    def nearest_neighbors(
        self, query_vector: Sequence[float], limit: int
    ) -> list[tuple[CodeRecord, float]]:
        """Records with an embedding ordered by ascending cosine distance.

        Args:
            query_vector: Vector of the configured dimension
            limit: Maximum number of neighbors, 1..max_search_limit

        Returns:
            List of (record, distance) pairs, nearest first.
        """
        if (
            isinstance(limit, bool)
            or not isinstance(limit, int)
            or not 1 <= limit <= self.max_search_limit
        ):
            raise ValidationFailed(
                f"limit must be between 1 and {self.max_search_limit}", field="limit"
            )
        self._check_dimension(query_vector)

        params = {"query": pack_vector(query_vector), "limit": limit}
        with self.db_manager.get_session() as session:
            stmt = text(_NEAREST_NEIGHBORS_SQL).columns(
                embedding=LargeBinary, created_at=DateTime, updated_at=DateTime
            )
            result = session.execute(stmt, params)
            rows = result.mappings().all()

        return [
            (
                CodeRecord(
                    id=row["id"],
                    code=row["code"],
                    description=row["description"],
                    embedding=unpack_vector(row["embedding"]),
                    created_at=row["created_at"],
                    updated_at=row["updated_at"],
                ),
                float(row["distance"]),
            )
            for row in rows
        ]
