"""Pydantic models for API request/response payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from codes.records import CodeRecord, MAX_CODE_LENGTH, MAX_DESCRIPTION_LENGTH
from database.vector_store import CodePage
from embeddings.search import SearchResult
from ingestion.csv_pipeline import IngestionResult


class CreateCodeRequest(BaseModel):
    """Request payload for POST /api/v1/codes/upload."""

    code: str = Field(min_length=1, max_length=MAX_CODE_LENGTH)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)


class UpdateCodeRequest(BaseModel):
    """Request payload for PUT /api/v1/codes/{id}."""

    code: str = Field(min_length=1, max_length=MAX_CODE_LENGTH)
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LENGTH)


class CodeResponse(BaseModel):
    """A stored code; the embedding vector is never exposed."""

    id: int
    code: str
    description: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: CodeRecord) -> "CodeResponse":
        return cls(
            id=record.id,  # type: ignore[arg-type]
            code=record.code,
            description=record.description,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class CodePageResponse(BaseModel):
    items: list[CodeResponse]
    page: int
    size: int
    total_items: int
    total_pages: int

    @classmethod
    def from_page(cls, page: CodePage) -> "CodePageResponse":
        return cls(
            items=[CodeResponse.from_record(r) for r in page.items],
            page=page.page,
            size=page.size,
            total_items=page.total_items,
            total_pages=page.total_pages,
        )


class SearchResultResponse(BaseModel):
    """Individual search result with similarity score (1.0 = identical)."""

    id: int
    code: str
    description: str
    similarity: float

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultResponse":
        return cls(
            id=result.id,
            code=result.code,
            description=result.description,
            similarity=result.similarity,
        )


class UploadResponse(BaseModel):
    """Response for POST /api/v1/codes/upload-csv."""

    total_processed: int
    successful: int
    failed: int
    truncated: bool = False
    message: str

    @classmethod
    def from_result(cls, result: IngestionResult) -> "UploadResponse":
        message = (
            f"CSV upload completed: {result.successful} successful, {result.failed} failed"
        )
        if result.truncated:
            message += " (row limit reached; remaining rows were not processed)"
        return cls(
            total_processed=result.total,
            successful=result.successful,
            failed=result.failed,
            truncated=result.truncated,
            message=message,
        )


class HealthResponse(BaseModel):
    status: str
    total_codes: int
    vector_extension: str
