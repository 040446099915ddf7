"""Pydantic models for the embedding service wire format."""

from pydantic import BaseModel, Field


class EmbeddingRequest(BaseModel):
    """Body of `POST <embeddings url>`."""

    model: str
    prompt: str


class EmbeddingResponse(BaseModel):
    """Successful embedding payload; an empty or missing vector is unusable."""

    embedding: list[float] = Field(min_length=1)
