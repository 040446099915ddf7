"""Immutable value type for stored code records."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Final

from .errors import ValidationFailed

MAX_CODE_LENGTH: Final[int] = 50
MAX_DESCRIPTION_LENGTH: Final[int] = 2000
# Largest value a SQLite INTEGER column can hold.
MAX_RECORD_ID: Final[int] = 2**63 - 1


def _require_text(value: object, field: str, max_length: int) -> None:
    label = field.capitalize()
    if not isinstance(value, str) or not value.strip():
        raise ValidationFailed(f"{label} is required", field=field)
    if len(value) > max_length:
        raise ValidationFailed(
            f"{label} must not exceed {max_length} characters", field=field
        )


@dataclass(frozen=True)
class CodeRecord:
    """A `(code, description)` pair plus its embedding.

    `id` and the timestamps are assigned by the store; records built with
    `CodeRecord.new` have them unset until persisted.
    """

    code: str
    description: str
    embedding: tuple[float, ...] | None = None
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        _require_text(self.code, "code", MAX_CODE_LENGTH)
        _require_text(self.description, "description", MAX_DESCRIPTION_LENGTH)

    @classmethod
    def new(
        cls,
        code: str,
        description: str,
        embedding: Sequence[float] | None = None,
    ) -> "CodeRecord":
        return cls(
            code=code,
            description=description,
            embedding=tuple(embedding) if embedding is not None else None,
        )

    def with_embedding(self, embedding: Sequence[float]) -> "CodeRecord":
        return replace(self, embedding=tuple(embedding))

    def with_changes(self, code: str, description: str) -> "CodeRecord":
        return replace(self, code=code, description=description)
