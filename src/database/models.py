"""SQLAlchemy database models."""

from datetime import timezone, datetime
from typing import override
from sqlalchemy import (
    Integer,
    String,
    DateTime,
    LargeBinary,
)
from sqlalchemy.orm import (
    Mapped,
    mapped_column,
    DeclarativeBase,
    MappedAsDataclass,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(MappedAsDataclass, DeclarativeBase):  # pyright: ignore[reportUnsafeMultipleInheritance]
    pass


class IndustryCodeModel(Base):
    """SQLAlchemy model for the industry_codes table.

    `embedding` holds a packed float32 vector (the blob format sqlite-vec
    reads); NULL until an embedding has been generated.
    """

    __tablename__ = "industry_codes"  # pyright: ignore[reportUnannotatedClassAttribute]

    @override
    def __repr__(self):
        return f"<IndustryCodeModel id={self.id!r} code={self.code!r}>"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True, init=False
    )
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(String(2000), nullable=False)
    embedding: Mapped[bytes | None] = mapped_column(
        LargeBinary, nullable=True, default=None
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default_factory=_utcnow, init=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default_factory=_utcnow, onupdate=_utcnow, init=False
    )
