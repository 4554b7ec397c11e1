from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import BYTEA, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def new_object_id() -> str:
    return uuid.uuid4().hex


JSON_LIST = JSON().with_variant(JSONB(), "postgresql")
BINARY = LargeBinary().with_variant(BYTEA(), "postgresql")


# -------------------------
# Listings
# -------------------------


class Property(Base):
    """A listing. Images are referenced by object-store id (or placeholder token), never inlined."""

    __tablename__ = "properties"
    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_properties_price_non_negative"),
        CheckConstraint("beds >= 0 AND baths >= 0 AND area >= 0", name="ck_properties_sizes_non_negative"),
        Index("ix_properties_created_at", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_object_id)

    images: Mapped[list[str]] = mapped_column(JSON_LIST, nullable=False, default=list)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    lat: Mapped[float] = mapped_column(Float, nullable=False)
    lng: Mapped[float] = mapped_column(Float, nullable=False)

    price: Mapped[float] = mapped_column(Float, nullable=False)
    beds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    baths: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    area: Mapped[float] = mapped_column(Float, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )


# -------------------------
# Image object store (files + chunks, GridFS layout)
# -------------------------


class ImageFile(Base):
    __tablename__ = "image_files"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_object_id)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)

    # type of the stored bytes: application/gzip when compressed
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    original_content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    compressed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # declared (pre-compression) size and stored length
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    length: Mapped[int] = mapped_column(Integer, nullable=False)
    chunk_size: Mapped[int] = mapped_column(Integer, nullable=False)

    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    @property
    def chunk_count(self) -> int:
        return -(-self.length // self.chunk_size)


class ImageChunk(Base):
    __tablename__ = "image_chunks"

    file_id: Mapped[str] = mapped_column(
        ForeignKey("image_files.id", ondelete="CASCADE"), primary_key=True
    )
    n: Mapped[int] = mapped_column(Integer, primary_key=True)
    data: Mapped[bytes] = mapped_column(BINARY, nullable=False)
