"""
SQLAlchemy ORM models for persistent storage.

The card table is the structured tier of the card cache. Rows are keyed by
Scryfall ID and are only written through the card cache service.
"""

from datetime import datetime
from typing import Any, Literal

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


ImageSize = Literal["small", "normal", "large"]
ImageFace = Literal["front", "back"]

IMAGE_SIZES: tuple[ImageSize, ...] = ("small", "normal", "large")
IMAGE_FACES: tuple[ImageFace, ...] = ("front", "back")


def cached_image_attr(size: ImageSize, face: ImageFace = "front") -> str:
    """Name of the CardRecordDB column holding the stored URL for a size/face."""
    if size not in IMAGE_SIZES or face not in IMAGE_FACES:
        raise ValueError(f"Unsupported image variant: {size}/{face}")
    prefix = "cached_back_image" if face == "back" else "cached_image"
    return f"{prefix}_{size}"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CardRecordDB(Base):
    """
    Cached catalog metadata for one card printing.

    Catalog-derived columns are overwritten on every refresh. The cached_image_*
    columns are populated by the image cache and survive metadata refreshes.
    """

    __tablename__ = "cards"

    scryfall_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    oracle_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    layout: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Gameplay data
    mana_cost: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cmc: Mapped[float | None] = mapped_column(Float, nullable=True)
    type_line: Mapped[str] = mapped_column(String(255), default="")
    oracle_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    colors: Mapped[str | None] = mapped_column(String(20), nullable=True)
    color_identity: Mapped[str | None] = mapped_column(String(20), nullable=True)
    power: Mapped[str | None] = mapped_column(String(10), nullable=True)
    toughness: Mapped[str | None] = mapped_column(String(10), nullable=True)
    loyalty: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_legal_commander: Mapped[bool] = mapped_column(Boolean, default=False)

    # Printing data
    set_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    set_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rarity: Mapped[str] = mapped_column(String(20), default="common")
    price_usd: Mapped[float | None] = mapped_column(Float, nullable=True)
    price_tix: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Catalog image URIs (as returned by Scryfall)
    has_back_face: Mapped[bool] = mapped_column(Boolean, default=False)
    image_uris: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )
    back_face_image_uris: Mapped[dict[str, Any] | None] = mapped_column(
        JSON(none_as_null=True), nullable=True
    )

    # Object storage URLs, filled lazily per size/face
    cached_image_small: Mapped[str | None] = mapped_column(Text, nullable=True)
    cached_image_normal: Mapped[str | None] = mapped_column(Text, nullable=True)
    cached_image_large: Mapped[str | None] = mapped_column(Text, nullable=True)
    cached_back_image_small: Mapped[str | None] = mapped_column(Text, nullable=True)
    cached_back_image_normal: Mapped[str | None] = mapped_column(Text, nullable=True)
    cached_back_image_large: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_cached_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    cached_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    def __repr__(self) -> str:
        return f"<CardRecordDB(id={self.scryfall_id}, name={self.name})>"
