"""
Database operations for the card table.

Plain async functions over an AsyncSession. Callers own the transaction;
these helpers only flush.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from edhbuilder.models.db import (
    IMAGE_FACES,
    IMAGE_SIZES,
    CardRecordDB,
    ImageFace,
    ImageSize,
    cached_image_attr,
)

# Columns owned by the image cache; metadata upserts never write them
CACHED_IMAGE_COLUMNS = tuple(
    cached_image_attr(size, face) for face in IMAGE_FACES for size in IMAGE_SIZES
) + ("image_cached_at",)

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


async def get_card(session: AsyncSession, scryfall_id: str) -> CardRecordDB | None:
    """Get a card row by Scryfall ID."""
    return await session.get(CardRecordDB, scryfall_id)


async def get_cards(session: AsyncSession, scryfall_ids: list[str]) -> list[CardRecordDB]:
    """Get all rows whose ID is in the list. Missing IDs are skipped."""
    if not scryfall_ids:
        return []

    result = await session.execute(
        select(CardRecordDB).where(CardRecordDB.scryfall_id.in_(scryfall_ids))
    )
    return list(result.scalars().all())


async def get_card_by_name(session: AsyncSession, name: str) -> CardRecordDB | None:
    """Get the most recently cached printing with this exact name."""
    result = await session.execute(
        select(CardRecordDB)
        .where(CardRecordDB.name == name)
        .order_by(CardRecordDB.cached_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def upsert_card(session: AsyncSession, values: dict[str, Any]) -> CardRecordDB:
    """
    Insert or fully replace the catalog-derived fields of a card row.

    One INSERT .. ON CONFLICT DO UPDATE statement, so concurrent writers of
    the same ID never collide; the last write wins. Cached image URL columns
    on an existing row are left untouched.

    Args:
        values: Column values, including scryfall_id and cached_at
    """
    for column in CACHED_IMAGE_COLUMNS:
        if column in values:
            raise ValueError(f"upsert_card must not write {column}")

    insert = _DIALECT_INSERTS[session.get_bind().dialect.name]
    stmt = insert(CardRecordDB).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["scryfall_id"],
        set_={key: stmt.excluded[key] for key in values if key != "scryfall_id"},
    )
    await session.execute(stmt)

    # Refresh any instance this session already holds for the row
    result = await session.execute(
        select(CardRecordDB)
        .where(CardRecordDB.scryfall_id == values["scryfall_id"])
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def update_cached_image_url(
    session: AsyncSession,
    scryfall_id: str,
    size: ImageSize,
    face: ImageFace,
    url: str,
    cached_at: datetime,
) -> bool:
    """
    Record the stored URL for one image variant.

    Returns True if the card row exists and was updated.
    """
    result = await session.execute(
        update(CardRecordDB)
        .where(CardRecordDB.scryfall_id == scryfall_id)
        .values({cached_image_attr(size, face): url, "image_cached_at": cached_at})
    )
    # rowcount is available on UPDATE results; type stubs incomplete for async
    return int(result.rowcount) > 0  # type: ignore[attr-defined]


async def clear_cached_image_urls(session: AsyncSession, scryfall_id: str) -> bool:
    """
    Null every stored image URL for a card so it is re-uploaded on next request.

    Returns True if the card row exists.
    """
    result = await session.execute(
        update(CardRecordDB)
        .where(CardRecordDB.scryfall_id == scryfall_id)
        .values({column: None for column in CACHED_IMAGE_COLUMNS})
    )
    return int(result.rowcount) > 0  # type: ignore[attr-defined]


async def count_cards(session: AsyncSession, cached_since: datetime | None = None) -> int:
    """Count card rows, optionally only those cached at or after a timestamp."""
    query = select(func.count()).select_from(CardRecordDB)
    if cached_since is not None:
        query = query.where(CardRecordDB.cached_at >= cached_since)
    result = await session.execute(query)
    return int(result.scalar_one())


async def count_cards_with_cached_images(session: AsyncSession) -> int:
    """Count rows with at least one stored image."""
    result = await session.execute(
        select(func.count())
        .select_from(CardRecordDB)
        .where(CardRecordDB.image_cached_at.is_not(None))
    )
    return int(result.scalar_one())


async def count_cached_images_by_variant(session: AsyncSession) -> dict[str, int]:
    """
    Count stored URLs per image column.

    Returns:
        Dict keyed by column name, e.g. {"cached_image_large": 120, ...}
    """
    columns = [
        getattr(CardRecordDB, cached_image_attr(size, face))
        for face in IMAGE_FACES
        for size in IMAGE_SIZES
    ]
    result = await session.execute(select(*(func.count(column) for column in columns)))
    row = result.one()
    return {column.key: int(count) for column, count in zip(columns, row, strict=True)}


async def find_stale_cards(
    session: AsyncSession, stale_before: datetime, limit: int = 100
) -> list[CardRecordDB]:
    """Rows cached before the threshold, oldest first."""
    result = await session.execute(
        select(CardRecordDB)
        .where(CardRecordDB.cached_at < stale_before)
        .order_by(CardRecordDB.cached_at.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def find_cards_missing_image(
    session: AsyncSession, size: ImageSize, limit: int = 100
) -> list[CardRecordDB]:
    """
    Rows with upstream image URIs but no stored front image of this size.

    Ordered by name so repeated runs walk the table predictably.
    """
    column = getattr(CardRecordDB, cached_image_attr(size, "front"))
    result = await session.execute(
        select(CardRecordDB)
        .where(column.is_(None), CardRecordDB.image_uris.is_not(None))
        .order_by(CardRecordDB.name.asc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_image_cached_status(
    session: AsyncSession, scryfall_ids: list[str], size: ImageSize
) -> dict[str, bool]:
    """
    Whether each ID has a stored front image of this size.

    IDs with no card row map to False.
    """
    if not scryfall_ids:
        return {}

    column = getattr(CardRecordDB, cached_image_attr(size, "front"))
    result = await session.execute(
        select(CardRecordDB.scryfall_id, column).where(
            CardRecordDB.scryfall_id.in_(scryfall_ids)
        )
    )
    cached = {scryfall_id: url is not None for scryfall_id, url in result.all()}
    return {scryfall_id: cached.get(scryfall_id, False) for scryfall_id in scryfall_ids}

