"""Tests for card table operations."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from conftest import DELVER_ID, KENRITH_ID, SOL_RING_ID
from sqlalchemy.ext.asyncio import AsyncSession

from edhbuilder.db.operations import (
    CACHED_IMAGE_COLUMNS,
    clear_cached_image_urls,
    count_cached_images_by_variant,
    count_cards,
    count_cards_with_cached_images,
    find_cards_missing_image,
    find_stale_cards,
    get_card,
    get_card_by_name,
    get_cards,
    get_image_cached_status,
    update_cached_image_url,
    upsert_card,
)
from edhbuilder.models.db import cached_image_attr
from edhbuilder.services.card_cache import map_scryfall_to_card

T0 = datetime(2026, 3, 1, tzinfo=UTC)


@pytest.fixture
async def seeded(
    session: AsyncSession,
    sol_ring_payload: dict[str, Any],
    kenrith_payload: dict[str, Any],
    delver_payload: dict[str, Any],
) -> AsyncSession:
    """Three cards cached a day apart: Sol Ring, Kenrith, Delver."""
    for offset, payload in enumerate((sol_ring_payload, kenrith_payload, delver_payload)):
        await upsert_card(session, map_scryfall_to_card(payload, T0 + timedelta(days=offset)))
    await session.commit()
    return session


class TestCachedImageAttr:
    def test_front_and_back(self) -> None:
        assert cached_image_attr("small") == "cached_image_small"
        assert cached_image_attr("large", "back") == "cached_back_image_large"

    def test_invalid_variant(self) -> None:
        with pytest.raises(ValueError):
            cached_image_attr("png")  # type: ignore[arg-type]

    def test_image_columns(self) -> None:
        assert len(CACHED_IMAGE_COLUMNS) == 7
        assert "image_cached_at" in CACHED_IMAGE_COLUMNS


class TestReads:
    async def test_get_card(self, seeded: AsyncSession) -> None:
        card = await get_card(seeded, SOL_RING_ID)

        assert card is not None
        assert card.name == "Sol Ring"

    async def test_get_missing_card(self, session: AsyncSession) -> None:
        assert await get_card(session, "missing") is None

    async def test_get_cards_skips_missing(self, seeded: AsyncSession) -> None:
        cards = await get_cards(seeded, [SOL_RING_ID, "missing", DELVER_ID])

        assert {card.scryfall_id for card in cards} == {SOL_RING_ID, DELVER_ID}

    async def test_get_cards_empty(self, session: AsyncSession) -> None:
        assert await get_cards(session, []) == []

    async def test_get_card_by_name_prefers_latest_printing(
        self, seeded: AsyncSession, sol_ring_payload: dict[str, Any]
    ) -> None:
        reprint = {**sol_ring_payload, "id": "sol-ring-reprint", "set": "cmm"}
        await upsert_card(seeded, map_scryfall_to_card(reprint, T0 + timedelta(days=10)))
        await seeded.commit()

        card = await get_card_by_name(seeded, "Sol Ring")

        assert card is not None
        assert card.scryfall_id == "sol-ring-reprint"


class TestUpsert:
    async def test_insert(self, session: AsyncSession, sol_ring_payload: dict[str, Any]) -> None:
        card = await upsert_card(session, map_scryfall_to_card(sol_ring_payload, T0))

        assert card.scryfall_id == SOL_RING_ID
        assert await count_cards(session) == 1

    async def test_update_replaces_catalog_fields(
        self, seeded: AsyncSession, sol_ring_payload: dict[str, Any]
    ) -> None:
        updated = {**sol_ring_payload, "prices": {"usd": "0.99"}}

        card = await upsert_card(seeded, map_scryfall_to_card(updated, T0 + timedelta(days=40)))

        assert card.price_usd == 0.99
        assert await count_cards(seeded) == 3

    async def test_update_keeps_image_urls(
        self, seeded: AsyncSession, sol_ring_payload: dict[str, Any]
    ) -> None:
        await update_cached_image_url(
            seeded, SOL_RING_ID, "normal", "front", "https://r2/s.jpg", T0
        )
        await seeded.commit()

        card = await upsert_card(seeded, map_scryfall_to_card(sol_ring_payload, T0))

        assert card.cached_image_normal == "https://r2/s.jpg"

    async def test_rejects_image_columns(
        self, session: AsyncSession, sol_ring_payload: dict[str, Any]
    ) -> None:
        values = map_scryfall_to_card(sol_ring_payload, T0)
        values["cached_image_large"] = "https://r2/x.jpg"

        with pytest.raises(ValueError):
            await upsert_card(session, values)


class TestImageUrls:
    async def test_update_and_clear(self, seeded: AsyncSession) -> None:
        assert await update_cached_image_url(
            seeded, DELVER_ID, "large", "back", "https://r2/back.jpg", T0
        )
        await seeded.commit()
        assert await count_cards_with_cached_images(seeded) == 1

        assert await clear_cached_image_urls(seeded, DELVER_ID)
        await seeded.commit()

        assert await count_cards_with_cached_images(seeded) == 0

    async def test_update_unknown_card(self, session: AsyncSession) -> None:
        assert not await update_cached_image_url(session, "missing", "small", "front", "u", T0)
        assert not await clear_cached_image_urls(session, "missing")

    async def test_counts_by_variant(self, seeded: AsyncSession) -> None:
        await update_cached_image_url(seeded, SOL_RING_ID, "small", "front", "a", T0)
        await update_cached_image_url(seeded, KENRITH_ID, "small", "front", "b", T0)
        await update_cached_image_url(seeded, DELVER_ID, "small", "back", "c", T0)
        await seeded.commit()

        counts = await count_cached_images_by_variant(seeded)

        assert counts["cached_image_small"] == 2
        assert counts["cached_back_image_small"] == 1
        assert counts["cached_image_large"] == 0
        assert len(counts) == 6

    async def test_missing_image_ordered_by_name(self, seeded: AsyncSession) -> None:
        await update_cached_image_url(seeded, KENRITH_ID, "normal", "front", "k", T0)
        await seeded.commit()

        cards = await find_cards_missing_image(seeded, "normal")

        assert [card.name for card in cards] == [
            "Delver of Secrets // Insectile Aberration",
            "Sol Ring",
        ]

    async def test_cached_status(self, seeded: AsyncSession) -> None:
        await update_cached_image_url(seeded, SOL_RING_ID, "large", "front", "s", T0)
        await seeded.commit()

        status = await get_image_cached_status(seeded, [SOL_RING_ID, KENRITH_ID, "x"], "large")

        assert status == {SOL_RING_ID: True, KENRITH_ID: False, "x": False}


class TestStaleness:
    async def test_find_stale_oldest_first(self, seeded: AsyncSession) -> None:
        cards = await find_stale_cards(seeded, stale_before=T0 + timedelta(days=2))

        assert [card.scryfall_id for card in cards] == [SOL_RING_ID, KENRITH_ID]

    async def test_find_stale_respects_limit(self, seeded: AsyncSession) -> None:
        cards = await find_stale_cards(seeded, stale_before=T0 + timedelta(days=5), limit=1)

        assert [card.scryfall_id for card in cards] == [SOL_RING_ID]

    async def test_count_cached_since(self, seeded: AsyncSession) -> None:
        assert await count_cards(seeded, cached_since=T0 + timedelta(days=1)) == 2
