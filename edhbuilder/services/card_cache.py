"""
Card record cache.

Read-through cache of Scryfall card metadata in the relational store.
Each single-card lookup is resolved by an explicit state machine:

    FRESH_HIT                 -> stored record, no upstream call
    STALE_HIT_REFRESH_OK      -> refreshed from upstream and upserted
    STALE_HIT_REFRESH_FAILED  -> upstream failed or lost the card; stale record served
    MISS_FETCH_OK             -> fetched from upstream and upserted
    MISS_FETCH_FAILED         -> upstream reports not found; no record

A miss while the upstream is unavailable is not in this table: the
ScryfallAPIError / httpx.HTTPError propagates, since there is nothing to
fall back to and "unavailable" must stay distinguishable from "not found".

Only this service writes CardRecordDB rows. Upserts replace the
catalog-derived columns and never touch the cached image URL columns.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edhbuilder.clients.scryfall import ScryfallAPIError, ScryfallClient
from edhbuilder.config import settings
from edhbuilder.db import operations
from edhbuilder.models.db import CardRecordDB, ImageFace, ImageSize
from edhbuilder.models.resolution import CatalogCard

logger = logging.getLogger(__name__)

# Layouts whose second face has its own image
DFC_LAYOUTS = frozenset({"transform", "modal_dfc", "reversible_card", "double_faced_token"})

RARITIES = frozenset({"common", "uncommon", "rare", "mythic", "special", "bonus"})

UPSTREAM_ERRORS = (ScryfallAPIError, httpx.HTTPError)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(timestamp: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp


def is_timestamp_stale(
    timestamp: datetime,
    stale_after_days: int | None = None,
    now: datetime | None = None,
) -> bool:
    """True if strictly more than stale_after_days have passed since timestamp."""
    days = settings.card_stale_after_days if stale_after_days is None else stale_after_days
    current = now or _utcnow()
    return current - _as_utc(timestamp) > timedelta(days=days)


def is_card_stale(
    card: CardRecordDB,
    stale_after_days: int | None = None,
    now: datetime | None = None,
) -> bool:
    """True if the card's cached_at is past the staleness threshold."""
    return is_timestamp_stale(card.cached_at, stale_after_days, now)


def is_commander_eligible(payload: dict[str, Any]) -> bool:
    """
    Whether a card may lead a Commander deck.

    Legal in the format, Legendary, and either a Creature or a Planeswalker
    whose text grants "can be your commander".
    """
    legalities = payload.get("legalities") or {}
    if legalities.get("commander") != "legal":
        return False

    type_line = payload.get("type_line") or ""
    if "Legendary" not in type_line:
        return False
    if "Creature" in type_line:
        return True

    oracle_text = payload.get("oracle_text") or ""
    return "Planeswalker" in type_line and "can be your commander" in oracle_text


def _parse_price(value: str | None) -> float | None:
    return float(value) if value else None


def _join_colors(colors: list[str] | None) -> str | None:
    return ",".join(colors) if colors is not None else None


def map_scryfall_to_card(payload: dict[str, Any], cached_at: datetime) -> dict[str, Any]:
    """
    Map a Scryfall card payload to CardRecordDB column values.

    Face-level fields fall back to the first face when the top level lacks
    them. Cached image columns are never part of the result.
    """
    faces: list[dict[str, Any]] = payload.get("card_faces") or []
    front = faces[0] if faces else {}

    has_back_face = payload.get("layout") in DFC_LAYOUTS and len(faces) > 1
    front_image_uris = payload.get("image_uris") or front.get("image_uris")
    back_image_uris = faces[1].get("image_uris") if has_back_face else None

    prices = payload.get("prices") or {}
    rarity = payload.get("rarity")

    return {
        "scryfall_id": payload["id"],
        "oracle_id": payload.get("oracle_id") or front.get("oracle_id"),
        "name": payload["name"],
        "layout": payload.get("layout"),
        "mana_cost": payload.get("mana_cost") or front.get("mana_cost"),
        "cmc": payload.get("cmc"),
        "type_line": payload.get("type_line") or front.get("type_line") or "",
        "oracle_text": payload.get("oracle_text") or front.get("oracle_text"),
        "colors": _join_colors(payload.get("colors", front.get("colors"))),
        "color_identity": _join_colors(payload.get("color_identity")),
        "power": payload.get("power") or front.get("power"),
        "toughness": payload.get("toughness") or front.get("toughness"),
        "loyalty": payload.get("loyalty") or front.get("loyalty"),
        "is_legal_commander": is_commander_eligible(payload),
        "set_code": payload.get("set"),
        "set_name": payload.get("set_name"),
        "rarity": rarity if rarity in RARITIES else "common",
        "price_usd": _parse_price(prices.get("usd")),
        "price_tix": _parse_price(prices.get("tix")),
        "has_back_face": has_back_face,
        "image_uris": front_image_uris,
        "back_face_image_uris": back_image_uris,
        "cached_at": cached_at,
    }


def card_to_catalog(card: CardRecordDB) -> CatalogCard:
    """Summarize a stored card row."""
    return CatalogCard(
        scryfall_id=card.scryfall_id,
        oracle_id=card.oracle_id,
        name=card.name,
        mana_cost=card.mana_cost,
        cmc=card.cmc,
        type_line=card.type_line,
        oracle_text=card.oracle_text,
        color_identity=card.color_identity,
        set_code=card.set_code,
        set_name=card.set_name,
        rarity=card.rarity,
        price_usd=card.price_usd,
        is_legal_commander=card.is_legal_commander,
        has_back_face=card.has_back_face,
        image_uris=card.image_uris,
        back_face_image_uris=card.back_face_image_uris,
    )


def payload_to_catalog(payload: dict[str, Any]) -> CatalogCard:
    """Summarize a raw Scryfall payload with the same mapping the store uses."""
    values = map_scryfall_to_card(payload, cached_at=_utcnow())
    return CatalogCard.model_validate(
        {key: value for key, value in values.items() if key in CatalogCard.model_fields}
    )


class LookupOutcome(str, Enum):
    """How a single-card lookup was satisfied."""

    FRESH_HIT = "fresh_hit"
    STALE_HIT_REFRESH_OK = "stale_hit_refresh_ok"
    STALE_HIT_REFRESH_FAILED = "stale_hit_refresh_failed"
    MISS_FETCH_OK = "miss_fetch_ok"
    MISS_FETCH_FAILED = "miss_fetch_failed"


@dataclass(frozen=True, slots=True)
class CardLookup:
    """A lookup outcome together with the record it produced (if any)."""

    outcome: LookupOutcome
    card: CardRecordDB | None


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Counts describing the card table."""

    total_cards: int
    fresh_cards: int
    stale_cards: int
    cards_with_cached_images: int


class CardCache:
    """
    Cache-first access to card records.

    Args:
        session_factory: Opens one AsyncSession per store operation
        client: Scryfall client used on misses and refreshes
        stale_after_days: Age after which a record is refreshed on read
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: ScryfallClient,
        stale_after_days: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.client = client
        self.stale_after_days = (
            settings.card_stale_after_days if stale_after_days is None else stale_after_days
        )
        self._clock = clock

    def is_stale(self, card: CardRecordDB) -> bool:
        return is_card_stale(card, self.stale_after_days, now=self._clock())

    def _stale_threshold(self) -> datetime:
        return self._clock() - timedelta(days=self.stale_after_days)

    async def _upsert_many(self, payloads: Iterable[dict[str, Any]]) -> list[CardRecordDB]:
        cached_at = self._clock()
        async with self._session_factory() as session:
            cards = [
                await operations.upsert_card(session, map_scryfall_to_card(payload, cached_at))
                for payload in payloads
            ]
            await session.commit()
        return cards

    async def _upsert(self, payload: dict[str, Any]) -> CardRecordDB:
        cards = await self._upsert_many([payload])
        return cards[0]

    async def _refresh_or_none(self, scryfall_id: str) -> CardRecordDB | None:
        """Refetch and upsert; None on any upstream failure or not-found."""
        try:
            payload = await self.client.get_card(scryfall_id)
        except UPSTREAM_ERRORS as e:
            logger.warning("Refresh of card %s failed: %s", scryfall_id, e)
            return None

        if payload is None:
            logger.warning("Card %s no longer exists upstream", scryfall_id)
            return None

        return await self._upsert(payload)

    async def get_cached(self, scryfall_id: str) -> CardRecordDB | None:
        """Read the stored record without any upstream call, fresh or not."""
        async with self._session_factory() as session:
            return await operations.get_card(session, scryfall_id)

    async def lookup(self, scryfall_id: str, force_refresh: bool = False) -> CardLookup:
        """
        Resolve one card through the cache state machine.

        Raises:
            ScryfallAPIError, httpx.HTTPError: On a miss while the upstream is unavailable
        """
        if not force_refresh:
            cached = await self.get_cached(scryfall_id)
            if cached is not None:
                if not self.is_stale(cached):
                    return CardLookup(LookupOutcome.FRESH_HIT, cached)

                refreshed = await self._refresh_or_none(scryfall_id)
                if refreshed is not None:
                    return CardLookup(LookupOutcome.STALE_HIT_REFRESH_OK, refreshed)
                return CardLookup(LookupOutcome.STALE_HIT_REFRESH_FAILED, cached)

        payload = await self.client.get_card(scryfall_id)
        if payload is None:
            return CardLookup(LookupOutcome.MISS_FETCH_FAILED, None)

        card = await self._upsert(payload)
        return CardLookup(LookupOutcome.MISS_FETCH_OK, card)

    async def get_card(self, scryfall_id: str, force_refresh: bool = False) -> CardRecordDB | None:
        """
        Get a card by Scryfall ID, using the cache when possible.

        Args:
            scryfall_id: The Scryfall card ID
            force_refresh: Skip the store and fetch from upstream

        Returns:
            The card record, or None if the upstream does not know the ID
        """
        result = await self.lookup(scryfall_id, force_refresh=force_refresh)
        return result.card

    async def refresh_card(self, scryfall_id: str) -> CardRecordDB | None:
        """Force a refetch; None if the upstream fails or lost the card."""
        return await self._refresh_or_none(scryfall_id)

    async def get_card_by_name(self, name: str, fuzzy: bool = False) -> CardRecordDB | None:
        """
        Get a card by name.

        Exact lookups try the store first. Fuzzy lookups always go upstream
        because the stored name may not be what the caller typed.
        """
        cached: CardRecordDB | None = None
        if not fuzzy:
            async with self._session_factory() as session:
                cached = await operations.get_card_by_name(session, name)
            if cached is not None and not self.is_stale(cached):
                return cached

        try:
            payload = await self.client.get_card_by_name(name, fuzzy=fuzzy)
        except UPSTREAM_ERRORS as e:
            if cached is None:
                raise
            logger.warning("Refresh of card %r failed, serving stale record: %s", name, e)
            return cached

        if payload is None:
            return cached

        return await self._upsert(payload)

    async def get_cards_by_ids(self, scryfall_ids: list[str]) -> list[CardRecordDB]:
        """
        Get many cards, fetching stale and missing ones in one batched call.

        IDs the upstream does not return fall back to their stale record; IDs
        with no record at all are dropped. Order does not follow the input.
        """
        unique_ids = list(dict.fromkeys(scryfall_ids))
        if not unique_ids:
            return []

        async with self._session_factory() as session:
            rows = await operations.get_cards(session, unique_ids)
        cached = {card.scryfall_id: card for card in rows}

        fresh: list[CardRecordDB] = []
        stale: dict[str, CardRecordDB] = {}
        pending: list[str] = []
        for scryfall_id in unique_ids:
            card = cached.get(scryfall_id)
            if card is not None and not self.is_stale(card):
                fresh.append(card)
                continue
            pending.append(scryfall_id)
            if card is not None:
                stale[scryfall_id] = card

        if not pending:
            return fresh

        try:
            fetched = await self.client.get_cards_by_ids(pending)
        except UPSTREAM_ERRORS as e:
            logger.warning(
                "Batch fetch of %d cards failed, serving %d stale records: %s",
                len(pending),
                len(stale),
                e,
            )
            fetched = {}

        upserted = await self._upsert_many(fetched.values()) if fetched else []
        fallback = [card for scryfall_id, card in stale.items() if scryfall_id not in fetched]

        return fresh + fallback + upserted

    async def get_cards_by_ids_map(self, scryfall_ids: list[str]) -> dict[str, CardRecordDB]:
        """Same as get_cards_by_ids, keyed by Scryfall ID."""
        cards = await self.get_cards_by_ids(scryfall_ids)
        return {card.scryfall_id: card for card in cards}

    async def ingest(self, payloads: Iterable[dict[str, Any]]) -> list[CardRecordDB]:
        """Upsert payloads a caller already fetched from Scryfall."""
        payloads = list(payloads)
        if not payloads:
            return []
        return await self._upsert_many(payloads)

    async def set_cached_image_url(
        self, scryfall_id: str, size: ImageSize, face: ImageFace, url: str
    ) -> bool:
        """Persist the object storage URL for one image variant."""
        async with self._session_factory() as session:
            updated = await operations.update_cached_image_url(
                session, scryfall_id, size, face, url, cached_at=self._clock()
            )
            await session.commit()
        return updated

    async def clear_cached_image_urls(self, scryfall_id: str) -> bool:
        """Forget every stored image URL for a card."""
        async with self._session_factory() as session:
            cleared = await operations.clear_cached_image_urls(session, scryfall_id)
            await session.commit()
        return cleared

    async def get_cache_stats(self) -> CacheStats:
        async with self._session_factory() as session:
            total = await operations.count_cards(session)
            fresh = await operations.count_cards(session, cached_since=self._stale_threshold())
            with_images = await operations.count_cards_with_cached_images(session)

        return CacheStats(
            total_cards=total,
            fresh_cards=fresh,
            stale_cards=total - fresh,
            cards_with_cached_images=with_images,
        )

    async def count_cached_images(self) -> dict[str, int]:
        """Stored image URL counts keyed by column name."""
        async with self._session_factory() as session:
            return await operations.count_cached_images_by_variant(session)

    async def get_image_cached_status(
        self, scryfall_ids: list[str], size: ImageSize
    ) -> dict[str, bool]:
        """Whether each ID has a stored front image of this size."""
        async with self._session_factory() as session:
            return await operations.get_image_cached_status(session, scryfall_ids, size)

    async def find_cards_missing_image(
        self, size: ImageSize, limit: int = 100
    ) -> list[CardRecordDB]:
        """Records that have upstream URIs but no stored front image of this size."""
        async with self._session_factory() as session:
            return await operations.find_cards_missing_image(session, size, limit)

    async def find_stale_cards(self, limit: int = 100) -> list[CardRecordDB]:
        """Stale records, oldest first."""
        async with self._session_factory() as session:
            return await operations.find_stale_cards(session, self._stale_threshold(), limit)

    async def refresh_stale_cards(self, limit: int = 100) -> int:
        """
        Refresh up to `limit` of the stalest records in one batched call.

        Returns:
            Number of records the upstream returned and were upserted
        """
        stale = await self.find_stale_cards(limit)
        if not stale:
            return 0

        fetched = await self.client.get_cards_by_ids([card.scryfall_id for card in stale])
        if fetched:
            await self._upsert_many(fetched.values())

        logger.info("Refreshed %d of %d stale cards", len(fetched), len(stale))
        return len(fetched)
