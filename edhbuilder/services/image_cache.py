"""
Card image cache.

Serves card image URLs, copying upstream images into object storage the
first time each size/face is requested:

1. Load the card record through the card cache (may refresh metadata)
2. Stored URL for this size/face -> return it
3. No upstream URI for the face (e.g. back of a single-faced card) -> None
4. Storage not configured -> upstream URL
5. Fetch (bounded timeout), upload, persist the URL -> stored URL
6. Any fetch/upload failure -> upstream URL

Batch variants run at most `max_concurrency` items at once and report
(completed, total) after every item, failed ones included.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import botocore.exceptions
import httpx

from edhbuilder.clients.scryfall import ScryfallAPIError
from edhbuilder.config import settings
from edhbuilder.models.db import (
    IMAGE_FACES,
    IMAGE_SIZES,
    CardRecordDB,
    ImageFace,
    ImageSize,
    cached_image_attr,
)
from edhbuilder.services.card_cache import CardCache
from edhbuilder.services.object_storage import ObjectStorage, card_image_key

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[int, int], None]

IMAGE_CONTENT_TYPE = "image/jpeg"

# Failures that degrade to the upstream URL instead of reaching the caller
STORAGE_ERRORS = (
    botocore.exceptions.ClientError,
    botocore.exceptions.BotoCoreError,
    httpx.HTTPError,
    TimeoutError,
)

# Failures that skip one item of a batch
BATCH_ITEM_ERRORS = (ScryfallAPIError, httpx.HTTPError)


@dataclass(frozen=True, slots=True)
class FaceImages:
    """Front and (for double-faced cards) back image URLs."""

    front: str
    back: str | None = None


@dataclass(frozen=True, slots=True)
class ImageCacheStats:
    total_cards: int
    cards_with_small_cached: int
    cards_with_normal_cached: int
    cards_with_large_cached: int
    cards_with_any_cached: int


def validate_variant(size: str, face: str) -> None:
    """Raise ValueError for an unknown size or face."""
    if size not in IMAGE_SIZES:
        raise ValueError(f"Invalid image size: {size!r}. Use one of: {', '.join(IMAGE_SIZES)}")
    if face not in IMAGE_FACES:
        raise ValueError(f"Invalid image face: {face!r}. Use one of: {', '.join(IMAGE_FACES)}")


def upstream_image_url(card: CardRecordDB, size: ImageSize, face: ImageFace) -> str | None:
    """Scryfall image URL for a size/face, None if the card has no such image."""
    if face == "back":
        if not card.has_back_face:
            return None
        uris = card.back_face_image_uris
    else:
        uris = card.image_uris

    if not uris:
        return None
    url = uris.get(size)
    return str(url) if url else None


def stored_image_url(card: CardRecordDB, size: ImageSize, face: ImageFace) -> str | None:
    """Object storage URL already recorded for a size/face."""
    url: str | None = getattr(card, cached_image_attr(size, face))
    return url


class ImageCache:
    """
    Resolves card image URLs, caching images into object storage.

    Args:
        card_cache: Source of card records; also persists stored URLs
        storage: Object storage adapter (may be unconfigured)
        http_client: Client used to download upstream images
        fetch_timeout: Seconds allowed for one image download
        max_concurrency: Simultaneous fetch/upload operations in a batch
    """

    def __init__(
        self,
        card_cache: CardCache,
        storage: ObjectStorage,
        http_client: httpx.AsyncClient,
        *,
        fetch_timeout: float | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.card_cache = card_cache
        self.storage = storage
        self._http = http_client
        self.fetch_timeout = fetch_timeout or settings.image_fetch_timeout_seconds
        self.max_concurrency = max_concurrency or settings.max_concurrent_image_uploads

    async def _fetch_image(self, url: str) -> bytes:
        async with asyncio.timeout(self.fetch_timeout):
            response = await self._http.get(url, headers={"User-Agent": settings.user_agent})
            response.raise_for_status()
            return response.content

    async def _cache_to_storage(
        self, card: CardRecordDB, upstream_url: str, size: ImageSize, face: ImageFace
    ) -> str | None:
        """Copy one image into storage and record its URL; None on failure."""
        key = card_image_key(card.scryfall_id, size, face)
        try:
            body = await self._fetch_image(upstream_url)
            stored_url = await self.storage.upload(key, body, IMAGE_CONTENT_TYPE)
        except STORAGE_ERRORS as e:
            logger.warning("Failed to cache image %s: %r", key, e)
            return None

        if stored_url is None:
            return None

        await self.card_cache.set_cached_image_url(card.scryfall_id, size, face, stored_url)
        return stored_url

    async def _resolve(self, card: CardRecordDB, size: ImageSize, face: ImageFace) -> str | None:
        stored = stored_image_url(card, size, face)
        if stored:
            return stored

        upstream = upstream_image_url(card, size, face)
        if upstream is None:
            return None

        if not self.storage.is_configured:
            return upstream

        cached = await self._cache_to_storage(card, upstream, size, face)
        return cached or upstream

    async def get_card_image_url(
        self, scryfall_id: str, size: ImageSize = "normal", face: ImageFace = "front"
    ) -> str | None:
        """
        Image URL for a card, caching it into storage on first request.

        Returns:
            Stored URL, upstream URL, or None if the card or face has no image

        Raises:
            ValueError: For an unknown size or face
        """
        validate_variant(size, face)

        card = await self.card_cache.get_card(scryfall_id)
        if card is None:
            return None

        return await self._resolve(card, size, face)

    async def get_card_image_url_fast(
        self, scryfall_id: str, size: ImageSize = "normal", face: ImageFace = "front"
    ) -> str | None:
        """Stored or upstream URL from the store alone; never fetches or uploads."""
        validate_variant(size, face)

        card = await self.card_cache.get_cached(scryfall_id)
        if card is None:
            return None

        return stored_image_url(card, size, face) or upstream_image_url(card, size, face)

    async def _run_batch(
        self,
        scryfall_ids: list[str],
        work: Callable[[str], Awaitable[T | None]],
        on_progress: ProgressCallback | None,
    ) -> dict[str, T]:
        unique_ids = list(dict.fromkeys(scryfall_ids))
        total = len(unique_ids)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(scryfall_id: str) -> tuple[str, T | None]:
            async with semaphore:
                try:
                    return scryfall_id, await work(scryfall_id)
                except BATCH_ITEM_ERRORS as e:
                    logger.warning("Failed to cache images for %s: %r", scryfall_id, e)
                    return scryfall_id, None
                except Exception:
                    # Still counts toward progress
                    logger.exception("Unexpected error caching images for %s", scryfall_id)
                    return scryfall_id, None

        results: dict[str, T] = {}
        completed = 0
        for next_done in asyncio.as_completed([run(scryfall_id) for scryfall_id in unique_ids]):
            scryfall_id, value = await next_done
            completed += 1
            if value is not None:
                results[scryfall_id] = value
            if on_progress is not None:
                on_progress(completed, total)

        return results

    async def batch_cache_images(
        self,
        scryfall_ids: list[str],
        size: ImageSize = "large",
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, str]:
        """
        Cache front images for many cards.

        Returns:
            Dict of Scryfall ID to image URL; cards without an image are absent
        """
        validate_variant(size, "front")

        async def front(scryfall_id: str) -> str | None:
            card = await self.card_cache.get_card(scryfall_id)
            if card is None:
                return None
            return await self._resolve(card, size, "front")

        results = await self._run_batch(scryfall_ids, front, on_progress)
        logger.info("Cached %d of %d %s images", len(results), len(scryfall_ids), size)
        return results

    async def batch_cache_images_with_back_faces(
        self,
        scryfall_ids: list[str],
        size: ImageSize = "large",
        on_progress: ProgressCallback | None = None,
    ) -> dict[str, FaceImages]:
        """Cache front images, plus back images for double-faced cards."""
        validate_variant(size, "front")

        async def both_faces(scryfall_id: str) -> FaceImages | None:
            card = await self.card_cache.get_card(scryfall_id)
            if card is None:
                return None

            front = await self._resolve(card, size, "front")
            if front is None:
                return None

            back = await self._resolve(card, size, "back") if card.has_back_face else None
            return FaceImages(front=front, back=back)

        return await self._run_batch(scryfall_ids, both_faces, on_progress)

    async def are_images_cached(
        self, scryfall_ids: list[str], size: ImageSize = "normal"
    ) -> dict[str, bool]:
        """Whether each card has a stored front image of this size."""
        validate_variant(size, "front")
        return await self.card_cache.get_image_cached_status(scryfall_ids, size)

    async def pre_cache_images(self, limit: int = 100, size: ImageSize = "normal") -> int:
        """
        Cache front images for cards that have none of this size yet.

        Returns:
            Number of images now held in storage
        """
        validate_variant(size, "front")

        if not self.storage.is_configured:
            logger.warning("Object storage is not configured, nothing to pre-cache")
            return 0

        cards = await self.card_cache.find_cards_missing_image(size, limit)
        if not cards:
            return 0

        results = await self.batch_cache_images([card.scryfall_id for card in cards], size)
        base = f"{self.storage.public_base_url}/"
        return sum(1 for url in results.values() if url.startswith(base))

    async def clear_cached_image_urls(self, scryfall_id: str) -> bool:
        """Forget stored URLs so images are re-uploaded; objects are not deleted."""
        return await self.card_cache.clear_cached_image_urls(scryfall_id)

    async def get_image_cache_stats(self) -> ImageCacheStats:
        stats = await self.card_cache.get_cache_stats()
        counts = await self.card_cache.count_cached_images()

        return ImageCacheStats(
            total_cards=stats.total_cards,
            cards_with_small_cached=counts[cached_image_attr("small")],
            cards_with_normal_cached=counts[cached_image_attr("normal")],
            cards_with_large_cached=counts[cached_image_attr("large")],
            cards_with_any_cached=stats.cards_with_cached_images,
        )
