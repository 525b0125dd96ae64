"""
Copy card images into object storage ahead of time.

    python -m edhbuilder.jobs.precache_images --limit 200 --size normal
"""

import argparse
import asyncio
import logging

import httpx

from edhbuilder.clients.scryfall import ScryfallClient
from edhbuilder.db.database import async_session_factory, init_db
from edhbuilder.models.db import IMAGE_SIZES, ImageSize
from edhbuilder.services.card_cache import CardCache
from edhbuilder.services.image_cache import ImageCache
from edhbuilder.services.object_storage import ObjectStorage

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


async def run_precache(
    image_cache: ImageCache, limit: int = DEFAULT_LIMIT, size: ImageSize = "normal"
) -> int:
    """
    Cache front images for cards that have none of this size yet.

    Returns:
        Number of images now held in storage
    """
    logger.info("Pre-caching up to %d %s images...", limit, size)
    count = await image_cache.pre_cache_images(limit, size)

    stats = await image_cache.get_image_cache_stats()
    logger.info(
        "Pre-cache complete. %d new; %d of %d cards have a cached image",
        count,
        stats.cards_with_any_cached,
        stats.total_cards,
    )
    return count


async def _main(limit: int, size: ImageSize) -> int:
    await init_db()
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        card_cache = CardCache(async_session_factory, ScryfallClient(http_client))
        image_cache = ImageCache(card_cache, ObjectStorage.from_settings(), http_client)
        return await run_precache(image_cache, limit, size)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Copy card images into object storage")
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT, help="max cards to process")
    parser.add_argument("--size", choices=IMAGE_SIZES, default="normal", help="image size")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_main(args.limit, args.size))


if __name__ == "__main__":
    main()
