"""
Refresh stale card records.

Run periodically so interactive reads rarely pay for a refresh:
    python -m edhbuilder.jobs.refresh_cards --limit 500
"""

import argparse
import asyncio
import logging

import httpx

from edhbuilder.clients.scryfall import ScryfallClient
from edhbuilder.db.database import async_session_factory, init_db
from edhbuilder.services.card_cache import CardCache

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100


async def run_refresh(card_cache: CardCache, limit: int = DEFAULT_LIMIT) -> int:
    """
    Refresh up to `limit` of the stalest cards.

    Returns:
        Number of cards refreshed
    """
    stats = await card_cache.get_cache_stats()
    logger.info(
        "Card cache: %d cards, %d stale. Refreshing up to %d...",
        stats.total_cards,
        stats.stale_cards,
        limit,
    )

    count = await card_cache.refresh_stale_cards(limit)
    logger.info("Refresh complete. %d cards updated", count)
    return count


async def _main(limit: int) -> int:
    await init_db()
    async with httpx.AsyncClient(timeout=30.0) as http_client:
        card_cache = CardCache(async_session_factory, ScryfallClient(http_client))
        return await run_refresh(card_cache, limit)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Refresh stale cached card records")
    parser.add_argument("--limit", type=int, default=DEFAULT_LIMIT, help="max cards to refresh")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(_main(args.limit))


if __name__ == "__main__":
    main()
