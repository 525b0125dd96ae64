from edhbuilder.db.database import (
    async_session_factory,
    get_session,
    init_db,
    make_engine,
    make_session_factory,
)
from edhbuilder.db.operations import (
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

__all__ = [
    "async_session_factory",
    "clear_cached_image_urls",
    "count_cached_images_by_variant",
    "count_cards",
    "count_cards_with_cached_images",
    "find_cards_missing_image",
    "find_stale_cards",
    "get_card",
    "get_card_by_name",
    "get_cards",
    "get_image_cached_status",
    "get_session",
    "init_db",
    "make_engine",
    "make_session_factory",
    "update_cached_image_url",
    "upsert_card",
]
