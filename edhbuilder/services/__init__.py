from edhbuilder.services.card_cache import (
    CacheStats,
    CardCache,
    CardLookup,
    LookupOutcome,
    card_to_catalog,
    is_card_stale,
    is_commander_eligible,
    is_timestamp_stale,
    map_scryfall_to_card,
    payload_to_catalog,
)
from edhbuilder.services.image_cache import FaceImages, ImageCache, ImageCacheStats
from edhbuilder.services.object_storage import ObjectStorage, card_image_key
from edhbuilder.services.resolution import ImportResolver

__all__ = [
    "CacheStats",
    "CardCache",
    "CardLookup",
    "FaceImages",
    "ImageCache",
    "ImageCacheStats",
    "ImportResolver",
    "LookupOutcome",
    "ObjectStorage",
    "card_image_key",
    "card_to_catalog",
    "is_card_stale",
    "is_commander_eligible",
    "is_timestamp_stale",
    "map_scryfall_to_card",
    "payload_to_catalog",
]
