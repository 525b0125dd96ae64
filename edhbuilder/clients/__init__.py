from edhbuilder.clients.moxfield import MoxfieldClient, extract_deck_id, is_valid_moxfield_url
from edhbuilder.clients.scryfall import (
    RateLimiter,
    ScryfallAPIError,
    ScryfallClient,
    SearchFilters,
    SearchResult,
    is_scryfall_error,
)

__all__ = [
    "MoxfieldClient",
    "RateLimiter",
    "ScryfallAPIError",
    "ScryfallClient",
    "SearchFilters",
    "SearchResult",
    "extract_deck_id",
    "is_scryfall_error",
    "is_valid_moxfield_url",
]
