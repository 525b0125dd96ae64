from edhbuilder.models.card import (
    MAX_QUANTITY,
    MIN_QUANTITY,
    DeckCategory,
    ParsedCardEntry,
    ParseError,
    ParseResult,
)
from edhbuilder.models.deck_import import (
    DeckImportError,
    ImportedCard,
    ImportErrorCode,
    MoxfieldDeck,
)
from edhbuilder.models.resolution import (
    CARD_NOT_FOUND,
    CATALOG_UNAVAILABLE,
    COMMANDER_NOT_FOUND,
    CardResolution,
    CatalogCard,
    ImportPreview,
    ResolutionReport,
)

__all__ = [
    "CARD_NOT_FOUND",
    "CATALOG_UNAVAILABLE",
    "COMMANDER_NOT_FOUND",
    "MAX_QUANTITY",
    "MIN_QUANTITY",
    "CardResolution",
    "CatalogCard",
    "DeckCategory",
    "DeckImportError",
    "ImportErrorCode",
    "ImportPreview",
    "ImportedCard",
    "MoxfieldDeck",
    "ParseError",
    "ParseResult",
    "ParsedCardEntry",
    "ResolutionReport",
]
