"""
Resolution result models.

These are the shapes returned to import callers: one CardResolution per
parsed or imported entry, wrapped in an ImportPreview.

INVARIANT (enforced by CardResolution's validator):
- resolved=True  -> scryfall_id and catalog_record are present
- resolved=False -> error is present, suggestions optional
"""

from typing import Any, Self

from pydantic import BaseModel, Field, model_validator

from edhbuilder.models.card import DeckCategory

# Error strings callers use to tell failure classes apart
CARD_NOT_FOUND = "Card not found"
COMMANDER_NOT_FOUND = "Commander card not found"
CATALOG_UNAVAILABLE = "Catalog service unavailable"


class CatalogCard(BaseModel):
    """Summary of one catalog card, built from a Scryfall payload or a cached record."""

    scryfall_id: str
    oracle_id: str | None = None
    name: str
    mana_cost: str | None = None
    cmc: float | None = None
    type_line: str | None = None
    oracle_text: str | None = None
    color_identity: str | None = None
    set_code: str | None = None
    set_name: str | None = None
    rarity: str | None = None
    price_usd: float | None = None
    is_legal_commander: bool = False
    has_back_face: bool = False
    image_uris: dict[str, Any] | None = None
    back_face_image_uris: dict[str, Any] | None = None


class CardResolution(BaseModel):
    """Resolved-or-not result for a single deck entry."""

    name: str
    quantity: int
    category: DeckCategory
    resolved: bool
    scryfall_id: str | None = None
    catalog_record: CatalogCard | None = None
    error: str | None = None
    suggestions: list[str] | None = None

    @model_validator(mode="after")
    def _check_resolution_fields(self) -> Self:
        if self.resolved and (self.scryfall_id is None or self.catalog_record is None):
            raise ValueError("Resolved cards require scryfall_id and catalog_record")
        if not self.resolved and not self.error:
            raise ValueError("Unresolved cards require an error")
        return self


class ResolutionReport(BaseModel):
    """Resolution of a whole entry list."""

    cards: list[CardResolution] = Field(default_factory=list)
    commander: CardResolution | None = None

    @property
    def resolved_count(self) -> int:
        return sum(1 for card in self.cards if card.resolved)

    @property
    def unresolved_count(self) -> int:
        return sum(1 for card in self.cards if not card.resolved)

    @property
    def total_cards(self) -> int:
        return sum(card.quantity for card in self.cards)


class ImportPreview(BaseModel):
    """Fully resolved import preview returned by the import endpoints."""

    commander: CardResolution | None = None
    cards: list[CardResolution]
    total_cards: int
    resolved_count: int
    unresolved_count: int
    warnings: list[str] = Field(default_factory=list)
    source: str
    deck_name: str | None = None
    description: str | None = None
    author_username: str | None = None

    @classmethod
    def from_report(
        cls,
        report: ResolutionReport,
        *,
        source: str,
        warnings: list[str] | None = None,
        **metadata: Any,
    ) -> "ImportPreview":
        """Build a preview from a resolution report plus source metadata."""
        return cls(
            commander=report.commander,
            cards=report.cards,
            total_cards=report.total_cards,
            resolved_count=report.resolved_count,
            unresolved_count=report.unresolved_count,
            warnings=warnings or [],
            source=source,
            **metadata,
        )
