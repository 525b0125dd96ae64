from dataclasses import dataclass, field
from enum import Enum

from edhbuilder.models.card import DeckCategory


class ImportErrorCode(str, Enum):
    """Closed set of reasons a third-party deck import can fail."""

    INVALID_URL = "INVALID_URL"
    DECK_NOT_FOUND = "DECK_NOT_FOUND"
    PRIVATE_DECK = "PRIVATE_DECK"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"


@dataclass(frozen=True, slots=True)
class DeckImportError:
    """Expected failure of a deck import, returned rather than raised."""

    code: ImportErrorCode
    message: str


@dataclass(frozen=True, slots=True)
class ImportedCard:
    """
    One card from a third-party deck, already tagged with its board.

    Attributes:
        name: Card name as the provider reports it
        quantity: Number of copies
        category: Board the card came from
        scryfall_id: Catalog ID when the provider knows it
    """

    name: str
    quantity: int
    category: DeckCategory = DeckCategory.MAIN
    scryfall_id: str | None = None


@dataclass
class MoxfieldDeck:
    """A public deck fetched from Moxfield."""

    id: str
    name: str
    format: str
    cards: list[ImportedCard] = field(default_factory=list)
    commander: ImportedCard | None = None
    description: str | None = None
    author_username: str | None = None

    def total_quantity(self) -> int:
        """Total copies across all boards."""
        return sum(card.quantity for card in self.cards)
