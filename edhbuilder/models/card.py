from dataclasses import dataclass, field
from enum import Enum

MIN_QUANTITY = 1
MAX_QUANTITY = 99


class DeckCategory(str, Enum):
    """Deck group a card entry belongs to."""

    MAIN = "MAIN"
    COMMANDER = "COMMANDER"
    SIDEBOARD = "SIDEBOARD"
    CONSIDERING = "CONSIDERING"


@dataclass(frozen=True, slots=True)
class ParsedCardEntry:
    """
    One card line from a deck list or a third-party import.

    Attributes:
        name: Card name as typed (normalized, not yet canonical)
        quantity: Number of copies (1-99)
        category: Deck group the line appeared under
    """

    name: str
    quantity: int = 1
    category: DeckCategory = DeckCategory.MAIN

    def __post_init__(self) -> None:
        if not MIN_QUANTITY <= self.quantity <= MAX_QUANTITY:
            msg = f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}, got {self.quantity}"
            raise ValueError(msg)


@dataclass(frozen=True, slots=True)
class ParseError:
    """A deck list line that could not be turned into an entry."""

    line: int
    content: str
    message: str


@dataclass
class ParseResult:
    """Output of parsing a deck list."""

    entries: list[ParsedCardEntry] = field(default_factory=list)
    commander: ParsedCardEntry | None = None
    errors: list[ParseError] = field(default_factory=list)

    def total_quantity(self) -> int:
        """Total copies across all entries."""
        return sum(entry.quantity for entry in self.entries)
