"""
Moxfield public deck API client.

Fetches a whole deck (commanders + boards) and flattens it into
ImportedCard entries tagged by board. Every expected failure is returned
as a DeckImportError; nothing here raises for a bad URL or an HTTP status.
"""

import logging
import re
from typing import Any

import httpx

from edhbuilder.config import settings
from edhbuilder.models.card import DeckCategory
from edhbuilder.models.deck_import import (
    DeckImportError,
    ImportedCard,
    ImportErrorCode,
    MoxfieldDeck,
)

logger = logging.getLogger(__name__)

# https://www.moxfield.com/decks/{id} and /decks/{id}/primer
# Groups: (deck_id)
DECK_URL_PATTERN = re.compile(r"moxfield\.com/decks/([A-Za-z0-9_-]+)")
DECK_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
MIN_DECK_ID_LENGTH = 6

# Board key in the API payload -> deck group
BOARD_CATEGORIES: dict[str, DeckCategory] = {
    "commanders": DeckCategory.COMMANDER,
    "mainboard": DeckCategory.MAIN,
    "sideboard": DeckCategory.SIDEBOARD,
    "maybeboard": DeckCategory.CONSIDERING,
}

ERROR_MESSAGES: dict[ImportErrorCode, str] = {
    ImportErrorCode.INVALID_URL: (
        "Invalid Moxfield URL or deck ID. Please provide a valid Moxfield deck URL."
    ),
    ImportErrorCode.DECK_NOT_FOUND: "Deck not found. Make sure the deck exists and is public.",
    ImportErrorCode.PRIVATE_DECK: "This deck is private. Only public decks can be imported.",
    ImportErrorCode.RATE_LIMITED: (
        "Too many requests to Moxfield. Please try again in a few seconds."
    ),
    ImportErrorCode.API_ERROR: "Failed to fetch deck from Moxfield. Please try again.",
}

STATUS_ERRORS: dict[int, ImportErrorCode] = {
    404: ImportErrorCode.DECK_NOT_FOUND,
    403: ImportErrorCode.PRIVATE_DECK,
    429: ImportErrorCode.RATE_LIMITED,
}


def extract_deck_id(value: str) -> str | None:
    """
    Extract a deck ID from a Moxfield URL or a bare ID.

    Supported:
        https://www.moxfield.com/decks/{id}
        https://moxfield.com/decks/{id}/primer
        {id}  (at least 6 of [A-Za-z0-9_-])

    Returns:
        The deck ID, or None if the input is not recognizable
    """
    trimmed = value.strip()

    if "moxfield.com" in trimmed:
        match = DECK_URL_PATTERN.search(trimmed)
        return match.group(1) if match else None

    if len(trimmed) >= MIN_DECK_ID_LENGTH and DECK_ID_PATTERN.match(trimmed):
        return trimmed

    return None


def is_valid_moxfield_url(value: str) -> bool:
    """Check a URL or ID is well-formed without fetching it."""
    return extract_deck_id(value) is not None


def _error(code: ImportErrorCode, message: str | None = None) -> DeckImportError:
    return DeckImportError(code=code, message=message or ERROR_MESSAGES[code])


def _transform_board(board: dict[str, Any] | None, category: DeckCategory) -> list[ImportedCard]:
    if not board:
        return []

    return [
        ImportedCard(
            name=entry["card"]["name"],
            quantity=int(entry.get("quantity", 1)),
            category=category,
            scryfall_id=entry["card"].get("scryfall_id"),
        )
        for entry in board.values()
    ]


def parse_deck_payload(data: dict[str, Any]) -> MoxfieldDeck:
    """
    Normalize a Moxfield deck payload.

    Boards are flattened in the order commanders, mainboard, sideboard,
    maybeboard. The first commander becomes the designated commander.
    """
    cards: list[ImportedCard] = []
    for board_key, category in BOARD_CATEGORIES.items():
        cards.extend(_transform_board(data.get(board_key), category))

    commanders = [card for card in cards if card.category is DeckCategory.COMMANDER]

    return MoxfieldDeck(
        id=data.get("publicId") or data["id"],
        name=data.get("name", ""),
        format=data.get("format", ""),
        cards=cards,
        commander=commanders[0] if commanders else None,
        description=data.get("description"),
        author_username=(data.get("createdByUser") or {}).get("userName"),
    )


class MoxfieldClient:
    """Fetches public decks from Moxfield."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str | None = None) -> None:
        self._http = http_client
        self.base_url = (base_url or settings.moxfield_api_base).rstrip("/")

    async def fetch_deck(self, deck_id_or_url: str) -> MoxfieldDeck | DeckImportError:
        """
        Fetch and normalize a public deck.

        Args:
            deck_id_or_url: Moxfield deck URL or bare deck ID

        Returns:
            MoxfieldDeck on success, DeckImportError otherwise. INVALID_URL is
            returned before any network call.
        """
        deck_id = extract_deck_id(deck_id_or_url)
        if deck_id is None:
            return _error(ImportErrorCode.INVALID_URL)

        try:
            response = await self._http.get(
                f"{self.base_url}/decks/all/{deck_id}",
                headers={"Accept": "application/json", "User-Agent": settings.user_agent},
            )
        except httpx.HTTPError as e:
            logger.warning("Moxfield request for %s failed: %s", deck_id, e)
            return _error(ImportErrorCode.API_ERROR)

        code = STATUS_ERRORS.get(response.status_code)
        if code is not None:
            return _error(code)

        if not response.is_success:
            return _error(
                ImportErrorCode.API_ERROR,
                f"Moxfield API error: {response.status_code} {response.reason_phrase}",
            )

        try:
            return parse_deck_payload(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Unexpected Moxfield payload for %s: %s", deck_id, e)
            return _error(ImportErrorCode.API_ERROR)
