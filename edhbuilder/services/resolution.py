"""
Import resolution.

Turns parsed or imported deck entries into CardResolution results:

- Unique names (case-insensitive) are resolved in one batched catalog call
  per 75 names; duplicate lines never cost extra upstream calls.
- Resolved entries take the catalog's canonical name.
- Unresolved entries get "Card not found" plus a bounded number of
  autocomplete suggestions.
- If the catalog itself is unavailable every entry is unresolved with
  "Catalog service unavailable" so callers can tell outage from typo.
- Entries that already carry a Scryfall ID (Moxfield) are resolved through
  the card cache first and only fall back to the name lookup on a miss.
"""

import asyncio
import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

import httpx

from edhbuilder.clients.scryfall import ScryfallAPIError, ScryfallClient
from edhbuilder.config import settings
from edhbuilder.models.card import DeckCategory
from edhbuilder.models.deck_import import MoxfieldDeck
from edhbuilder.models.resolution import (
    CARD_NOT_FOUND,
    CATALOG_UNAVAILABLE,
    COMMANDER_NOT_FOUND,
    CardResolution,
    CatalogCard,
    ImportPreview,
    ResolutionReport,
)
from edhbuilder.parsers.deck_list import parse_deck_list, validate_commander_deck
from edhbuilder.services.card_cache import CardCache, card_to_catalog, payload_to_catalog

logger = logging.getLogger(__name__)

UPSTREAM_ERRORS = (ScryfallAPIError, httpx.HTTPError)

MAX_SUGGESTION_QUERY_LENGTH = 150
UNSAFE_QUERY_CHARS = re.compile(r"[<>'\"\\]")


class DeckEntry(Protocol):
    """Anything with a name, quantity and category (parsed or imported)."""

    @property
    def name(self) -> str: ...

    @property
    def quantity(self) -> int: ...

    @property
    def category(self) -> DeckCategory: ...


def _entry_id(entry: DeckEntry) -> str | None:
    scryfall_id: str | None = getattr(entry, "scryfall_id", None)
    return scryfall_id


def _unique_names(entries: Iterable[DeckEntry]) -> list[str]:
    seen: set[str] = set()
    names: list[str] = []
    for entry in entries:
        key = entry.name.lower()
        if key not in seen:
            seen.add(key)
            names.append(entry.name)
    return names


def sanitize_suggestion_query(name: str) -> str:
    """Strip quote/markup characters and cap the length of an autocomplete query."""
    return UNSAFE_QUERY_CHARS.sub("", name)[:MAX_SUGGESTION_QUERY_LENGTH].strip()


def _resolved(entry: DeckEntry, card: CatalogCard, category: DeckCategory) -> CardResolution:
    return CardResolution(
        name=card.name,
        quantity=entry.quantity,
        category=category,
        resolved=True,
        scryfall_id=card.scryfall_id,
        catalog_record=card,
    )


def _unresolved(entry: DeckEntry, error: str, category: DeckCategory) -> CardResolution:
    return CardResolution(
        name=entry.name,
        quantity=entry.quantity,
        category=category,
        resolved=False,
        error=error,
    )


class ImportResolver:
    """
    Resolves deck entries against the card catalog.

    Args:
        client: Scryfall client for batched name lookups and suggestions
        card_cache: When set, receives every resolved payload and serves
            ID-carrying entries
        suggestion_limit: Unique unresolved names that get suggestions
        suggestions_per_name: Suggestions kept per name
        suggestion_delay: Seconds between suggestion requests
    """

    def __init__(
        self,
        client: ScryfallClient,
        card_cache: CardCache | None = None,
        suggestion_limit: int | None = None,
        suggestions_per_name: int | None = None,
        suggestion_delay: float | None = None,
    ) -> None:
        self.client = client
        self.card_cache = card_cache
        self.suggestion_limit = (
            settings.suggestion_limit if suggestion_limit is None else suggestion_limit
        )
        self.suggestions_per_name = (
            settings.suggestions_per_name if suggestions_per_name is None else suggestions_per_name
        )
        self.suggestion_delay = (
            settings.suggestion_delay_ms / 1000 if suggestion_delay is None else suggestion_delay
        )

    async def _lookup_names(self, names: list[str]) -> dict[str, CatalogCard] | None:
        """
        Batched name lookup.

        Returns:
            Lowercased name -> catalog card, or None if the catalog is unavailable
        """
        if not names:
            return {}

        try:
            payloads = await self.client.get_cards_by_names(names)
        except UPSTREAM_ERRORS as e:
            logger.warning("Catalog lookup of %d names failed: %s", len(names), e)
            return None

        if payloads and self.card_cache is not None:
            unique: dict[str, dict[str, Any]] = {p["id"]: p for p in payloads.values()}
            await self.card_cache.ingest(unique.values())

        return {name: payload_to_catalog(payload) for name, payload in payloads.items()}

    async def _suggest(self, names: list[str]) -> dict[str, list[str]]:
        """Autocomplete suggestions for the first `suggestion_limit` names."""
        suggestions: dict[str, list[str]] = {}

        for index, name in enumerate(names[: self.suggestion_limit]):
            if index and self.suggestion_delay > 0:
                await asyncio.sleep(self.suggestion_delay)

            query = sanitize_suggestion_query(name)
            if not query:
                continue

            try:
                found = await self.client.autocomplete(query)
            except UPSTREAM_ERRORS as e:
                logger.warning("Suggestions for %r failed: %s", name, e)
                continue

            if found:
                suggestions[name.lower()] = found[: self.suggestions_per_name]

        return suggestions

    async def _resolve(
        self,
        entries: Sequence[DeckEntry],
        commander: DeckEntry | None,
        by_id: Mapping[str, CatalogCard],
    ) -> ResolutionReport:
        candidates = [*entries, *([commander] if commander is not None else [])]
        pending = [entry for entry in candidates if _entry_id(entry) not in by_id]
        by_name = await self._lookup_names(_unique_names(pending))

        def lookup(entry: DeckEntry) -> CatalogCard | None:
            scryfall_id = _entry_id(entry)
            if scryfall_id is not None and scryfall_id in by_id:
                return by_id[scryfall_id]
            if by_name is None:
                return None
            return by_name.get(entry.name.lower())

        missing_error = CARD_NOT_FOUND if by_name is not None else CATALOG_UNAVAILABLE

        cards: list[CardResolution] = []
        unresolved: list[DeckEntry] = []
        for entry in entries:
            card = lookup(entry)
            if card is not None:
                cards.append(_resolved(entry, card, entry.category))
            else:
                cards.append(_unresolved(entry, missing_error, entry.category))
                unresolved.append(entry)

        # No point asking for suggestions while the catalog is down
        if by_name is not None and unresolved:
            suggestions = await self._suggest(_unique_names(unresolved))
            for resolution in cards:
                if not resolution.resolved and resolution.name.lower() in suggestions:
                    resolution.suggestions = suggestions[resolution.name.lower()]

        commander_resolution: CardResolution | None = None
        if commander is not None:
            card = lookup(commander)
            if card is not None:
                commander_resolution = CardResolution(
                    name=card.name,
                    quantity=1,
                    category=DeckCategory.COMMANDER,
                    resolved=True,
                    scryfall_id=card.scryfall_id,
                    catalog_record=card,
                )
            else:
                error = COMMANDER_NOT_FOUND if by_name is not None else CATALOG_UNAVAILABLE
                commander_resolution = CardResolution(
                    name=commander.name,
                    quantity=1,
                    category=DeckCategory.COMMANDER,
                    resolved=False,
                    error=error,
                )

        return ResolutionReport(cards=cards, commander=commander_resolution)

    async def resolve_entries(
        self, entries: Sequence[DeckEntry], commander: DeckEntry | None = None
    ) -> ResolutionReport:
        """Resolve entries by name with one batched lookup."""
        return await self._resolve(entries, commander, by_id={})

    async def resolve_deck_text(self, text: str) -> ImportPreview:
        """Parse a text deck list, resolve it and collect warnings."""
        result = parse_deck_list(text)
        report = await self.resolve_entries(result.entries, result.commander)

        warnings = validate_commander_deck(result)
        warnings.extend(
            f'Line {error.line}: {error.message} - "{error.content}"' for error in result.errors
        )

        return ImportPreview.from_report(report, source="text", warnings=warnings)

    async def resolve_moxfield_deck(self, deck: MoxfieldDeck) -> ImportPreview:
        """
        Resolve a Moxfield deck.

        Cards carrying a Scryfall ID go through the card cache; the rest, and
        IDs the cache could not produce, are resolved by name.
        """
        by_id: dict[str, CatalogCard] = {}
        candidates = [*deck.cards, *([deck.commander] if deck.commander else [])]
        ids = [card.scryfall_id for card in candidates if card.scryfall_id]

        if ids and self.card_cache is not None:
            records = await self.card_cache.get_cards_by_ids_map(ids)
            by_id = {scryfall_id: card_to_catalog(card) for scryfall_id, card in records.items()}

        report = await self._resolve(deck.cards, deck.commander, by_id)

        return ImportPreview.from_report(
            report,
            source="moxfield",
            deck_name=deck.name,
            description=deck.description,
            author_username=deck.author_username,
        )
