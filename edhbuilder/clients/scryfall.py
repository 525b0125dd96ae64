"""
Rate-limited Scryfall API client.

Every outbound request passes through one RateLimiter, so the minimum
spacing holds across concurrent callers sharing the client. Batch lookups
are chunked to the /cards/collection limit and each chunk is paced too.

Outcomes:
- payload        -> returned as-is
- not_found      -> "no result" (None / empty)
- other errors   -> ScryfallAPIError (detected by payload shape, not status)
- transport      -> httpx.HTTPError propagates; no retries here

Docs: https://scryfall.com/docs/api
"""

import asyncio
import logging
import math
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Literal

import httpx

from edhbuilder.config import settings

logger = logging.getLogger(__name__)

NOT_FOUND_CODE = "not_found"

CmcOperator = Literal["eq", "lt", "lte", "gt", "gte"]

_CMC_OPERATORS: dict[str, str] = {"eq": "=", "lt": "<", "lte": "<=", "gt": ">", "gte": ">="}


class ScryfallAPIError(Exception):
    """Raised when Scryfall answers with an error object other than not_found."""

    def __init__(self, code: str, status: int, details: str) -> None:
        self.code = code
        self.status = status
        self.details = details
        super().__init__(f"Scryfall error {status} ({code}): {details}")


def is_scryfall_error(data: Any) -> bool:
    """True if a decoded response body is a Scryfall error object."""
    return isinstance(data, dict) and data.get("object") == "error"


class RateLimiter:
    """
    Enforces a minimum interval between requests.

    The "last request" watermark is only touched under a lock. Each caller
    reserves its slot while holding the lock, then sleeps outside it, so no
    lock is held across an await.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.interval = interval
        self._clock = clock
        self._lock = Lock()
        self._last_request = -math.inf

    async def acquire(self) -> None:
        """Wait until this caller may send a request."""
        with self._lock:
            now = self._clock()
            slot = max(now, self._last_request + self.interval)
            self._last_request = slot

        delay = slot - now
        if delay > 0:
            await asyncio.sleep(delay)


@dataclass
class SearchFilters:
    """Card search filters translated into Scryfall query syntax."""

    query: str | None = None
    colors: list[str] = field(default_factory=list)
    color_identity: list[str] = field(default_factory=list)
    type: str | None = None
    cmc: float | None = None
    cmc_operator: CmcOperator = "eq"
    rarity: str | None = None
    set: str | None = None
    is_commander: bool = False
    is_legal: bool = True
    page: int = 1

    def to_query(self) -> str:
        """Build the Scryfall `q` parameter."""
        parts: list[str] = []

        if self.query:
            parts.append(self.query)
        if self.colors:
            parts.append(f"c:{''.join(self.colors)}")
        if self.color_identity:
            parts.append(f"id<={''.join(self.color_identity)}")
        if self.type:
            parts.append(f"t:{self.type}")
        if self.cmc is not None:
            cmc = int(self.cmc) if float(self.cmc).is_integer() else self.cmc
            parts.append(f"cmc{_CMC_OPERATORS[self.cmc_operator]}{cmc}")
        if self.rarity:
            parts.append(f"r:{self.rarity}")
        if self.set:
            parts.append(f"s:{self.set}")
        if self.is_commander:
            parts.append("is:commander")
        if self.is_legal:
            parts.append("f:commander")

        return " ".join(parts)


@dataclass
class SearchResult:
    """One page of search results."""

    cards: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0
    has_more: bool = False
    error: str | None = None


def _chunks(items: list[Any], size: int) -> Iterable[list[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class ScryfallClient:
    """
    Async client for the Scryfall REST API.

    Args:
        http_client: Shared httpx client (caller owns its lifecycle)
        base_url: API root
        rate_limiter: Shared limiter; one is created from settings if omitted
        batch_size: Max identifiers per /cards/collection request
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        rate_limiter: RateLimiter | None = None,
        batch_size: int | None = None,
    ) -> None:
        self._http = http_client
        self.base_url = (base_url or settings.scryfall_api_base).rstrip("/")
        self.rate_limiter = rate_limiter or RateLimiter(settings.scryfall_rate_limit_ms / 1000)
        self.batch_size = batch_size or settings.scryfall_batch_size

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        """
        Send one paced request and decode the JSON body.

        Returns either a payload or a Scryfall error object; callers branch
        on is_scryfall_error().

        Raises:
            httpx.HTTPError: On transport failure or a non-JSON error response
            ValueError: If a successful response body is not JSON
        """
        await self.rate_limiter.acquire()

        response = await self._http.request(
            method,
            f"{self.base_url}{path}",
            params=params,
            json=json,
            headers={"Accept": "application/json", "User-Agent": settings.user_agent},
        )

        try:
            data: dict[str, Any] = response.json()
        except ValueError:
            # Error pages from proxies/CDN are not JSON
            response.raise_for_status()
            raise

        if not response.is_success and not is_scryfall_error(data):
            response.raise_for_status()

        return data

    @staticmethod
    def _raise_unless_not_found(data: dict[str, Any]) -> None:
        if data.get("code") == NOT_FOUND_CODE:
            return
        raise ScryfallAPIError(
            code=str(data.get("code", "unknown")),
            status=int(data.get("status", 0)),
            details=str(data.get("details", "")),
        )

    async def _get_single(
        self, path: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        data = await self._request("GET", path, params=params)
        if is_scryfall_error(data):
            self._raise_unless_not_found(data)
            return None
        return data

    async def _search(self, params: dict[str, Any]) -> SearchResult:
        data = await self._request("GET", "/cards/search", params=params)

        if is_scryfall_error(data):
            if data.get("code") == NOT_FOUND_CODE:
                return SearchResult()
            return SearchResult(error=str(data.get("details", "Search failed")))

        return SearchResult(
            cards=list(data.get("data", [])),
            total=int(data.get("total_cards", 0)),
            has_more=bool(data.get("has_more", False)),
        )

    async def search_cards(self, filters: SearchFilters) -> SearchResult:
        """
        Search cards, one result per oracle card, ordered by name.

        A search with no matches is an empty result, not an error.
        """
        query = filters.to_query()
        if not query.strip():
            return SearchResult()

        params: dict[str, Any] = {"q": query, "unique": "cards", "order": "name", "dir": "asc"}
        if filters.page > 1:
            params["page"] = filters.page

        return await self._search(params)

    async def search_commanders(
        self, query: str, color_identity: list[str] | None = None
    ) -> list[dict[str, Any]]:
        """Search legal commanders, optionally within a color identity."""
        filters = SearchFilters(
            query=query,
            color_identity=color_identity or [],
            is_commander=True,
            is_legal=True,
        )
        result = await self.search_cards(filters)
        return result.cards

    async def get_card(self, scryfall_id: str) -> dict[str, Any] | None:
        """Get a single card by Scryfall ID, None if it does not exist."""
        return await self._get_single(f"/cards/{scryfall_id}")

    async def get_card_by_name(self, name: str, fuzzy: bool = False) -> dict[str, Any] | None:
        """Get a single card by exact or fuzzy name, None if no match."""
        params = {"fuzzy" if fuzzy else "exact": name}
        return await self._get_single("/cards/named", params=params)

    async def get_random_card(self, filters: SearchFilters | None = None) -> dict[str, Any] | None:
        """Get a random card, optionally restricted by filters."""
        params: dict[str, Any] | None = None
        if filters is not None:
            query = filters.to_query()
            if query:
                params = {"q": query}
        return await self._get_single("/cards/random", params=params)

    async def autocomplete(self, query: str) -> list[str]:
        """Card name completions; queries shorter than 2 characters return nothing."""
        if len(query) < 2:
            return []

        data = await self._request("GET", "/cards/autocomplete", params={"q": query})
        if is_scryfall_error(data):
            self._raise_unless_not_found(data)
            return []

        return [str(name) for name in data.get("data", [])]

    async def get_card_printings(self, oracle_id: str) -> SearchResult:
        """All printings of an oracle card, newest first."""
        params = {
            "q": f"oracle_id:{oracle_id}",
            "unique": "prints",
            "order": "released",
            "dir": "desc",
        }
        return await self._search(params)

    async def _collection(self, identifiers: list[dict[str, str]]) -> list[dict[str, Any]]:
        """Resolve identifiers via /cards/collection, one paced request per chunk."""
        cards: list[dict[str, Any]] = []

        for chunk in _chunks(identifiers, self.batch_size):
            data = await self._request("POST", "/cards/collection", json={"identifiers": chunk})
            if is_scryfall_error(data):
                self._raise_unless_not_found(data)
                continue

            not_found = data.get("not_found", [])
            if not_found:
                logger.debug(
                    "Scryfall could not find %d of %d identifiers", len(not_found), len(chunk)
                )
            cards.extend(data.get("data", []))

        return cards

    async def get_cards_by_ids(self, scryfall_ids: list[str]) -> dict[str, dict[str, Any]]:
        """
        Fetch many cards by Scryfall ID.

        Returns:
            Dict mapping Scryfall ID to card payload. Unknown IDs are absent.
        """
        if not scryfall_ids:
            return {}

        cards = await self._collection([{"id": scryfall_id} for scryfall_id in scryfall_ids])
        return {card["id"]: card for card in cards}

    async def get_cards_by_names(self, names: list[str]) -> dict[str, dict[str, Any]]:
        """
        Fetch many cards by exact name.

        Returns:
            Dict mapping lowercased name to card payload. Keys are Scryfall's
            canonical name and, for multi-face cards, the front face name, so a
            request matches when it differs from either only by case.
        """
        if not names:
            return {}

        cards = await self._collection([{"name": name} for name in names])

        by_name: dict[str, dict[str, Any]] = {}
        for card in cards:
            canonical = str(card.get("name", ""))
            by_name[canonical.lower()] = card
            # "Delver of Secrets // Insectile Aberration" is matched by its front face
            front = canonical.split(" // ")[0]
            by_name.setdefault(front.lower(), card)

        return by_name
