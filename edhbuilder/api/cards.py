"""
Card catalog endpoints.

Single-card lookups go through the card cache; search, autocomplete and
printings are passed straight to Scryfall. Catalog outages surface as 502 so
clients can tell them apart from a card that does not exist.
"""

from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from edhbuilder.api.deps import get_card_cache, get_scryfall_client
from edhbuilder.clients.scryfall import (
    CmcOperator,
    ScryfallAPIError,
    ScryfallClient,
    SearchFilters,
    SearchResult,
)
from edhbuilder.models.resolution import CatalogCard
from edhbuilder.services.card_cache import CardCache, card_to_catalog

router = APIRouter(prefix="/cards", tags=["cards"])

CATALOG_UNAVAILABLE_DETAIL = "Card catalog is unavailable, try again shortly"


class CardSearchResponse(BaseModel):
    """One page of catalog search results."""

    cards: list[dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    has_more: bool = False
    page: int = 1


class AutocompleteResponse(BaseModel):
    suggestions: list[str]


def _catalog_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY, detail=CATALOG_UNAVAILABLE_DETAIL
    )


def _search_response(result: SearchResult, page: int) -> CardSearchResponse:
    if result.error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=result.error)
    return CardSearchResponse(
        cards=result.cards, total=result.total, has_more=result.has_more, page=page
    )


@router.get("/search", response_model=CardSearchResponse)
async def search_cards(
    client: Annotated[ScryfallClient, Depends(get_scryfall_client)],
    q: str | None = None,
    colors: Annotated[str | None, Query(description="Color letters, e.g. 'WU'")] = None,
    color_identity: Annotated[str | None, Query(description="Identity letters")] = None,
    card_type: Annotated[str | None, Query(alias="type")] = None,
    cmc: float | None = None,
    cmc_op: CmcOperator = "eq",
    rarity: str | None = None,
    set_code: Annotated[str | None, Query(alias="set")] = None,
    is_commander: bool = False,
    page: Annotated[int, Query(ge=1)] = 1,
) -> CardSearchResponse:
    """Search Commander-legal cards with structured filters."""
    filters = SearchFilters(
        query=q,
        colors=list(colors or ""),
        color_identity=list(color_identity or ""),
        type=card_type,
        cmc=cmc,
        cmc_operator=cmc_op,
        rarity=rarity,
        set=set_code,
        is_commander=is_commander,
        page=page,
    )

    try:
        result = await client.search_cards(filters)
    except (ScryfallAPIError, httpx.HTTPError) as e:
        raise _catalog_unavailable() from e

    return _search_response(result, page)


@router.get("/autocomplete", response_model=AutocompleteResponse)
async def autocomplete(
    client: Annotated[ScryfallClient, Depends(get_scryfall_client)],
    q: Annotated[str, Query(min_length=1, max_length=150)],
) -> AutocompleteResponse:
    """Card name suggestions for a partial name."""
    try:
        suggestions = await client.autocomplete(q)
    except (ScryfallAPIError, httpx.HTTPError) as e:
        raise _catalog_unavailable() from e

    return AutocompleteResponse(suggestions=suggestions)


@router.get("/printings/{oracle_id}", response_model=CardSearchResponse)
async def card_printings(
    oracle_id: str,
    client: Annotated[ScryfallClient, Depends(get_scryfall_client)],
) -> CardSearchResponse:
    """Every printing of a card, newest first."""
    try:
        result = await client.get_card_printings(oracle_id)
    except (ScryfallAPIError, httpx.HTTPError) as e:
        raise _catalog_unavailable() from e

    return _search_response(result, page=1)


@router.get("/{scryfall_id}", response_model=CatalogCard)
async def get_card(
    scryfall_id: str,
    card_cache: Annotated[CardCache, Depends(get_card_cache)],
) -> CatalogCard:
    """Get one card by Scryfall ID, served from the cache when fresh."""
    try:
        card = await card_cache.get_card(scryfall_id)
    except (ScryfallAPIError, httpx.HTTPError) as e:
        raise _catalog_unavailable() from e

    if card is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Card not found")

    return card_to_catalog(card)
