"""
Deck import endpoints.

Both endpoints return a fully resolved ImportPreview; nothing is persisted
except the card records picked up along the way.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from edhbuilder.api.deps import get_import_resolver, get_moxfield_client
from edhbuilder.clients.moxfield import MoxfieldClient
from edhbuilder.models.deck_import import DeckImportError, ImportErrorCode
from edhbuilder.models.resolution import ImportPreview
from edhbuilder.services.resolution import ImportResolver

router = APIRouter(prefix="/import", tags=["import"])

MAX_DECK_TEXT_LENGTH = 50_000

IMPORT_ERROR_STATUS: dict[ImportErrorCode, int] = {
    ImportErrorCode.INVALID_URL: status.HTTP_400_BAD_REQUEST,
    ImportErrorCode.DECK_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ImportErrorCode.PRIVATE_DECK: status.HTTP_403_FORBIDDEN,
    ImportErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ImportErrorCode.API_ERROR: status.HTTP_502_BAD_GATEWAY,
}


class ParseImportRequest(BaseModel):
    """Request model for importing a pasted deck list."""

    text: str = Field(
        ...,
        min_length=1,
        max_length=MAX_DECK_TEXT_LENGTH,
        description="Deck list text, one card per line",
        examples=["Commander:\n1 Kenrith, the Returned King\n\nDeck:\n1 Sol Ring"],
    )


class MoxfieldImportRequest(BaseModel):
    """Request model for importing a public Moxfield deck."""

    url: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Moxfield deck URL or deck ID",
        examples=["https://www.moxfield.com/decks/abc123XYZ"],
    )


class ImportErrorResponse(BaseModel):
    """Error body for a failed third-party import."""

    error: str
    code: ImportErrorCode


@router.post("/parse", response_model=ImportPreview)
async def import_deck_text(
    request: ParseImportRequest,
    resolver: Annotated[ImportResolver, Depends(get_import_resolver)],
) -> ImportPreview:
    """
    Parse a text deck list and resolve every card.

    Malformed lines come back as warnings; unknown cards come back unresolved.
    """
    return await resolver.resolve_deck_text(request.text)


@router.post(
    "/moxfield",
    response_model=ImportPreview,
    responses={
        code: {"model": ImportErrorResponse} for code in set(IMPORT_ERROR_STATUS.values())
    },
)
async def import_moxfield_deck(
    request: MoxfieldImportRequest,
    moxfield: Annotated[MoxfieldClient, Depends(get_moxfield_client)],
    resolver: Annotated[ImportResolver, Depends(get_import_resolver)],
) -> ImportPreview | JSONResponse:
    """Fetch a public Moxfield deck and resolve every card."""
    result = await moxfield.fetch_deck(request.url)

    if isinstance(result, DeckImportError):
        body = ImportErrorResponse(error=result.message, code=result.code)
        return JSONResponse(
            status_code=IMPORT_ERROR_STATUS[result.code],
            content=body.model_dump(mode="json"),
        )

    return await resolver.resolve_moxfield_deck(result)
