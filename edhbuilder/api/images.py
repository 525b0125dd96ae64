"""
Card image endpoints.

GET redirects to the best available image URL (object storage if cached,
Scryfall otherwise). POST /batch warms the cache for many cards at once.
"""

from typing import Annotated, cast

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field

from edhbuilder.api.deps import get_image_cache
from edhbuilder.clients.scryfall import ScryfallAPIError
from edhbuilder.models.db import ImageFace, ImageSize
from edhbuilder.services.image_cache import ImageCache, validate_variant

router = APIRouter(prefix="/images", tags=["images"])

MAX_BATCH_IDS = 500


class BatchImageRequest(BaseModel):
    """Request model for batch image caching."""

    scryfall_ids: list[str] = Field(..., min_length=1, max_length=MAX_BATCH_IDS)
    size: ImageSize = "large"
    include_back_faces: bool = True


class FaceImageUrls(BaseModel):
    front: str
    back: str | None = None


class BatchImageResponse(BaseModel):
    """Image URLs by Scryfall ID; cards without an image are absent."""

    images: dict[str, FaceImageUrls] | dict[str, str]


@router.get("/{scryfall_id}", response_class=RedirectResponse)
async def get_card_image(
    scryfall_id: str,
    image_cache: Annotated[ImageCache, Depends(get_image_cache)],
    size: Annotated[str, Query()] = "normal",
    face: Annotated[str, Query()] = "front",
) -> RedirectResponse:
    """Redirect to a card image, caching it into object storage on first use."""
    try:
        validate_variant(size, face)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        url = await image_cache.get_card_image_url(
            scryfall_id, cast(ImageSize, size), cast(ImageFace, face)
        )
    except (ScryfallAPIError, httpx.HTTPError) as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Card catalog is unavailable, try again shortly",
        ) from e

    if url is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Card or image not found",
        )

    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.post("/batch", response_model=BatchImageResponse)
async def batch_cache_images(
    request: BatchImageRequest,
    image_cache: Annotated[ImageCache, Depends(get_image_cache)],
) -> BatchImageResponse:
    """Cache images for up to 500 cards and return their URLs."""
    if request.include_back_faces:
        faces = await image_cache.batch_cache_images_with_back_faces(
            request.scryfall_ids, request.size
        )
        return BatchImageResponse(
            images={
                scryfall_id: FaceImageUrls(front=urls.front, back=urls.back)
                for scryfall_id, urls in faces.items()
            }
        )

    fronts = await image_cache.batch_cache_images(request.scryfall_ids, request.size)
    return BatchImageResponse(images=fronts)
