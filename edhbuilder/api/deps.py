"""
Service wiring for the API.

The lifespan handler builds one Services bundle and stores it on
app.state; routes pull individual services through the dependencies below,
which tests override via app.dependency_overrides.
"""

from dataclasses import dataclass

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edhbuilder.clients.moxfield import MoxfieldClient
from edhbuilder.clients.scryfall import ScryfallClient
from edhbuilder.services.card_cache import CardCache
from edhbuilder.services.image_cache import ImageCache
from edhbuilder.services.object_storage import ObjectStorage
from edhbuilder.services.resolution import ImportResolver


@dataclass
class Services:
    """Long-lived collaborators shared by every request."""

    scryfall: ScryfallClient
    moxfield: MoxfieldClient
    card_cache: CardCache
    image_cache: ImageCache
    resolver: ImportResolver


def build_services(
    http_client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    storage: ObjectStorage | None = None,
) -> Services:
    """Wire the pipeline around one shared HTTP client and session factory."""
    scryfall = ScryfallClient(http_client)
    card_cache = CardCache(session_factory, scryfall)

    return Services(
        scryfall=scryfall,
        moxfield=MoxfieldClient(http_client),
        card_cache=card_cache,
        image_cache=ImageCache(card_cache, storage or ObjectStorage.from_settings(), http_client),
        resolver=ImportResolver(scryfall, card_cache=card_cache),
    )


def _services(request: Request) -> Services:
    services: Services = request.app.state.services
    return services


def get_scryfall_client(request: Request) -> ScryfallClient:
    return _services(request).scryfall


def get_moxfield_client(request: Request) -> MoxfieldClient:
    return _services(request).moxfield


def get_card_cache(request: Request) -> CardCache:
    return _services(request).card_cache


def get_image_cache(request: Request) -> ImageCache:
    return _services(request).image_cache


def get_import_resolver(request: Request) -> ImportResolver:
    return _services(request).resolver
