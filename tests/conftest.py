from collections.abc import AsyncGenerator
from typing import Any

import httpx
import pytest
import respx
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edhbuilder.api.deps import Services
from edhbuilder.clients.moxfield import MoxfieldClient
from edhbuilder.clients.scryfall import RateLimiter, ScryfallClient
from edhbuilder.db.database import get_session, init_db, make_engine, make_session_factory
from edhbuilder.main import app
from edhbuilder.models.db import Base
from edhbuilder.services.card_cache import CardCache
from edhbuilder.services.image_cache import ImageCache
from edhbuilder.services.object_storage import ObjectStorage
from edhbuilder.services.resolution import ImportResolver

SCRYFALL_API = "https://api.scryfall.com"
MOXFIELD_API = "https://api2.moxfield.com/v2"

SOL_RING_ID = "ee6e5a35-fe21-4dee-b0ef-a8f2841511ad"
KENRITH_ID = "2ee2b7ab-1e5b-4a37-9e5b-b6e42e6b1cc7"
DELVER_ID = "11bf83bb-c95b-4b4f-9a56-ce7a1816307a"
TEFERI_ID = "2b4e6f0e-a8b9-4a13-9c35-7d1d6ec1c3a0"


def image_uris(scryfall_id: str, prefix: str = "front") -> dict[str, str]:
    return {
        size: f"https://cards.scryfall.io/{size}/{prefix}/{scryfall_id}.jpg"
        for size in ("small", "normal", "large", "png")
    }


@pytest.fixture
def sol_ring_payload() -> dict[str, Any]:
    """Scryfall payload for a single-faced artifact."""
    return {
        "object": "card",
        "id": SOL_RING_ID,
        "oracle_id": "6ad8011d-3471-4369-9d68-b264cc027487",
        "name": "Sol Ring",
        "layout": "normal",
        "mana_cost": "{1}",
        "cmc": 1.0,
        "type_line": "Artifact",
        "oracle_text": "{T}: Add {C}{C}.",
        "colors": [],
        "color_identity": [],
        "legalities": {"commander": "legal"},
        "set": "c21",
        "set_name": "Commander 2021",
        "rarity": "uncommon",
        "prices": {"usd": "1.25", "tix": "0.02"},
        "image_uris": image_uris(SOL_RING_ID),
    }


@pytest.fixture
def kenrith_payload() -> dict[str, Any]:
    """Scryfall payload for a legendary creature commander."""
    return {
        "object": "card",
        "id": KENRITH_ID,
        "oracle_id": "b6a1b5d4-7e4e-4b8e-a8b3-4b1e8d6c1f0a",
        "name": "Kenrith, the Returned King",
        "layout": "normal",
        "mana_cost": "{4}{W}",
        "cmc": 5.0,
        "type_line": "Legendary Creature — Human Noble",
        "oracle_text": "{R}: All creatures gain trample and haste until end of turn.",
        "colors": ["W"],
        "color_identity": ["B", "G", "R", "U", "W"],
        "power": "5",
        "toughness": "5",
        "legalities": {"commander": "legal"},
        "set": "eld",
        "set_name": "Throne of Eldraine",
        "rarity": "mythic",
        "prices": {"usd": "3.10", "tix": None},
        "image_uris": image_uris(KENRITH_ID),
    }


@pytest.fixture
def delver_payload() -> dict[str, Any]:
    """Scryfall payload for a transform double-faced card."""
    return {
        "object": "card",
        "id": DELVER_ID,
        "oracle_id": "e0c5b1b1-7a3c-4e8d-9d3c-2c7f1a4b5e6d",
        "name": "Delver of Secrets // Insectile Aberration",
        "layout": "transform",
        "cmc": 1.0,
        "type_line": "Creature — Human Wizard // Creature — Human Insect",
        "color_identity": ["U"],
        "legalities": {"commander": "legal"},
        "set": "isd",
        "set_name": "Innistrad",
        "rarity": "common",
        "prices": {"usd": "0.50"},
        "card_faces": [
            {
                "name": "Delver of Secrets",
                "mana_cost": "{U}",
                "type_line": "Creature — Human Wizard",
                "oracle_text": "At the beginning of your upkeep, look at the top card...",
                "colors": ["U"],
                "power": "1",
                "toughness": "1",
                "image_uris": image_uris(DELVER_ID),
            },
            {
                "name": "Insectile Aberration",
                "mana_cost": "",
                "type_line": "Creature — Human Insect",
                "oracle_text": "Flying",
                "colors": ["U"],
                "power": "3",
                "toughness": "2",
                "image_uris": image_uris(DELVER_ID, prefix="back"),
            },
        ],
    }


@pytest.fixture
def teferi_payload() -> dict[str, Any]:
    """Scryfall payload for a planeswalker that can be a commander."""
    return {
        "object": "card",
        "id": TEFERI_ID,
        "oracle_id": "7e6b5a4c-3d2e-4f1a-9b8c-7d6e5f4a3b2c",
        "name": "Teferi, Temporal Archmage",
        "layout": "normal",
        "mana_cost": "{4}{U}{U}",
        "cmc": 6.0,
        "type_line": "Legendary Planeswalker — Teferi",
        "oracle_text": "+1: Look at the top two cards of your library.\n"
        "Teferi, Temporal Archmage can be your commander.",
        "color_identity": ["U"],
        "loyalty": "5",
        "legalities": {"commander": "legal"},
        "set": "c14",
        "set_name": "Commander 2014",
        "rarity": "mythic",
        "prices": {"usd": "4.00"},
        "image_uris": image_uris(TEFERI_ID),
    }


@pytest.fixture
async def async_engine(tmp_path):
    """
    Create a file-backed SQLite engine for one test.

    Each session checks out its own connection, so concurrent image batches
    cannot roll back one another's writes.
    """
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'cards.db'}")
    await init_db(engine)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(async_engine)


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def scryfall_mock():
    """Mock the Scryfall API; unmatched requests fail the test."""
    with respx.mock(base_url=SCRYFALL_API, assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def scryfall_client(http_client: httpx.AsyncClient) -> ScryfallClient:
    """Scryfall client with pacing disabled so tests never sleep."""
    return ScryfallClient(http_client, base_url=SCRYFALL_API, rate_limiter=RateLimiter(0))


@pytest.fixture
def card_cache(session_factory, scryfall_client: ScryfallClient) -> CardCache:
    return CardCache(session_factory, scryfall_client, stale_after_days=30)


def scryfall_error(status: int, code: str, details: str = "") -> httpx.Response:
    """Build a Scryfall error object response."""
    return httpx.Response(
        status,
        json={"object": "error", "code": code, "status": status, "details": details},
    )


def collection_response(
    cards: list[dict[str, Any]], not_found: list[dict[str, str]] | None = None
) -> httpx.Response:
    return httpx.Response(
        200, json={"object": "list", "data": cards, "not_found": not_found or []}
    )


@pytest.fixture
def net():
    """Mock every outbound request by absolute URL; unmatched ones fail the test."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock


@pytest.fixture
def services(
    http_client: httpx.AsyncClient, scryfall_client: ScryfallClient, card_cache: CardCache
) -> Services:
    """Pipeline wired for tests: no pacing, no suggestion delay, storage unconfigured."""
    return Services(
        scryfall=scryfall_client,
        moxfield=MoxfieldClient(http_client, base_url=MOXFIELD_API),
        card_cache=card_cache,
        image_cache=ImageCache(card_cache, ObjectStorage(), http_client),
        resolver=ImportResolver(scryfall_client, card_cache, suggestion_delay=0),
    )


@pytest.fixture
async def api_client(services: Services, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async test client with test services and database session."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    del app.state.services
