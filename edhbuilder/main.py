from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from importlib.metadata import version as pkg_version

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edhbuilder.api import cards_router, health_router, images_router, imports_router
from edhbuilder.api.deps import build_services
from edhbuilder.config import settings
from edhbuilder.db.database import async_session_factory, init_db

HTTP_TIMEOUT_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create tables, then share one HTTP client across all upstream calls."""
    await init_db()
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as http_client:
        app.state.services = build_services(http_client, async_session_factory)
        yield


app = FastAPI(
    title=settings.app_name,
    version=pkg_version("edhbuilder"),
    lifespan=lifespan,
)

app.include_router(cards_router)
app.include_router(health_router)
app.include_router(images_router)
app.include_router(imports_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Tighten in production
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
