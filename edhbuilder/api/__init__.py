from edhbuilder.api.cards import router as cards_router
from edhbuilder.api.health import router as health_router
from edhbuilder.api.images import router as images_router
from edhbuilder.api.imports import router as imports_router

__all__ = [
    "cards_router",
    "health_router",
    "images_router",
    "imports_router",
]
