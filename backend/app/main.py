"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.router import api_router
from app.config import settings
from app.core.errors import APIError, api_error_handler, validation_error_handler
from app.core.logging_middleware import RequestLoggingMiddleware
from tracker.storage import get_storage_area
from tracker.store import ProjectStore
from tracker.sync import MessageBus, PageSync, StateOutbox

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def attach_tracker(app: FastAPI, store: ProjectStore) -> None:
    """Wire a store to a fresh message bus and put both on ``app.state``."""
    bus = MessageBus()
    app.state.store = store
    app.state.bus = bus
    app.state.outbox = StateOutbox(bus)
    app.state.page_sync = PageSync(store, bus)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "store", None) is None:
        store = ProjectStore(get_storage_area())
        store.load()
        attach_tracker(app, store)
        logger.info(
            f"Loaded {len(store.projects)} projects ({settings.storage_backend} storage)"
        )
    # Initial snapshot for pollers
    app.state.page_sync.broadcast()
    app.state.bus.dispatch()
    yield


app = FastAPI(
    title=settings.app_name,
    description="Track reproducibility checklists and their change history",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_exception_handler(APIError, api_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

# Middleware, outermost first
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
async def health_check() -> dict[str, str | bool]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "model": settings.openrouter_model,
        "hasKey": bool(settings.openrouter_api_key),
    }
