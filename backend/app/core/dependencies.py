"""Request dependencies for the tracker state held on ``app.state``."""

from collections.abc import Generator

from fastapi import Request

from app.core.errors import APIError
from tracker.openrouter.client import OpenRouterClient
from tracker.store import ProjectStore
from tracker.sync import MessageBus, PageSync, StateOutbox


def get_store(request: Request) -> Generator[ProjectStore, None, None]:
    """Dependency for the project store.

    Pending sync messages produced by the request are delivered once the
    handler is done.
    """
    try:
        yield request.app.state.store
    finally:
        bus: MessageBus = request.app.state.bus
        bus.dispatch()


def get_page_sync(request: Request) -> PageSync:
    return request.app.state.page_sync


def get_outbox(request: Request) -> StateOutbox:
    return request.app.state.outbox


def make_model_client() -> OpenRouterClient:
    """Build the OpenRouter client, reporting a missing key as a 500."""
    try:
        return OpenRouterClient()
    except ValueError as e:
        raise APIError(500, "Missing OPENROUTER_API_KEY. Set it in the environment.") from e
