"""Sync endpoints for contexts that reach the tracker over HTTP."""

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from app.core.dependencies import get_outbox, get_page_sync, get_store
from app.schemas.sync import SyncAcceptedSchema, SyncStateSchema
from tracker.store import ProjectStore
from tracker.sync import PageSync, StateOutbox, build_state_message

router = APIRouter()


@router.get("/state", response_model=SyncStateSchema, response_model_by_alias=True)
def get_state(
    outbox: StateOutbox = Depends(get_outbox),
    store: ProjectStore = Depends(get_store),
) -> SyncStateSchema:
    """The latest ``state`` snapshot.

    Falls back to a fresh snapshot when nothing has been broadcast yet.
    """
    message = outbox.latest or build_state_message(store)
    return SyncStateSchema(sequence=outbox.sequence, message=message)


@router.post(
    "/messages",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=SyncAcceptedSchema,
)
def post_message(
    payload: Any = Body(...),
    page_sync: PageSync = Depends(get_page_sync),
    store: ProjectStore = Depends(get_store),
) -> SyncAcceptedSchema:
    """Apply an inbound sync message.

    Foreign, malformed and stale messages are dropped; the response only
    reports whether the store changed.
    """
    return SyncAcceptedSchema(accepted=page_sync.receive(payload))
