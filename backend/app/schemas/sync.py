"""Pydantic schemas for the sync endpoints."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tracker.sync import StateMessage


class SyncStateSchema(BaseModel):
    """Latest broadcast snapshot and its sequence number."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sequence: int
    message: StateMessage


class SyncAcceptedSchema(BaseModel):
    """Whether an inbound message was applied to the store."""

    accepted: bool
