"""Pydantic schemas for the checklist generation endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracker.models import ProjectConfig


class ChecklistRequestSchema(BaseModel):
    """Body of a checklist generation request.

    The research plan length is checked by the handler so that a short plan
    is reported as ``{"error": ...}`` rather than a validation error list.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    research_plan: str = Field("", description="Research plan / project brief")
    project_stage: str | None = Field(None, description="e.g. planning, pilot")
    config: ProjectConfig | None = None


class ChecklistResponseSchema(BaseModel):
    """Generated checklist as returned by the remote model.

    ``checklist`` is the parsed item list when the model returned JSON and
    the raw completion text otherwise.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    checklist: list[Any] | str
    raw: str
    generated_at: str
    model: str
    project_stage: str


class ErrorSchema(BaseModel):
    """Error body returned by every endpoint."""

    error: str
    details: str | None = None
