"""Domain models for projects, checklist items and the change timeline.

These are the persisted and wire shapes. They serialize with camelCase
aliases (``itemId``, ``researchPlan``, ``maxTokens`` ...) so that the stored
blob and sync messages keep the layout the page and extension exchange, and
they accept either the alias or the field name on input.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

DEFAULT_CATEGORY = "General"


def ensure_unique_item_ids(items: list[ChecklistItem]) -> list[ChecklistItem]:
    """Raise ``ValueError`` if two items share an id."""
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise ValueError(f"duplicate item id: {item.id}")
        seen.add(item.id)
    return items


class CamelModel(BaseModel):
    """Base model with camelCase aliases on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict using wire aliases."""
        return self.model_dump(mode="json", by_alias=True)


class ChangeRecord(CamelModel):
    """A single change annotation attached to an item."""

    message: str
    timestamp: str


class ChecklistItem(CamelModel):
    """One trackable requirement with completion state and change history."""

    id: str
    text: str = ""
    category: str = DEFAULT_CATEGORY
    checked: bool = False
    notes: str = ""
    changes: list[ChangeRecord] = Field(default_factory=list)


class TimelineEvent(CamelModel):
    """Immutable record of one state change.

    ``item_text`` is a copy of the item's text at the moment the event was
    recorded, never a reference to the live item.
    """

    timestamp: str
    item_id: str
    item_text: str = ""
    message: str


class ProjectConfig(CamelModel):
    """Model parameters recorded with a project."""

    model_name: str = ""
    system_prompt: str = ""
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(900, ge=1)
    top_p: float = Field(1.0, ge=0.0, le=1.0)


class Project(CamelModel):
    """Unit of isolation: one research plan, its config, checklist and timeline."""

    id: str
    name: str
    research_plan: str = ""
    project_stage: str = ""
    config: ProjectConfig = Field(default_factory=ProjectConfig)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None
    revision: int = 0

    @field_validator("checklist")
    @classmethod
    def check_unique_item_ids(cls, items: list[ChecklistItem]) -> list[ChecklistItem]:
        return ensure_unique_item_ids(items)

    def find_item(self, item_id: str) -> ChecklistItem | None:
        """Return the checklist item with ``item_id``, if present."""
        for item in self.checklist:
            if item.id == item_id:
                return item
        return None

    def item_ids(self) -> set[str]:
        return {item.id for item in self.checklist}


__all__ = [
    "DEFAULT_CATEGORY",
    "ensure_unique_item_ids",
    "CamelModel",
    "ChangeRecord",
    "ChecklistItem",
    "Project",
    "ProjectConfig",
    "TimelineEvent",
]
