"""Pydantic schemas for project, item and timeline endpoints."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracker.models import DEFAULT_CATEGORY, ChecklistItem, Project
from tracker.store import ItemAction, OperationResult


class _CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProjectCreateSchema(_CamelSchema):
    name: str = ""


class ProjectImportSchema(_CamelSchema):
    """An exported project to seed a new project from."""

    project: dict[str, Any]
    name: str | None = None


class ProjectSummarySchema(_CamelSchema):
    """Project entry in the project list."""

    id: str
    name: str
    project_stage: str = ""
    item_count: int = 0
    completed_count: int = 0
    event_count: int = 0
    updated_at: str | None = None
    revision: int = 0

    @classmethod
    def from_project(cls, project: Project) -> "ProjectSummarySchema":
        return cls(
            id=project.id,
            name=project.name,
            project_stage=project.project_stage,
            item_count=len(project.checklist),
            completed_count=sum(1 for item in project.checklist if item.checked),
            event_count=len(project.timeline),
            updated_at=project.updated_at,
            revision=project.revision,
        )


class ProjectListSchema(_CamelSchema):
    current_project_id: str | None = None
    projects: list[ProjectSummarySchema] = Field(default_factory=list)


class ItemCreateSchema(_CamelSchema):
    text: str = ""
    category: str = DEFAULT_CATEGORY


class ItemMutationSchema(_CamelSchema):
    """One item mutation.

    ``checked`` applies to ``toggle`` (omit it to flip). ``text`` is the note
    for ``edit_notes``/``commit_notes`` and the message for ``log``.
    """

    action: ItemAction
    checked: bool | None = None
    text: str | None = None


class StatusSchema(_CamelSchema):
    text: str
    level: str


class OperationResponseSchema(_CamelSchema):
    """Result of a store operation that succeeded."""

    ok: bool = True
    status: StatusSchema
    project: Project | None = None
    item: ChecklistItem | None = None

    @classmethod
    def from_result(cls, result: OperationResult) -> "OperationResponseSchema":
        return cls(
            ok=result.ok,
            status=StatusSchema(text=result.status.text, level=result.status.level),
            project=result.project,
            item=result.item,
        )
