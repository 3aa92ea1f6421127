"""Project, checklist item and timeline endpoints."""

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query, Response, status

from app.core.dependencies import get_store, make_model_client
from app.core.errors import APIError, raise_for_result
from app.schemas.checklist import ChecklistRequestSchema
from app.schemas.project import (
    ItemCreateSchema,
    ItemMutationSchema,
    OperationResponseSchema,
    ProjectCreateSchema,
    ProjectImportSchema,
    ProjectListSchema,
    ProjectSummarySchema,
    StatusSchema,
)
from tracker.generation import generate_for_project, validate_research_plan
from tracker.models import Project
from tracker.store import ItemChange, ProjectStore
from tracker.timeline import (
    project_to_json,
    sort_events,
    timeline_to_json,
    timeline_to_markdown,
)

router = APIRouter()

ExportFormat = Literal["project", "timeline-json", "timeline-markdown"]


def _project_or_404(store: ProjectStore, project_id: str) -> Project:
    project = store.get_project(project_id)
    if project is None:
        raise APIError(404, f"Project {project_id} not found.")
    return project


@router.get("", response_model=ProjectListSchema, response_model_by_alias=True)
def list_projects(store: ProjectStore = Depends(get_store)) -> ProjectListSchema:
    """List all projects with checklist progress."""
    return ProjectListSchema(
        current_project_id=store.current_project_id,
        projects=[ProjectSummarySchema.from_project(p) for p in store.list_projects()],
    )


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def create_project(
    body: ProjectCreateSchema, store: ProjectStore = Depends(get_store)
) -> OperationResponseSchema:
    """Create an empty project and make it current."""
    result = store.create_project(body.name)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.post(
    "/import",
    status_code=status.HTTP_201_CREATED,
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def import_project(
    body: ProjectImportSchema, store: ProjectStore = Depends(get_store)
) -> OperationResponseSchema:
    """Create a new project from a whole-project export."""
    result = store.import_project(body.project, name=body.name)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.get("/{project_id}")
def get_project(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> dict[str, Any]:
    """Get a project with its checklist and timeline."""
    return _project_or_404(store, project_id).to_wire()


@router.post(
    "/{project_id}/activate",
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def activate_project(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> OperationResponseSchema:
    """Make a project current."""
    result = store.switch_project(project_id)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.delete(
    "/{project_id}",
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def delete_project(
    project_id: str, store: ProjectStore = Depends(get_store)
) -> OperationResponseSchema:
    """Delete a project."""
    result = store.delete_project(project_id)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.post(
    "/{project_id}/generate",
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
async def generate_checklist(
    project_id: str,
    body: ChecklistRequestSchema,
    store: ProjectStore = Depends(get_store),
) -> OperationResponseSchema:
    """Generate a checklist for a project from its research plan.

    The project's existing checklist and timeline survive any failure.
    """
    error = validate_research_plan(body.research_plan)
    if error:
        raise APIError(400, error)
    _project_or_404(store, project_id)

    client = make_model_client()
    result = await generate_for_project(
        store,
        client,
        project_id,
        body.research_plan,
        body.project_stage,
        body.config,
    )
    if not result.ok:
        raise APIError(
            result.status_code, result.error or result.status.text, result.details
        )
    return OperationResponseSchema(
        ok=True,
        status=StatusSchema(text=result.status.text, level=result.status.level),
        project=result.project,
    )


@router.post(
    "/{project_id}/items",
    status_code=status.HTTP_201_CREATED,
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def add_item(
    project_id: str, body: ItemCreateSchema, store: ProjectStore = Depends(get_store)
) -> OperationResponseSchema:
    """Add a custom item to the top of a project's checklist."""
    _project_or_404(store, project_id)
    result = store.add_custom_item(body.text, body.category, project_id=project_id)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.patch(
    "/{project_id}/items/{item_id}",
    response_model=OperationResponseSchema,
    response_model_by_alias=True,
)
def mutate_item(
    project_id: str,
    item_id: str,
    body: ItemMutationSchema,
    store: ProjectStore = Depends(get_store),
) -> OperationResponseSchema:
    """Toggle, annotate, log against or remove a checklist item."""
    _project_or_404(store, project_id)
    change = ItemChange(action=body.action, checked=body.checked, text=body.text)
    result = store.mutate_item(project_id, item_id, change)
    raise_for_result(result)
    return OperationResponseSchema.from_result(result)


@router.get("/{project_id}/timeline")
def get_timeline(
    project_id: str,
    limit: int | None = Query(None, ge=1, description="Most recent N events"),
    store: ProjectStore = Depends(get_store),
) -> list[dict[str, Any]]:
    """Timeline events, newest first."""
    project = _project_or_404(store, project_id)
    events = sort_events(project.timeline)
    if limit is not None:
        events = events[:limit]
    return [event.to_wire() for event in events]


@router.get("/{project_id}/export")
def export_project(
    project_id: str,
    export_format: ExportFormat = Query("project", alias="format"),
    store: ProjectStore = Depends(get_store),
) -> Response:
    """Download a project or its timeline as an attachment."""
    project = _project_or_404(store, project_id)
    if export_format == "project":
        content = project_to_json(project)
        media_type, suffix = "application/json", "project.json"
    elif export_format == "timeline-json":
        content = timeline_to_json(project.timeline)
        media_type, suffix = "application/json", "timeline.json"
    else:
        content = timeline_to_markdown(project.timeline, title=f"{project.name} timeline")
        media_type, suffix = "text/markdown", "timeline.md"

    filename = f"{project.id}-{suffix}"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
