"""Checklist generation endpoint (the remote-model boundary)."""

from typing import Any

from fastapi import APIRouter

from app.core.dependencies import make_model_client
from app.core.errors import APIError
from app.schemas.checklist import ChecklistRequestSchema, ChecklistResponseSchema
from tracker.generation import build_checklist_response, validate_research_plan
from tracker.openrouter.client import ChecklistGenerationError

router = APIRouter()


@router.post("", response_model=ChecklistResponseSchema, response_model_by_alias=True)
async def create_checklist(body: ChecklistRequestSchema) -> dict[str, Any]:
    """Generate a checklist from a research plan without touching any project."""
    error = validate_research_plan(body.research_plan)
    if error:
        raise APIError(400, error)

    client = make_model_client()
    stage = (body.project_stage or "").strip() or None
    try:
        raw = await client.complete(body.research_plan.strip(), stage, body.config)
    except ChecklistGenerationError as e:
        raise APIError(e.status_code, e.error, e.details) from e

    return build_checklist_response(raw, client.model, stage)
