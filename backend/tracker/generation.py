"""Checklist generation: plan validation, model call and store update.

The model call is the only awaited operation in the tracker. The target
project id is captured when the request starts, so a generation that
completes after the user switched projects still lands in the project it
was started for.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from tracker.models import Project, ProjectConfig
from tracker.normalizer import extract_items_payload
from tracker.openrouter.client import ChecklistGenerationError
from tracker.store import ProjectStore, StatusLevel, StatusMessage

logger = logging.getLogger(__name__)

MIN_PLAN_LENGTH = 25
DEFAULT_STAGE = "unspecified"


class ChecklistModel(Protocol):
    """Anything that can turn a research plan into raw checklist text."""

    model: str

    async def complete(
        self,
        research_plan: str,
        project_stage: str | None = None,
        config: ProjectConfig | None = None,
    ) -> str: ...


@dataclass
class GenerationResult:
    """Outcome of a generation request, with the HTTP status to report."""

    ok: bool
    status: StatusMessage
    status_code: int = 200
    project: Project | None = None
    error: str | None = None
    details: str | None = None
    raw: str | None = None


def validate_research_plan(research_plan: str | None) -> str | None:
    """Return an error message if the plan is too short to send, else None."""
    if not research_plan or len(research_plan.strip()) < MIN_PLAN_LENGTH:
        return f"Please provide a research plan with at least {MIN_PLAN_LENGTH} characters."
    return None


def build_checklist_response(
    raw: str,
    model: str,
    project_stage: str | None = None,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    """Shape a raw completion into the checklist endpoint response.

    ``checklist`` is the parsed item list when the model returned usable
    JSON and the raw text otherwise; the normalizer accepts either.
    """
    items = extract_items_payload(raw)
    generated_at = generated_at or datetime.now(timezone.utc)
    return {
        "checklist": items if items is not None else raw,
        "raw": raw,
        "generatedAt": generated_at.isoformat(),
        "model": model,
        "projectStage": project_stage or DEFAULT_STAGE,
    }


def _failure(
    status_code: int, error: str, details: str | None = None
) -> GenerationResult:
    return GenerationResult(
        ok=False,
        status=StatusMessage(
            f"Error: {error}" + (f" ({details})" if details else ""),
            StatusLevel.ERROR,
        ),
        status_code=status_code,
        error=error,
        details=details,
    )


async def generate_for_project(
    store: ProjectStore,
    model: ChecklistModel,
    project_id: str,
    research_plan: str,
    project_stage: str | None = None,
    config: ProjectConfig | Mapping[str, Any] | None = None,
) -> GenerationResult:
    """Generate a checklist for ``project_id`` and store it.

    Validation happens before any network call. On any failure the
    project's existing checklist and timeline are left untouched.
    """
    error = validate_research_plan(research_plan)
    if error:
        return _failure(400, error)
    if store.get_project(project_id) is None:
        return _failure(404, f"Project {project_id} not found.")

    try:
        project_config = (
            config if isinstance(config, ProjectConfig)
            else ProjectConfig.model_validate(config or {})
        )
    except ValidationError as e:
        return _failure(400, "Invalid model configuration.", str(e.errors()[0]["msg"]))

    plan = research_plan.strip()
    stage = (project_stage or "").strip() or DEFAULT_STAGE

    try:
        raw = await model.complete(plan, stage, project_config)
    except ChecklistGenerationError as e:
        return _failure(e.status_code, e.error, e.details)

    response = build_checklist_response(raw, model.model, stage)
    result = store.generate_checklist(
        project_id,
        response["checklist"],
        research_plan=plan,
        project_stage=stage,
        config=project_config,
    )
    if not result.ok:
        # Deleted while the request was in flight
        logger.warning(f"Discarding checklist for {project_id}: {result.status.text}")
        return _failure(404, result.status.text)

    return GenerationResult(
        ok=True,
        status=result.status,
        project=result.project,
        raw=raw,
    )


__all__ = [
    "DEFAULT_STAGE",
    "MIN_PLAN_LENGTH",
    "ChecklistModel",
    "GenerationResult",
    "build_checklist_response",
    "generate_for_project",
    "validate_research_plan",
]
