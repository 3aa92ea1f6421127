"""Prompt construction for checklist generation."""

from __future__ import annotations

import json

from tracker.models import ProjectConfig

BASE_SYSTEM_PROMPT = (
    "You are an expert in responsible AI and reproducibility. Produce concise, "
    "practical reporting checklists tailored to the research plan provided."
)

USER_PROMPT_TEMPLATE = """Given the research plan below, produce a JSON-only response with a top-level object:
{{
  "items": [ {{ "category": "<short category>", "text": "<actionable requirement (<=280 chars)>" }}, ... ]
}}

REQUIREMENTS:
1) OUTPUT must be valid JSON and only JSON. Do NOT include any markdown, explanation, or surrounding text.
2) Provide between 6 and 12 actionable checklist items tailored to the research plan.
3) Each item must include a concise "category" and a short "text" field (under 280 characters).
4) Do NOT include the static reproducibility-tracking items (they will be merged client-side).

Context:
- Project stage: {project_stage}
- Initial LLM config: {config_json}

Research plan:
{research_plan}

Return JSON only."""


def build_prompts(
    research_plan: str,
    project_stage: str | None = None,
    config: ProjectConfig | None = None,
) -> tuple[str, str]:
    """Return the ``(system, user)`` prompt pair for a research plan.

    The project's own system prompt, when set, is appended to the base one.
    """
    config = config or ProjectConfig()
    system = "\n\n".join(
        part for part in (BASE_SYSTEM_PROMPT, config.system_prompt.strip()) if part
    )
    user = USER_PROMPT_TEMPLATE.format(
        project_stage=(project_stage or "").strip() or "unspecified",
        config_json=json.dumps(config.to_wire()),
        research_plan=research_plan,
    )
    return system, user
