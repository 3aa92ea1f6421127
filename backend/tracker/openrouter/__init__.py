"""OpenRouter model access for checklist generation."""

from tracker.openrouter.client import ChecklistGenerationError, OpenRouterClient
from tracker.openrouter.prompts import build_prompts

__all__ = ["ChecklistGenerationError", "OpenRouterClient", "build_prompts"]
