"""Checklist-state engine for the GenAI reproducibility tracker.

normalizer → store (+ timeline) → sync, with the OpenRouter client and
generation flow feeding the store.
"""

from tracker.models import (
    ChangeRecord,
    ChecklistItem,
    Project,
    ProjectConfig,
    TimelineEvent,
)
from tracker.normalizer import normalize_checklist
from tracker.store import ItemAction, ItemChange, OperationResult, ProjectStore

__all__ = [
    "ChangeRecord",
    "ChecklistItem",
    "ItemAction",
    "ItemChange",
    "OperationResult",
    "Project",
    "ProjectConfig",
    "ProjectStore",
    "TimelineEvent",
    "normalize_checklist",
]
