"""Pydantic schemas module.

This module contains Pydantic models used for API request/response
validation. Domain shapes (projects, items, timeline events, sync messages)
live in the ``tracker`` package and are reused here as-is.

Naming convention:
- Schema suffix to distinguish from domain models
- Wire fields are camelCase; Python attributes are snake_case
"""

from app.schemas.checklist import (
    ChecklistRequestSchema,
    ChecklistResponseSchema,
    ErrorSchema,
)
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
from app.schemas.sync import SyncAcceptedSchema, SyncStateSchema

__all__ = [
    "ChecklistRequestSchema",
    "ChecklistResponseSchema",
    "ErrorSchema",
    "ItemCreateSchema",
    "ItemMutationSchema",
    "OperationResponseSchema",
    "ProjectCreateSchema",
    "ProjectImportSchema",
    "ProjectListSchema",
    "ProjectSummarySchema",
    "StatusSchema",
    "SyncAcceptedSchema",
    "SyncStateSchema",
]
