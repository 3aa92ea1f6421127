"""Multi-project store with an append-only change timeline.

The store owns every project by value. All operations are synchronous
read-modify-write steps on the in-memory map, followed by a fire-and-forget
write to the storage area and a broadcast to subscribers (the sync layer).
Operations never raise for user errors: they return an ``OperationResult``
carrying a user-facing ``StatusMessage``.

Persisted layout:
    genai_projects          JSON object {project_id: Project}
    genai_current_project   the current project id (absent when none)
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import TypeAdapter, ValidationError

from tracker.models import (
    DEFAULT_CATEGORY,
    ChangeRecord,
    ChecklistItem,
    Project,
    ProjectConfig,
    TimelineEvent,
    ensure_unique_item_ids,
)
from tracker.normalizer import new_item_id, normalize_checklist, static_items
from tracker.storage import StorageArea
from tracker.timeline import sort_events

logger = logging.getLogger(__name__)

PROJECTS_KEY = "genai_projects"
CURRENT_PROJECT_KEY = "genai_current_project"

MSG_ITEM_ADDED = "Item added"
MSG_ITEM_COMPLETED = "Item completed"
MSG_ITEM_UNCOMPLETED = "Item uncompleted"
MSG_ITEM_REMOVED = "Item removed from checklist"

_projects_adapter = TypeAdapter(dict[str, Project])

Clock = Callable[[], datetime]
StoreListener = Callable[["ProjectStore"], None]


class StatusLevel(StrEnum):
    """Severity of a user-facing status message."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StatusMessage:
    """Transient message shown to the user after an operation."""

    text: str
    level: StatusLevel = StatusLevel.INFO


@dataclass
class OperationResult:
    """Outcome of a store operation.

    ``not_found`` distinguishes an absent project or item from other
    validation failures so callers can map it to a 404.
    """

    ok: bool
    status: StatusMessage
    project: Project | None = None
    item: ChecklistItem | None = None
    not_found: bool = False

    @classmethod
    def success(
        cls,
        text: str,
        project: Project | None = None,
        item: ChecklistItem | None = None,
    ) -> OperationResult:
        return cls(True, StatusMessage(text, StatusLevel.SUCCESS), project, item)

    @classmethod
    def unchanged(cls, text: str, project: Project | None = None) -> OperationResult:
        return cls(True, StatusMessage(text, StatusLevel.INFO), project)

    @classmethod
    def failure(cls, text: str, not_found: bool = False) -> OperationResult:
        return cls(False, StatusMessage(text, StatusLevel.ERROR), not_found=not_found)


class ItemAction(StrEnum):
    """Mutations that can be applied to a checklist item."""

    TOGGLE = "toggle"
    EDIT_NOTES = "edit_notes"
    COMMIT_NOTES = "commit_notes"
    LOG = "log"
    REMOVE = "remove"


@dataclass
class ItemChange:
    """A single item mutation.

    ``checked`` is only read by TOGGLE (``None`` flips the current state).
    ``text`` carries the note draft for EDIT_NOTES / COMMIT_NOTES and the
    message for LOG.
    """

    action: ItemAction
    checked: bool | None = None
    text: str | None = None


class ProjectStore:
    """Keyed collection of projects plus the current-project pointer."""

    def __init__(self, storage: StorageArea, clock: Clock | None = None) -> None:
        self.storage = storage
        self.projects: dict[str, Project] = {}
        self.current_project_id: str | None = None
        self._clock: Clock = clock or datetime.now
        self._listeners: list[StoreListener] = []
        self._last_project_ms = 0

    # =========================================================================
    # Persistence
    # =========================================================================

    def load(self) -> None:
        """Load state from storage, resetting to empty on any corruption."""
        self.projects = {}
        self.current_project_id = None

        try:
            blob = self.storage.get_text(PROJECTS_KEY)
            pointer = self.storage.get_text(CURRENT_PROJECT_KEY)
        except Exception as e:
            logger.warning(f"Could not read project storage, starting empty: {e}")
            return

        if blob:
            try:
                self.projects = _projects_adapter.validate_json(blob)
            except ValidationError as e:
                logger.warning(
                    f"Stored projects are corrupt, starting empty "
                    f"({e.error_count()} errors)"
                )
                self.projects = {}
                return

        # Stored keys win over any id inside the blob
        for project_id, project in self.projects.items():
            project.id = project_id

        pointer = (pointer or "").strip()
        if pointer and pointer in self.projects:
            self.current_project_id = pointer
        elif pointer:
            logger.info(f"Dropping pointer to missing project {pointer}")

        logger.info(
            f"Loaded {len(self.projects)} projects "
            f"(current: {self.current_project_id or 'none'})"
        )

    def persist(self) -> None:
        """Write the project map and pointer. Failures are logged, not raised."""
        try:
            blob = json.dumps(
                {pid: project.to_wire() for pid, project in self.projects.items()},
                ensure_ascii=False,
            )
            self.storage.put_text(PROJECTS_KEY, blob)
            if self.current_project_id:
                self.storage.put_text(CURRENT_PROJECT_KEY, self.current_project_id)
            else:
                self.storage.remove(CURRENT_PROJECT_KEY)
        except Exception as e:
            logger.warning(f"Failed to persist project store: {e}")

    def subscribe(self, listener: StoreListener) -> None:
        """Register a callback invoked after every broadcasting mutation."""
        self._listeners.append(listener)

    def _broadcast(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Store listener failed")

    def _commit(self, broadcast: bool = True) -> None:
        self.persist()
        if broadcast:
            self._broadcast()

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def current_project(self) -> Project | None:
        if self.current_project_id is None:
            return None
        return self.projects.get(self.current_project_id)

    def get_project(self, project_id: str) -> Project | None:
        return self.projects.get(project_id)

    def list_projects(self) -> list[Project]:
        """Projects in creation order."""
        return list(self.projects.values())

    def list_events(self, project_id: str) -> list[TimelineEvent]:
        """Timeline events for a project, newest first (empty if absent)."""
        project = self.projects.get(project_id)
        if project is None:
            return []
        return sort_events(project.timeline)

    def _resolve(self, project_id: str | None) -> Project | None:
        if project_id is None:
            return self.current_project
        return self.projects.get(project_id)

    # =========================================================================
    # Project lifecycle
    # =========================================================================

    def create_project(self, name: str) -> OperationResult:
        """Create an empty project and make it current."""
        name = (name or "").strip()
        if not name:
            return OperationResult.failure("Please enter a project name.")

        now = self._now()
        project = Project(
            id=self._allocate_project_id(),
            name=name,
            created_at=now,
            updated_at=now,
        )
        self.projects[project.id] = project
        self.current_project_id = project.id
        logger.info(f"Created project {project.id} ({name!r})")
        self._commit()
        return OperationResult.success(f"Project '{name}' created.", project)

    def import_project(
        self, data: str | Mapping[str, Any] | Project, name: str | None = None
    ) -> OperationResult:
        """Seed a new project from an exported project.

        The checklist and timeline are reproduced exactly; the project gets a
        fresh id and becomes current.
        """
        if isinstance(data, Project):
            payload: Any = data.to_wire()
        elif isinstance(data, str):
            try:
                payload = json.loads(data)
            except ValueError:
                return OperationResult.failure("Import file is not valid JSON.")
        else:
            payload = dict(data)

        if not isinstance(payload, dict):
            return OperationResult.failure("Import file must contain a project object.")

        now = self._now()
        payload = dict(payload)
        payload.pop("exportedAt", None)
        payload["id"] = self._allocate_project_id()
        payload["name"] = (name or payload.get("name") or "").strip() or "Imported project"
        payload["createdAt"] = now
        payload["updatedAt"] = now
        payload["revision"] = 0

        try:
            project = Project.model_validate(payload)
        except ValidationError as e:
            logger.info(f"Rejected project import: {e.error_count()} validation errors")
            return OperationResult.failure("Import file is not a valid project.")

        self.projects[project.id] = project
        self.current_project_id = project.id
        logger.info(f"Imported project {project.id} ({project.name!r})")
        self._commit()
        return OperationResult.success(f"Project '{project.name}' imported.", project)

    def switch_project(self, project_id: str) -> OperationResult:
        """Make an existing project current."""
        project = self.projects.get(project_id)
        if project is None:
            return OperationResult.failure(
                f"Project {project_id} not found.", not_found=True
            )
        self.current_project_id = project_id
        self._commit()
        return OperationResult.success(f"Switched to '{project.name}'.", project)

    def delete_project(self, project_id: str) -> OperationResult:
        """Remove a project. Confirmation is the caller's responsibility."""
        project = self.projects.pop(project_id, None)
        if project is None:
            return OperationResult.failure(
                f"Project {project_id} not found.", not_found=True
            )
        if self.current_project_id == project_id:
            self.current_project_id = None
        logger.info(f"Deleted project {project_id} ({project.name!r})")
        self._commit()
        return OperationResult.success(f"Project '{project.name}' deleted.", project)

    # =========================================================================
    # Checklist operations
    # =========================================================================

    def generate_checklist(
        self,
        project_id: str,
        checklist_payload: Any,
        *,
        research_plan: str | None = None,
        project_stage: str | None = None,
        config: ProjectConfig | Mapping[str, Any] | None = None,
    ) -> OperationResult:
        """Replace a project's checklist with freshly generated items.

        The normalized model output is followed by the static tracking items.
        The timeline is reset: a new checklist starts a new tracking epoch.
        """
        project = self.projects.get(project_id)
        if project is None:
            return OperationResult.failure(
                f"Project {project_id} not found.", not_found=True
            )

        if config is not None:
            try:
                project.config = ProjectConfig.model_validate(
                    config.to_wire() if isinstance(config, ProjectConfig) else config
                )
            except ValidationError:
                return OperationResult.failure("Invalid model configuration.")
        if research_plan is not None:
            project.research_plan = research_plan
        if project_stage is not None:
            project.project_stage = project_stage

        generated = normalize_checklist(checklist_payload)
        project.checklist = generated + static_items()
        project.timeline = []
        self._touch(project)
        logger.info(
            f"Generated checklist for {project_id}: "
            f"{len(generated)} items + {len(project.checklist) - len(generated)} static"
        )
        self._commit()
        return OperationResult.success("Checklist generated successfully!", project)

    def add_custom_item(
        self,
        text: str,
        category: str = DEFAULT_CATEGORY,
        project_id: str | None = None,
    ) -> OperationResult:
        """Prepend a manually added item and record an "Item added" event."""
        text = (text or "").strip()
        if not text:
            return OperationResult.failure("Please enter the item text.")
        project = self._resolve(project_id)
        if project is None:
            return OperationResult.failure("No active project.", not_found=True)

        taken = project.item_ids()
        item_id = new_item_id("custom")
        while item_id in taken:
            item_id = new_item_id("custom")

        item = ChecklistItem(
            id=item_id,
            text=text,
            category=(category or "").strip() or DEFAULT_CATEGORY,
        )
        project.checklist.insert(0, item)
        self._record_change(project, item, MSG_ITEM_ADDED)
        self._commit()
        return OperationResult.success("Item added.", project, item)

    def mutate_item(
        self, project_id: str | None, item_id: str, change: ItemChange
    ) -> OperationResult:
        """Apply one mutation to a checklist item.

        Every mutation except EDIT_NOTES appends exactly one timeline event
        (or none, when it turns out to be a no-op).
        """
        project = self._resolve(project_id)
        if project is None:
            return OperationResult.failure("No active project.", not_found=True)
        item = project.find_item(item_id)
        if item is None:
            return OperationResult.failure(f"Item {item_id} not found.", not_found=True)

        if change.action == ItemAction.TOGGLE:
            checked = (not item.checked) if change.checked is None else change.checked
            if checked == item.checked:
                return OperationResult.unchanged("Item unchanged.", project)
            item.checked = checked
            message = MSG_ITEM_COMPLETED if checked else MSG_ITEM_UNCOMPLETED
            self._record_change(project, item, message)
            self._commit()
            return OperationResult.success(message + ".", project, item)

        if change.action == ItemAction.EDIT_NOTES:
            item.notes = change.text or ""
            self._commit(broadcast=False)
            return OperationResult.unchanged("Draft saved.", project)

        if change.action == ItemAction.COMMIT_NOTES:
            value = item.notes if change.text is None else change.text
            if not value.strip():
                return OperationResult.unchanged("No notes to record.", project)
            self._record_change(project, item, f'Notes updated: "{value}"')
            item.notes = ""
            self._commit()
            return OperationResult.success("Notes recorded.", project, item)

        if change.action == ItemAction.LOG:
            message = (change.text or "").strip()
            if not message:
                return OperationResult.failure("Please enter the change details.")
            self._record_change(project, item, message)
            self._commit()
            return OperationResult.success("Change logged.", project, item)

        if change.action == ItemAction.REMOVE:
            self._record_change(project, item, MSG_ITEM_REMOVED)
            project.checklist = [i for i in project.checklist if i.id != item_id]
            self._commit()
            return OperationResult.success("Item removed.", project, item)

        return OperationResult.failure(f"Unsupported action: {change.action}")

    # =========================================================================
    # Sync entry point
    # =========================================================================

    def replace_project_state(
        self,
        project_id: str,
        checklist: Sequence[ChecklistItem],
        timeline: Sequence[TimelineEvent],
        revision: int | None = None,
    ) -> OperationResult:
        """Replace a project's checklist and timeline wholesale.

        Snapshots older than the held revision are rejected. The change is
        persisted but not re-broadcast, so a snapshot never echoes back to
        the context it came from.
        """
        project = self.projects.get(project_id)
        if project is None:
            return OperationResult.failure(
                f"Project {project_id} not found.", not_found=True
            )
        if revision is not None and revision < project.revision:
            return OperationResult.failure(
                f"Stale snapshot for {project_id} "
                f"(revision {revision} < {project.revision})."
            )
        try:
            ensure_unique_item_ids(list(checklist))
        except ValueError as e:
            return OperationResult.failure(f"Rejected snapshot for {project_id}: {e}.")

        project.checklist = [item.model_copy(deep=True) for item in checklist]
        project.timeline = [event.model_copy(deep=True) for event in timeline]
        project.revision = revision if revision is not None else project.revision + 1
        project.updated_at = self._now()
        self._commit(broadcast=False)
        return OperationResult.success("Project updated from extension.", project)

    # =========================================================================
    # Internal
    # =========================================================================

    def _record_change(
        self, project: Project, item: ChecklistItem, message: str
    ) -> TimelineEvent:
        timestamp = self._now()
        item.changes.append(ChangeRecord(message=message, timestamp=timestamp))
        event = TimelineEvent(
            timestamp=timestamp,
            item_id=item.id,
            item_text=item.text,
            message=message,
        )
        project.timeline.append(event)
        self._touch(project)
        return event

    def _touch(self, project: Project) -> None:
        project.revision += 1
        project.updated_at = self._now()

    def _now(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def _allocate_project_id(self) -> str:
        """Timestamp-derived id, strictly increasing within this store."""
        ms = max(int(self._clock().timestamp() * 1000), self._last_project_ms + 1)
        while f"proj-{ms}" in self.projects:
            ms += 1
        self._last_project_ms = ms
        return f"proj-{ms}"


__all__ = [
    "CURRENT_PROJECT_KEY",
    "PROJECTS_KEY",
    "ItemAction",
    "ItemChange",
    "OperationResult",
    "ProjectStore",
    "StatusLevel",
    "StatusMessage",
]
