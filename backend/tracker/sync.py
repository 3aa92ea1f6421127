"""Cross-context state sync between the tracker and the extension mirror.

Two contexts each own a persistent store and talk only through
fire-and-forget messages carrying whole-state snapshots:

    state   tracker -> extension   full store snapshot after every mutation
    update  extension -> tracker   one project's checklist + timeline

Messages are a tagged union discriminated by ``type``; the ``source`` literal
rejects anything posted by a foreign sender. Payloads failing validation are
dropped silently. Delivery is unordered with no acknowledgement or retry, so
the protocol is last-write-wins per delivered snapshot. Each project carries
a monotonic ``revision`` so a receiver can refuse snapshots older than the
state it already holds.
"""

from __future__ import annotations

import json
import logging
from collections import deque
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Annotated, Any, Literal, assert_never

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from tracker.models import (
    CamelModel,
    ChangeRecord,
    ChecklistItem,
    Project,
    ProjectConfig,
    TimelineEvent,
    ensure_unique_item_ids,
)
from tracker.storage import StorageArea
from tracker.store import (
    MSG_ITEM_COMPLETED,
    MSG_ITEM_UNCOMPLETED,
    OperationResult,
    ProjectStore,
)

logger = logging.getLogger(__name__)

PAGE_SOURCE = "genai-tracker"
EXTENSION_SOURCE = "genai-extension"
MIRROR_KEY = "genai_state"


# =============================================================================
# Messages
# =============================================================================


class StateData(CamelModel):
    """Snapshot of the tracker store, focused on the current project."""

    current_project_id: str | None = None
    projects: dict[str, Project] = Field(default_factory=dict)
    project_id: str | None = None
    project_name: str | None = None
    config: ProjectConfig | None = None
    checklist: list[ChecklistItem] | None = None
    timeline: list[TimelineEvent] | None = None
    revision: int | None = None

    @field_validator("checklist")
    @classmethod
    def check_unique_item_ids(
        cls, items: list[ChecklistItem] | None
    ) -> list[ChecklistItem] | None:
        return None if items is None else ensure_unique_item_ids(items)


class StateMessage(CamelModel):
    source: Literal["genai-tracker"]
    type: Literal["state"]
    data: StateData


class UpdateData(CamelModel):
    """One project's checklist and timeline as edited in the extension."""

    project_id: str | None = None
    checklist: list[ChecklistItem] = Field(default_factory=list)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    revision: int | None = None

    @field_validator("checklist")
    @classmethod
    def check_unique_item_ids(cls, items: list[ChecklistItem]) -> list[ChecklistItem]:
        return ensure_unique_item_ids(items)


class UpdateMessage(CamelModel):
    source: Literal["genai-extension"]
    type: Literal["update"]
    data: UpdateData


SyncMessage = Annotated[StateMessage | UpdateMessage, Field(discriminator="type")]

_message_adapter: TypeAdapter[StateMessage | UpdateMessage] = TypeAdapter(SyncMessage)


def parse_message(raw: Any) -> StateMessage | UpdateMessage | None:
    """Validate an inbound payload, returning ``None`` for anything foreign."""
    try:
        if isinstance(raw, (str, bytes)):
            return _message_adapter.validate_json(raw)
        return _message_adapter.validate_python(raw)
    except ValidationError as e:
        logger.debug(f"Dropping unrecognised sync message ({e.error_count()} errors)")
        return None


def build_state_message(store: ProjectStore) -> StateMessage:
    """Snapshot the store as a ``state`` message (deep copies, by value)."""
    projects = {
        pid: project.model_copy(deep=True) for pid, project in store.projects.items()
    }
    current = projects.get(store.current_project_id or "")
    if current is None:
        return StateMessage(
            source=PAGE_SOURCE,
            type="state",
            data=StateData(current_project_id=None, projects=projects),
        )
    return StateMessage(
        source=PAGE_SOURCE,
        type="state",
        data=StateData(
            current_project_id=current.id,
            projects=projects,
            project_id=current.id,
            project_name=current.name,
            config=current.config,
            checklist=current.checklist,
            timeline=current.timeline,
            revision=current.revision,
        ),
    )


# =============================================================================
# Channel
# =============================================================================

MessageHandler = Callable[[Any], Any]


class MessageBus:
    """In-process stand-in for ``window.postMessage`` between contexts.

    ``post`` serializes the payload immediately, so receivers always get
    their own copy. Nothing is delivered until ``dispatch`` runs, and a
    message is never delivered back to its sender.
    """

    def __init__(self) -> None:
        self._pending: deque[tuple[str, str]] = deque()
        self._subscribers: dict[str, MessageHandler] = {}
        self._drop: Callable[[dict[str, Any]], bool] | None = None

    def subscribe(self, name: str, handler: MessageHandler) -> None:
        self._subscribers[name] = handler

    def unsubscribe(self, name: str) -> None:
        self._subscribers.pop(name, None)

    def set_drop_filter(self, predicate: Callable[[dict[str, Any]], bool] | None) -> None:
        """Install a predicate; matching messages are lost in transit."""
        self._drop = predicate

    @property
    def pending(self) -> int:
        return len(self._pending)

    def post(self, sender: str, payload: BaseModel | Mapping[str, Any]) -> None:
        if isinstance(payload, CamelModel):
            data = payload.to_wire()
        elif isinstance(payload, BaseModel):
            data = payload.model_dump(mode="json")
        else:
            data = dict(payload)
        self._pending.append((sender, json.dumps(data, ensure_ascii=False)))

    def dispatch(self) -> int:
        """Deliver every pending message, including ones posted meanwhile.

        Returns the number of messages taken off the queue.
        """
        delivered = 0
        while self._pending:
            sender, body = self._pending.popleft()
            delivered += 1
            if self._should_drop(sender, body):
                logger.debug(f"Message from {sender} lost in transit")
                continue
            for name, handler in list(self._subscribers.items()):
                if name == sender:
                    continue
                try:
                    handler(json.loads(body))
                except Exception:
                    logger.exception(f"Sync handler {name} failed")
        return delivered

    def _should_drop(self, sender: str, body: str) -> bool:
        """Apply the drop filter; a failing filter lets the message through."""
        if self._drop is None:
            return False
        try:
            return bool(self._drop(json.loads(body)))
        except Exception:
            logger.exception(f"Drop filter failed on message from {sender}")
            return False


class StateOutbox:
    """Bus subscriber that keeps the latest ``state`` snapshot for polling.

    Stands in for an extension that reaches the tracker over HTTP instead of
    ``postMessage``: it reads whatever was broadcast last. ``sequence``
    increases with every snapshot received.
    """

    def __init__(self, bus: MessageBus, name: str = "outbox") -> None:
        self.latest: StateMessage | None = None
        self.sequence = 0
        bus.subscribe(name, self.receive)

    def receive(self, raw: Any) -> bool:
        message = parse_message(raw)
        if not isinstance(message, StateMessage):
            return False
        self.latest = message
        self.sequence += 1
        return True


# =============================================================================
# Tracker side
# =============================================================================


class PageSync:
    """Connects a ``ProjectStore`` to the bus.

    Broadcasts a ``state`` snapshot after every store mutation and applies
    inbound ``update`` messages to the matching project.
    """

    def __init__(
        self,
        store: ProjectStore,
        bus: MessageBus,
        name: str = "page",
        on_render: Callable[[Project], None] | None = None,
    ) -> None:
        self.store = store
        self.bus = bus
        self.name = name
        self.on_render = on_render
        store.subscribe(self._on_store_change)
        bus.subscribe(name, self.receive)

    def broadcast(self) -> None:
        self.bus.post(self.name, build_state_message(self.store))

    def _on_store_change(self, store: ProjectStore) -> None:
        self.broadcast()

    def receive(self, raw: Any) -> bool:
        """Handle one inbound message. Returns True if the store changed."""
        message = parse_message(raw)
        match message:
            case None:
                return False
            case StateMessage():
                # Our own message kind; never applied here
                return False
            case UpdateMessage():
                return self._apply_update(message.data)
            case _:
                assert_never(message)

    def _apply_update(self, data: UpdateData) -> bool:
        if not data.project_id:
            logger.debug("Dropping update without a project id")
            return False
        result = self.store.replace_project_state(
            data.project_id, data.checklist, data.timeline, data.revision
        )
        if not result.ok:
            logger.debug(f"Dropping update: {result.status.text}")
            return False
        if (
            self.on_render is not None
            and result.project is not None
            and data.project_id == self.store.current_project_id
        ):
            self.on_render(result.project)
        return True


# =============================================================================
# Extension side
# =============================================================================


class MirrorState(CamelModel):
    """What the extension keeps: the current project plus the project map."""

    current_project_id: str | None = None
    current_project_name: str | None = None
    config: ProjectConfig | None = None
    checklist: list[ChecklistItem] = Field(default_factory=list)
    timeline: list[TimelineEvent] = Field(default_factory=list)
    projects: dict[str, Project] = Field(default_factory=dict)
    revision: int = 0

    def find_item(self, item_id: str) -> ChecklistItem | None:
        for item in self.checklist:
            if item.id == item_id:
                return item
        return None


class ExtensionMirror:
    """Single-project mirror held by the extension context."""

    def __init__(
        self,
        storage: StorageArea,
        bus: MessageBus,
        name: str = "extension",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.storage = storage
        self.bus = bus
        self.name = name
        self.state = MirrorState()
        self._clock = clock or datetime.now
        bus.subscribe(name, self.receive)

    def load(self) -> None:
        """Load the stored mirror, resetting to empty on corruption."""
        try:
            blob = self.storage.get_text(MIRROR_KEY)
        except Exception as e:
            logger.warning(f"Could not read extension storage: {e}")
            blob = None
        if not blob:
            self.state = MirrorState()
            return
        try:
            self.state = MirrorState.model_validate_json(blob)
        except ValidationError:
            logger.warning("Stored extension state is corrupt, starting empty")
            self.state = MirrorState()

    def persist(self) -> None:
        try:
            self.storage.put_text(MIRROR_KEY, self.state.model_dump_json(by_alias=True))
        except Exception as e:
            logger.warning(f"Failed to persist extension state: {e}")

    def receive(self, raw: Any) -> bool:
        """Handle one inbound message. Returns True if the mirror changed."""
        message = parse_message(raw)
        match message:
            case None:
                return False
            case UpdateMessage():
                return False
            case StateMessage():
                return self._apply_state(message.data)
            case _:
                assert_never(message)

    def _apply_state(self, data: StateData) -> bool:
        if not data.current_project_id:
            self.state = MirrorState(projects=data.projects)
            self.persist()
            return True

        project_id = data.project_id or data.current_project_id
        fallback = data.projects.get(data.current_project_id)
        revision = data.revision
        if revision is None:
            revision = fallback.revision if fallback is not None else 0

        if (
            self.state.current_project_id == project_id
            and revision < self.state.revision
        ):
            logger.debug(
                f"Dropping stale state for {project_id} "
                f"(revision {revision} < {self.state.revision})"
            )
            return False

        self.state = MirrorState(
            current_project_id=project_id,
            current_project_name=data.project_name
            or (fallback.name if fallback is not None else None),
            config=data.config or (fallback.config if fallback is not None else None),
            checklist=(
                data.checklist
                if data.checklist is not None
                else (fallback.checklist if fallback is not None else [])
            ),
            timeline=(
                data.timeline
                if data.timeline is not None
                else (fallback.timeline if fallback is not None else [])
            ),
            projects=data.projects,
            revision=revision,
        )
        self.persist()
        return True

    def announce(self) -> None:
        """Forward the stored mirror to the tracker, as on extension start-up."""
        if self.state.current_project_id:
            self._post_update()

    def toggle_item(self, item_id: str) -> OperationResult:
        item = self._find(item_id)
        if item is None:
            return OperationResult.failure(f"Item {item_id} not found.", not_found=True)
        item.checked = not item.checked
        message = MSG_ITEM_COMPLETED if item.checked else MSG_ITEM_UNCOMPLETED
        self._record(item, message)
        return OperationResult.success(message + ".", item=item)

    def log_change(self, item_id: str, message: str) -> OperationResult:
        message = (message or "").strip()
        if not message:
            return OperationResult.failure("Please enter the change details.")
        item = self._find(item_id)
        if item is None:
            return OperationResult.failure(f"Item {item_id} not found.", not_found=True)
        self._record(item, message)
        return OperationResult.success("Change logged.", item=item)

    def _find(self, item_id: str) -> ChecklistItem | None:
        if not self.state.current_project_id:
            return None
        return self.state.find_item(item_id)

    def _record(self, item: ChecklistItem, message: str) -> None:
        timestamp = self._clock().isoformat(timespec="seconds")
        item.changes.append(ChangeRecord(message=message, timestamp=timestamp))
        self.state.timeline.append(
            TimelineEvent(
                timestamp=timestamp,
                item_id=item.id,
                item_text=item.text,
                message=message,
            )
        )
        self.state.revision += 1
        self.persist()
        self._post_update()

    def _post_update(self) -> None:
        self.bus.post(
            self.name,
            UpdateMessage(
                source=EXTENSION_SOURCE,
                type="update",
                data=UpdateData(
                    project_id=self.state.current_project_id,
                    checklist=self.state.checklist,
                    timeline=self.state.timeline,
                    revision=self.state.revision,
                ),
            ),
        )


__all__ = [
    "EXTENSION_SOURCE",
    "MIRROR_KEY",
    "PAGE_SOURCE",
    "ExtensionMirror",
    "MessageBus",
    "MirrorState",
    "PageSync",
    "StateOutbox",
    "StateData",
    "StateMessage",
    "SyncMessage",
    "UpdateData",
    "UpdateMessage",
    "build_state_message",
    "parse_message",
]
