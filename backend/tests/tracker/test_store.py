"""Tests for the multi-project store and its change timeline."""

import json

import pytest

from tracker.models import ChecklistItem, TimelineEvent
from tracker.storage import MemoryStorageArea
from tracker.store import (
    CURRENT_PROJECT_KEY,
    PROJECTS_KEY,
    ItemAction,
    ItemChange,
    ProjectStore,
    StatusLevel,
)
from tracker.timeline import project_to_json

PAYLOAD = [
    {"text": "Pin model version", "category": "Model"},
    {"text": "Record random seeds", "category": "Data"},
]


@pytest.fixture
def project_id(store: ProjectStore) -> str:
    """A current project with a generated checklist."""
    result = store.create_project("Summarization study")
    store.generate_checklist(result.project.id, PAYLOAD, research_plan="plan")
    return result.project.id


def _first_item(store: ProjectStore, project_id: str) -> ChecklistItem:
    return store.get_project(project_id).checklist[0]


class TestProjectLifecycle:
    """create / switch / delete / import."""

    def test_create_project_becomes_current(self, store: ProjectStore) -> None:
        result = store.create_project("  Study A ")
        assert result.ok
        assert result.status.level == StatusLevel.SUCCESS
        assert result.project.name == "Study A"
        assert result.project.id.startswith("proj-")
        assert store.current_project_id == result.project.id
        assert result.project.checklist == []
        assert result.project.timeline == []

    def test_create_project_rejects_blank_name(self, store: ProjectStore) -> None:
        result = store.create_project("   ")
        assert not result.ok
        assert result.status.level == StatusLevel.ERROR
        assert store.projects == {}

    def test_project_ids_are_unique(self, store: ProjectStore) -> None:
        ids = {store.create_project(f"P{i}").project.id for i in range(5)}
        assert len(ids) == 5

    def test_switch_project(self, store: ProjectStore) -> None:
        first = store.create_project("First").project
        store.create_project("Second")
        result = store.switch_project(first.id)
        assert result.ok
        assert store.current_project_id == first.id

    def test_switch_to_missing_project(self, store: ProjectStore) -> None:
        result = store.switch_project("proj-nope")
        assert not result.ok
        assert result.not_found

    def test_delete_current_project_clears_pointer(self, store: ProjectStore) -> None:
        project = store.create_project("Doomed").project
        result = store.delete_project(project.id)
        assert result.ok
        assert store.current_project_id is None
        assert project.id not in store.projects

    def test_delete_other_project_keeps_pointer(self, store: ProjectStore) -> None:
        other = store.create_project("Other").project
        current = store.create_project("Current").project
        store.delete_project(other.id)
        assert store.current_project_id == current.id

    def test_projects_are_isolated(self, store: ProjectStore, project_id: str) -> None:
        """Operations on one project never change another."""
        other = store.create_project("Other").project
        store.add_custom_item("Only in other", project_id=other.id)
        assert all(
            item.text != "Only in other"
            for item in store.get_project(project_id).checklist
        )
        assert store.get_project(project_id).timeline == []


class TestGenerateChecklist:
    def test_generated_items_followed_by_static(
        self, store: ProjectStore, project_id: str
    ) -> None:
        project = store.get_project(project_id)
        texts = [item.text for item in project.checklist]
        assert texts[:2] == ["Pin model version", "Record random seeds"]
        assert len(project.checklist) == 2 + 7
        assert project.checklist[-1].category == "Reproducibility Tracking"
        assert project.research_plan == "plan"

    def test_regeneration_resets_timeline(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        assert store.get_project(project_id).timeline

        store.generate_checklist(project_id, PAYLOAD)
        assert store.get_project(project_id).timeline == []

    def test_generate_for_missing_project(self, store: ProjectStore) -> None:
        result = store.generate_checklist("proj-missing", PAYLOAD)
        assert not result.ok
        assert result.not_found

    def test_generate_bumps_revision(
        self, store: ProjectStore, project_id: str
    ) -> None:
        before = store.get_project(project_id).revision
        store.generate_checklist(project_id, PAYLOAD)
        assert store.get_project(project_id).revision == before + 1


class TestItemMutations:
    """Every mutation but draft edits appends exactly one event."""

    def test_add_custom_item_prepends(
        self, store: ProjectStore, project_id: str
    ) -> None:
        result = store.add_custom_item("Archive eval outputs", "Evaluation")
        project = store.get_project(project_id)
        assert result.ok
        assert project.checklist[0].text == "Archive eval outputs"
        assert project.checklist[0].id.startswith("custom-")
        assert [e.message for e in project.timeline] == ["Item added"]

    def test_add_custom_item_requires_text(
        self, store: ProjectStore, project_id: str
    ) -> None:
        result = store.add_custom_item("   ")
        assert not result.ok
        assert store.get_project(project_id).timeline == []

    def test_add_custom_item_without_project(self, store: ProjectStore) -> None:
        result = store.add_custom_item("Anything")
        assert not result.ok
        assert result.status.text == "No active project."

    def test_toggle_records_completed_then_uncompleted(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        project = store.get_project(project_id)
        assert [e.message for e in project.timeline] == [
            "Item completed",
            "Item uncompleted",
        ]
        assert project.checklist[0].checked is False
        assert len(project.checklist[0].changes) == 2

    def test_toggle_leaves_other_items_untouched(
        self, store: ProjectStore, project_id: str
    ) -> None:
        project = store.get_project(project_id)
        target, *others = project.checklist
        before = {i.id: i.model_copy(deep=True).changes for i in others}
        timeline_length = len(project.timeline)

        store.mutate_item(project_id, target.id, ItemChange(ItemAction.TOGGLE))

        project = store.get_project(project_id)
        assert len(project.timeline) == timeline_length + 1
        assert project.timeline[-1].item_id == target.id
        assert {i.id: i.changes for i in project.checklist if i.id != target.id} == before

    def test_toggle_to_same_state_is_noop(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        result = store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.TOGGLE, checked=False)
        )
        assert result.ok
        assert store.get_project(project_id).timeline == []

    def test_edit_notes_is_silent(self, store: ProjectStore, project_id: str) -> None:
        item = _first_item(store, project_id)
        seen = []
        store.subscribe(lambda s: seen.append(s))
        store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.EDIT_NOTES, text="draft")
        )
        assert _first_item(store, project_id).notes == "draft"
        assert store.get_project(project_id).timeline == []
        assert seen == []

    def test_commit_notes_records_and_clears(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.EDIT_NOTES, text="seed=42")
        )
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.COMMIT_NOTES))
        project = store.get_project(project_id)
        assert project.timeline[-1].message == 'Notes updated: "seed=42"'
        assert project.checklist[0].notes == ""

    def test_commit_blank_notes_is_noop(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        result = store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.COMMIT_NOTES, text="   ")
        )
        assert result.ok
        assert store.get_project(project_id).timeline == []

    def test_log_custom_change(self, store: ProjectStore, project_id: str) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.LOG, text="Switched to v2")
        )
        event = store.get_project(project_id).timeline[-1]
        assert event.message == "Switched to v2"
        assert event.item_id == item.id
        assert event.item_text == item.text

    def test_log_requires_message(self, store: ProjectStore, project_id: str) -> None:
        item = _first_item(store, project_id)
        result = store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.LOG, text="")
        )
        assert not result.ok

    def test_remove_keeps_event_with_text_copy(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.REMOVE))
        project = store.get_project(project_id)
        assert project.find_item(item.id) is None
        assert project.timeline[-1].message == "Item removed from checklist"
        assert project.timeline[-1].item_text == "Pin model version"

    def test_missing_item(self, store: ProjectStore, project_id: str) -> None:
        result = store.mutate_item(
            project_id, "item-missing", ItemChange(ItemAction.TOGGLE)
        )
        assert not result.ok
        assert result.not_found

    def test_timeline_length_matches_operations(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.add_custom_item("Extra")
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.LOG, text="x"))
        store.mutate_item(
            project_id, item.id, ItemChange(ItemAction.COMMIT_NOTES, text="n")
        )
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.REMOVE))
        assert len(store.get_project(project_id).timeline) == 5

    def test_event_timestamps_use_clock(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        timestamp = store.get_project(project_id).timeline[-1].timestamp
        assert timestamp.startswith("2025-03-01T09:00:")

    def test_list_events_newest_first(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.LOG, text="one"))
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.LOG, text="two"))
        assert [e.message for e in store.list_events(project_id)] == ["two", "one"]


class TestPersistence:
    def test_round_trip_through_storage(
        self, storage: MemoryStorageArea, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))

        reloaded = ProjectStore(storage)
        reloaded.load()
        assert reloaded.current_project_id == project_id
        assert reloaded.get_project(project_id) == store.get_project(project_id)

    def test_persisted_layout(
        self, storage: MemoryStorageArea, store: ProjectStore, project_id: str
    ) -> None:
        blob = json.loads(storage.data[PROJECTS_KEY])
        assert list(blob) == [project_id]
        assert "researchPlan" in blob[project_id]
        assert storage.data[CURRENT_PROJECT_KEY] == project_id

    def test_pointer_removed_when_no_current(
        self, storage: MemoryStorageArea, store: ProjectStore, project_id: str
    ) -> None:
        store.delete_project(project_id)
        assert CURRENT_PROJECT_KEY not in storage.data

    def test_corrupt_blob_loads_empty(self) -> None:
        storage = MemoryStorageArea({PROJECTS_KEY: "{not json", CURRENT_PROJECT_KEY: "x"})
        store = ProjectStore(storage)
        store.load()
        assert store.projects == {}
        assert store.current_project_id is None

    def test_dangling_pointer_is_dropped(self) -> None:
        storage = MemoryStorageArea({PROJECTS_KEY: "{}", CURRENT_PROJECT_KEY: "proj-1"})
        store = ProjectStore(storage)
        store.load()
        assert store.current_project_id is None

    def test_persist_failure_is_logged(
        self, store: ProjectStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        class BrokenStorage(MemoryStorageArea):
            def put_text(self, key: str, content: str) -> None:
                raise OSError("disk full")

        store.storage = BrokenStorage()
        result = store.create_project("Still works")
        assert result.ok
        assert "Failed to persist" in caplog.text


class TestImportExport:
    def test_export_import_reproduces_state(
        self, store: ProjectStore, project_id: str
    ) -> None:
        item = _first_item(store, project_id)
        store.mutate_item(project_id, item.id, ItemChange(ItemAction.TOGGLE))
        original = store.get_project(project_id)

        result = store.import_project(project_to_json(original), name="Copy")
        assert result.ok
        copy = result.project
        assert copy.id != original.id
        assert copy.name == "Copy"
        assert copy.checklist == original.checklist
        assert copy.timeline == original.timeline
        assert store.current_project_id == copy.id

    def test_import_rejects_invalid_json(self, store: ProjectStore) -> None:
        result = store.import_project("{oops")
        assert not result.ok
        assert store.projects == {}

    def test_import_rejects_non_object(self, store: ProjectStore) -> None:
        assert not store.import_project("[1, 2]").ok

    def test_import_rejects_bad_items(self, store: ProjectStore) -> None:
        assert not store.import_project({"name": "x", "checklist": [{"text": "no id"}]}).ok

    def test_import_rejects_duplicate_item_ids(self, store: ProjectStore) -> None:
        payload = {
            "name": "Dup",
            "checklist": [{"id": "dup", "text": "A"}, {"id": "dup", "text": "B"}],
        }
        assert not store.import_project(payload).ok
        assert store.projects == {}


class TestReplaceProjectState:
    """Inbound whole-project snapshots from the extension."""

    def test_replace_state_does_not_broadcast(
        self, store: ProjectStore, project_id: str
    ) -> None:
        seen = []
        store.subscribe(lambda s: seen.append(s))
        items = [ChecklistItem(id="a", text="A", checked=True)]
        events = [
            TimelineEvent(timestamp="2025-03-01T10:00:00", item_id="a", message="m")
        ]
        revision = store.get_project(project_id).revision + 1
        result = store.replace_project_state(project_id, items, events, revision)
        assert result.ok
        assert seen == []
        project = store.get_project(project_id)
        assert project.checklist == items
        assert project.timeline == events
        assert project.revision == revision

    def test_stale_snapshot_is_rejected(
        self, store: ProjectStore, project_id: str
    ) -> None:
        before = store.get_project(project_id).model_copy(deep=True)
        result = store.replace_project_state(project_id, [], [], revision=0)
        assert not result.ok
        assert store.get_project(project_id).checklist == before.checklist

    def test_duplicate_item_ids_are_rejected(
        self, store: ProjectStore, project_id: str
    ) -> None:
        before = store.get_project(project_id).model_copy(deep=True)
        items = [ChecklistItem(id="dup", text="A"), ChecklistItem(id="dup", text="B")]
        result = store.replace_project_state(project_id, items, [], before.revision + 1)
        assert not result.ok
        assert store.get_project(project_id) == before

    def test_unknown_project(self, store: ProjectStore) -> None:
        result = store.replace_project_state("proj-x", [], [])
        assert not result.ok
        assert result.not_found
