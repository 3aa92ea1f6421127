"""Tests for the persistent storage areas."""

from pathlib import Path

import pytest

from app.config import Settings
from app.models.base import make_engine
from tracker.storage import (
    LocalStorageArea,
    MemoryStorageArea,
    SqlStorageArea,
    get_storage_area,
)
from tracker.store import PROJECTS_KEY, ProjectStore


class TestMemoryStorageArea:
    def test_get_put_remove(self) -> None:
        area = MemoryStorageArea({"a": "1"})
        assert area.get_text("a") == "1"
        area.put_text("b", "2")
        area.remove("a")
        area.remove("missing")
        assert area.data == {"b": "2"}


class TestLocalStorageArea:
    def test_missing_key(self, tmp_path: Path) -> None:
        assert LocalStorageArea(tmp_path).get_text("nope") is None

    def test_round_trip(self, tmp_path: Path) -> None:
        area = LocalStorageArea(tmp_path / "store")
        area.put_text("genai_projects", '{"x": "ü"}')
        assert area.get_text("genai_projects") == '{"x": "ü"}'
        assert (tmp_path / "store" / "genai_projects.json").exists()

    def test_overwrite_leaves_no_temp_files(self, tmp_path: Path) -> None:
        area = LocalStorageArea(tmp_path)
        area.put_text("k", "one")
        area.put_text("k", "two")
        assert area.get_text("k") == "two"
        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]

    def test_remove(self, tmp_path: Path) -> None:
        area = LocalStorageArea(tmp_path)
        area.put_text("k", "v")
        area.remove("k")
        area.remove("k")
        assert area.get_text("k") is None
        assert list(tmp_path.iterdir()) == []


class TestSqlStorageArea:
    @pytest.fixture
    def area(self, tmp_path: Path) -> SqlStorageArea:
        engine = make_engine(f"sqlite:///{tmp_path / 'db' / 'tracker.db'}")
        return SqlStorageArea(engine, create_tables=True)

    def test_get_put_remove(self, area: SqlStorageArea) -> None:
        assert area.get_text("k") is None
        area.put_text("k", "one")
        area.put_text("k", "two")
        assert area.get_text("k") == "two"
        area.remove("k")
        assert area.get_text("k") is None

    def test_store_round_trip(self, area: SqlStorageArea) -> None:
        store = ProjectStore(area)
        project = store.create_project("In the database").project
        store.add_custom_item("Check schema")

        reloaded = ProjectStore(area)
        reloaded.load()
        assert reloaded.current_project_id == project.id
        assert reloaded.current_project.checklist[0].text == "Check schema"
        assert area.get_text(PROJECTS_KEY) is not None


class TestGetStorageArea:
    def test_file_backend(self, tmp_path: Path) -> None:
        settings = Settings(storage_backend="file", storage_dir=str(tmp_path))
        area = get_storage_area(settings)
        assert isinstance(area, LocalStorageArea)
        assert area.root == tmp_path

    def test_database_backend(self, tmp_path: Path) -> None:
        settings = Settings(
            storage_backend="database",
            database_url=f"sqlite:///{tmp_path / 'tracker.db'}",
        )
        area = get_storage_area(settings)
        assert isinstance(area, SqlStorageArea)
        area.put_text("k", "v")
        assert area.get_text("k") == "v"
