"""Persistent key/value storage areas.

Each context (the tracker itself and the extension mirror) persists its whole
state as serialized text under a handful of logical keys, the way a browser
page uses ``localStorage`` and an extension uses ``chrome.storage.local``.

Backends:
    LocalStorageArea   one file per key under a directory
    SqlStorageArea     rows in the ``storage_entry`` table (SQLAlchemy)
    MemoryStorageArea  a dict, for tests and in-process mirrors
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from app.config import Settings

logger = logging.getLogger(__name__)


class StorageArea(Protocol):
    """Minimal persistent key -> text interface."""

    def get_text(self, key: str) -> str | None: ...

    def put_text(self, key: str, content: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorageArea:
    """Dict-backed storage area."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get_text(self, key: str) -> str | None:
        return self.data.get(key)

    def put_text(self, key: str, content: str) -> None:
        self.data[key] = content

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class LocalStorageArea:
    """Filesystem storage area: each key is a file under ``root``.

    Keys may contain ``/`` to form subdirectories. Writes go through a
    temporary file and an atomic replace so a crash never leaves a
    half-written blob behind.
    """

    def __init__(self, root: Path | str = "data/storage") -> None:
        self.root = Path(root)

    def get_text(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def put_text(self, key: str, content: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"


class SqlStorageArea:
    """Database storage area backed by the ``storage_entry`` table."""

    def __init__(self, engine: Engine, create_tables: bool = False) -> None:
        from app.models.base import make_session_maker

        self.engine = engine
        self._session_maker = make_session_maker(engine)
        if create_tables:
            from app.models.storage import StorageEntry

            StorageEntry.metadata.create_all(engine, tables=[StorageEntry.__table__])

    def get_text(self, key: str) -> str | None:
        from app.models.storage import StorageEntry

        with self._session_maker() as session:
            entry = session.get(StorageEntry, key)
            return entry.value if entry is not None else None

    def put_text(self, key: str, content: str) -> None:
        from app.models.storage import StorageEntry

        with self._session_maker() as session:
            entry = session.get(StorageEntry, key)
            if entry is None:
                session.add(StorageEntry(key=key, value=content))
            else:
                entry.value = content
            session.commit()

    def remove(self, key: str) -> None:
        from app.models.storage import StorageEntry

        with self._session_maker() as session:
            entry = session.get(StorageEntry, key)
            if entry is not None:
                session.delete(entry)
                session.commit()


def get_storage_area(settings: Settings | None = None) -> StorageArea:
    """Factory that reads settings and returns the configured storage area."""
    if settings is None:
        from app.config import settings as app_settings

        settings = app_settings

    if settings.storage_backend == "database":
        from app.models.base import make_engine

        engine = make_engine(settings.database_url, echo=settings.debug)
        is_sqlite = engine.url.get_backend_name() == "sqlite"
        logger.info(f"Using database storage: {engine.url.render_as_string()}")
        # Other databases are migrated with alembic
        return SqlStorageArea(engine, create_tables=is_sqlite)

    logger.info(f"Using file storage under {settings.storage_dir}")
    return LocalStorageArea(settings.storage_dir)


__all__ = [
    "LocalStorageArea",
    "MemoryStorageArea",
    "SqlStorageArea",
    "StorageArea",
    "get_storage_area",
]
