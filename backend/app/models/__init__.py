"""SQLAlchemy models for the GenAI Reproducibility Tracker."""

from app.models.base import Base, TimestampMixin, make_engine, make_session_maker
from app.models.storage import StorageEntry

__all__ = [
    "Base",
    "StorageEntry",
    "TimestampMixin",
    "make_engine",
    "make_session_maker",
]
