"""StorageEntry model: one persisted storage key and its serialized value."""

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class StorageEntry(Base, TimestampMixin):
    """A single key in a persistent storage area.

    The project store keeps its whole state under two keys (the project map
    blob and the current-project pointer), so this table stays tiny.
    """

    __tablename__ = "storage_entry"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<StorageEntry({self.key!r}, {len(self.value)} chars)>"
