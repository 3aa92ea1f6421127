"""Read and export views over a project's change timeline.

The timeline is a derived log: events are only ever appended by the project
store as a side effect of item mutations. Storage order is insertion order
(oldest first); display order is newest first.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import datetime

from tracker.models import Project, TimelineEvent


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    # Mixed aware/naive values would not compare
    return parsed.replace(tzinfo=None)


def sort_events(events: Iterable[TimelineEvent]) -> list[TimelineEvent]:
    """Return events newest first.

    Timestamps only have whole-second resolution, so collisions are common.
    The sort is stable: events with equal timestamps keep their insertion
    order. Unparseable timestamps sort as the oldest.
    """
    return sorted(
        events,
        key=lambda event: _parse_timestamp(event.timestamp) or datetime.min,
        reverse=True,
    )


def timeline_to_json(events: Sequence[TimelineEvent]) -> str:
    """Serialize events in chronological (insertion) order."""
    return json.dumps([event.to_wire() for event in events], indent=2, ensure_ascii=False)


def format_event_markdown(event: TimelineEvent) -> str:
    return f"- **{event.timestamp}** — _{event.item_text}_: {event.message}"


def timeline_to_markdown(
    events: Sequence[TimelineEvent], title: str | None = None
) -> str:
    """Render events as a Markdown list in chronological order."""
    lines: list[str] = []
    if title:
        lines.extend([f"# {title}", ""])
    if not events:
        lines.append("_No timeline events_")
    else:
        lines.extend(format_event_markdown(event) for event in events)
    return "\n".join(lines) + "\n"


def project_to_json(project: Project, exported_at: str | None = None) -> str:
    """Whole-project export, suitable for ``ProjectStore.import_project``."""
    data = project.to_wire()
    data["exportedAt"] = exported_at or datetime.now().isoformat(timespec="seconds")
    return json.dumps(data, indent=2, ensure_ascii=False)


__all__ = [
    "format_event_markdown",
    "project_to_json",
    "sort_events",
    "timeline_to_json",
    "timeline_to_markdown",
]
