"""Checklist normalization for model output.

The remote model is asked for JSON but frequently returns something close to
it: a bare array, an object wrapping ``items``, JSON buried inside prose, or a
plain Markdown bullet list. This module turns any of those into an ordered
list of canonical ``ChecklistItem`` objects.

Resolution order (each step only runs if the previous one produced nothing):

1. A sequence of ``{text|requirement, category}`` mappings.
2. A mapping carrying an ``items`` sequence.
3. A string: strict JSON, then the first ``{...}`` / ``[...]`` substring.
4. Line recovery over the string (bullets, checkboxes, ``label: text``).
5. The fixed two-item default checklist.

Every function here is pure and never raises on malformed input.
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from tracker.models import DEFAULT_CATEGORY, ChecklistItem

# First balanced-looking JSON object or array, greedy and spanning lines.
JSON_SUBSTRING_PATTERN = re.compile(r"\{.*\}|\[.*\]", re.DOTALL)

# Optional bullet (-, *, •), optional checkbox ([ ], [x], [X]), then the text.
LIST_LINE_PATTERN = re.compile(r"^\s*[-*•]?\s*(?:\[([ xX])\]\s*)?(.*)$")

# "Label — requirement", "Label: requirement" or "Label-requirement".
CATEGORY_SPLIT_PATTERN = re.compile(r"^([^—:-]+)\s*[—:-]\s*(.+)$")

STATIC_CATEGORY = "Reproducibility Tracking"

# Appended to every generated checklist; the model is told not to produce them.
STATIC_TRACKING_ITEMS = (
    "📝 Log prompt changes (if modified from initial)",
    "🌡️ Track temperature updates (if adjusted)",
    "🔄 Record model version changes (if switched)",
    "📊 Document performance metrics (if available)",
    "📌 Note data modifications or augmentations",
    "⚙️ Track hyperparameter adjustments",
    "🧪 Document test/validation results",
)

DEFAULT_CHECKLIST = (
    ("default-1", "Document initial system prompt and configuration", "Planning"),
    ("default-2", "Define evaluation metrics and baselines", "Evaluation"),
)


def new_item_id(prefix: str = "item") -> str:
    """Return a fresh opaque item id such as ``item-3f9c2a1b7d04``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _string_field(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str):
        return value
    return None


def default_checklist() -> list[ChecklistItem]:
    """Return the fallback checklist used when nothing usable was found.

    The ids are fixed so repeated fallbacks are recognisable.
    """
    return [
        ChecklistItem(id=item_id, text=text, category=category)
        for item_id, text, category in DEFAULT_CHECKLIST
    ]


def static_items() -> list[ChecklistItem]:
    """Return the reproducibility-tracking items, each with a fresh id."""
    return [
        ChecklistItem(id=new_item_id("static"), text=text, category=STATIC_CATEGORY)
        for text in STATIC_TRACKING_ITEMS
    ]


def items_from_sequence(entries: Sequence[Any]) -> list[ChecklistItem]:
    """Map each entry of a sequence to a fresh checklist item.

    ``text`` comes from ``text`` or, failing that, ``requirement``. Entries
    without usable text still produce an item with empty text.
    """
    items: list[ChecklistItem] = []
    for entry in entries:
        text = ""
        category = DEFAULT_CATEGORY
        if isinstance(entry, Mapping):
            text = (
                _string_field(entry, "text")
                or _string_field(entry, "requirement")
                or ""
            ).strip()
            category = (_string_field(entry, "category") or "").strip()
            category = category or DEFAULT_CATEGORY
        items.append(ChecklistItem(id=new_item_id(), text=text, category=category))
    return items


def _items_from_structure(value: Any) -> list[ChecklistItem]:
    """Steps 1 and 2: a sequence, or a mapping wrapping ``items``."""
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return items_from_sequence(value)
    if isinstance(value, Mapping):
        nested = value.get("items")
        if isinstance(nested, Sequence) and not isinstance(nested, (str, bytes)):
            return items_from_sequence(nested)
    return []


def extract_json(text: str) -> Any | None:
    """Parse ``text`` as JSON, falling back to its first embedded JSON block.

    Returns the first parsed value that carries a checklist structure (a list
    or an object with ``items``), or ``None``.
    """
    candidates = [text.strip()]
    match = JSON_SUBSTRING_PATTERN.search(text)
    if match:
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, list):
            return parsed
        if isinstance(parsed, dict) and isinstance(parsed.get("items"), list):
            return parsed
    return None


def split_category(text: str) -> tuple[str, str]:
    """Split ``"Label — requirement"`` into ``(category, text)``.

    Splits on the first em-dash, colon or hyphen. Text without a separator
    keeps the default category.
    """
    match = CATEGORY_SPLIT_PATTERN.match(text)
    if not match:
        return DEFAULT_CATEGORY, text
    return match.group(1).strip(), match.group(2).strip()


def parse_list_lines(text: str) -> list[ChecklistItem]:
    """Recover items from loosely formatted list-like text, one per line."""
    items: list[ChecklistItem] = []
    for line in text.splitlines():
        match = LIST_LINE_PATTERN.match(line)
        if not match:
            continue
        content = match.group(2).strip()
        if not content:
            continue
        category, requirement = split_category(content)
        items.append(
            ChecklistItem(id=new_item_id(), text=requirement, category=category)
        )
    return items


def extract_items_payload(raw: Any) -> list[Any] | None:
    """Return the structured item list inside model output, if there is one.

    Used by the checklist endpoint to hand the client a parsed list when the
    model complied, and the raw text otherwise.
    """
    value = extract_json(raw) if isinstance(raw, str) else raw
    if isinstance(value, list):
        return value
    if isinstance(value, Mapping) and isinstance(value.get("items"), list):
        return value["items"]
    return None


def normalize_checklist(raw: Any) -> list[ChecklistItem]:
    """Convert arbitrary model output into canonical checklist items.

    Args:
        raw: A list of item mappings, a mapping with ``items``, a string
            (JSON, JSON embedded in prose, or a bullet list), or ``None``.

    Returns:
        A non-empty list of fresh items (unchecked, no notes, no changes).
        Falls back to ``default_checklist()`` when nothing is recoverable.
    """
    if raw is None:
        return default_checklist()

    items = _items_from_structure(raw)
    if items:
        return items

    if isinstance(raw, str):
        parsed = extract_json(raw)
        if parsed is not None:
            # Usable JSON is final, even when it holds no items
            return _items_from_structure(parsed) or default_checklist()
        items = parse_list_lines(raw)
        if items:
            return items

    return default_checklist()


__all__ = [
    "STATIC_CATEGORY",
    "STATIC_TRACKING_ITEMS",
    "default_checklist",
    "extract_items_payload",
    "extract_json",
    "items_from_sequence",
    "new_item_id",
    "normalize_checklist",
    "parse_list_lines",
    "split_category",
    "static_items",
]
