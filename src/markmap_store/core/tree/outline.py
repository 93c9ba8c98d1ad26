"""Compile (text, level) outlines into heading-based Markdown."""

import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from markmap_store.errors import ValidationError
from markmap_store.models.node import OutlineItem

MIN_LEVEL = 1
MAX_LEVEL = 6

_LINE_BREAK = re.compile(r"[ \t]*\r?\n\s*")
# A backslash before ASCII punctuation, and a final "#" run that would read
# as a closing sequence, both need a backslash to survive re-parsing.
_ESCAPABLE_BACKSLASH = re.compile(r"\\(?=[!-/:-@\[-`{-~])")
_CLOSING_RUN = re.compile(r"(?<![^ \t])#+$")


def coerce_outline_items(raw_items: Iterable[Mapping[str, Any] | OutlineItem]) -> list[OutlineItem]:
    """Convert caller-supplied mappings into OutlineItems.

    Raises:
        ValidationError: If an entry is not a mapping with ``text`` and ``level``.
    """
    items: list[OutlineItem] = []
    for i, raw in enumerate(raw_items, start=1):
        if isinstance(raw, OutlineItem):
            items.append(raw)
            continue
        if not isinstance(raw, Mapping):
            msg = f"Outline item {i} must be an object with 'text' and 'level'"
            raise ValidationError(msg)
        text = raw.get("text")
        level = raw.get("level")
        if not isinstance(text, str):
            msg = f"Outline item {i} has empty text"
            raise ValidationError(msg)
        if not isinstance(level, int) or isinstance(level, bool):
            msg = f"Outline item {i} has invalid level (must be {MIN_LEVEL}-{MAX_LEVEL})"
            raise ValidationError(msg)
        items.append(OutlineItem(text=text, level=level))
    return items


def validate_outline(items: Sequence[OutlineItem]) -> None:
    """Check every item has non-empty text and a level in 1..6.

    Raises:
        ValidationError: On the first offending item (1-based index in the message).
    """
    if not items:
        msg = "Outline items cannot be empty"
        raise ValidationError(msg)
    for i, item in enumerate(items, start=1):
        if not item.text or not item.text.strip():
            msg = f"Outline item {i} has empty text"
            raise ValidationError(msg)
        if not MIN_LEVEL <= item.level <= MAX_LEVEL:
            msg = f"Outline item {i} has invalid level (must be {MIN_LEVEL}-{MAX_LEVEL})"
            raise ValidationError(msg)


def outline_to_markdown(items: Sequence[OutlineItem]) -> str:
    """Render each item as a heading with ``level`` markers, in order.

    Level gaps are kept as given: a level-3 item after a level-1 item is
    emitted as ``###``. Line breaks inside an item's text are folded to a
    single space so that each item stays one heading, and text that would
    otherwise be read back differently is backslash-escaped.
    """
    validate_outline(items)
    lines = []
    for item in items:
        text = _escape_heading_text(_LINE_BREAK.sub(" ", item.text.strip()))
        lines.append(f"{'#' * item.level} {text}")
    return "\n".join(lines) + "\n"


def _escape_heading_text(text: str) -> str:
    text = _ESCAPABLE_BACKSLASH.sub(r"\\\\", text)
    return _CLOSING_RUN.sub(r"\\\g<0>", text)
