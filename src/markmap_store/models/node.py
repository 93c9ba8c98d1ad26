"""Domain models for markmap trees and saved artifacts."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Node:
    """A single heading or list entry in an extracted tree.

    The synthetic root has level 0 and empty text.
    """

    text: str
    level: int
    children: list["Node"] = field(default_factory=list)
    content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize the node and its descendants as plain JSON data."""
        data: dict[str, Any] = {"text": self.text, "level": self.level}
        if self.content:
            data["content"] = self.content
        data["children"] = [c.to_dict() for c in self.children]
        return data


@dataclass(frozen=True)
class OutlineItem:
    """A caller-supplied (text, level) pair."""

    text: str
    level: int


@dataclass(frozen=True)
class StructureStats:
    """Statistics derived from one extracted tree."""

    node_count: int
    max_depth: int
    features_used: tuple[str, ...] = ()


@dataclass(frozen=True)
class SavedFiles:
    """Paths of a graphic artifact set."""

    svg: str
    html: str
    md: str

    def to_dict(self) -> dict[str, str]:
        return {"svg": self.svg, "html": self.html, "md": self.md}


@dataclass(frozen=True)
class SavedStructureFiles:
    """Paths of a structure artifact set."""

    md: str
    json: str

    def to_dict(self) -> dict[str, str]:
        return {"md": self.md, "json": self.json}
