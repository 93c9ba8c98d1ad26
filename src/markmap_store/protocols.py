"""Protocols for dependency injection in the artifact pipeline."""

from pathlib import Path
from typing import Protocol, runtime_checkable

from markmap_store.core.render.themes import RenderParams


@runtime_checkable
class StorageProtocol(Protocol):
    """Protocol for the filesystem port used by the artifact writer."""

    def make_dirs(self, path: Path) -> None:
        """Create a directory and missing parents; succeed if it exists."""
        ...

    def write_durable(self, path: Path, contents: str) -> None:
        """Write text and sync it to stable storage before returning."""
        ...

    def exists(self, path: Path) -> bool:
        """Return True if a file or directory exists at path."""
        ...


@runtime_checkable
class RendererProtocol(Protocol):
    """Protocol for the engine that lays out and draws a mindmap."""

    def transform(self, markdown: str, params: RenderParams) -> str:
        """Turn Markdown into graphic markup."""
        ...
