"""Markdown mindmap rendering with per-agent artifact storage."""

from markmap_store.core.storage.writer import ArtifactWriter, FileStorage
from markmap_store.core.tree.extractor import extract_structure
from markmap_store.core.tree.outline import outline_to_markdown
from markmap_store.protocols import RendererProtocol, StorageProtocol

__all__ = [
    "ArtifactWriter",
    "FileStorage",
    "RendererProtocol",
    "StorageProtocol",
    "extract_structure",
    "outline_to_markdown",
]
