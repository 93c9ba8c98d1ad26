"""Durable, per-agent artifact writing."""

import json
import os
import threading
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger

from markmap_store.core.storage.html_page import generate_html
from markmap_store.core.storage.path_guard import agent_subtree
from markmap_store.errors import FileSystemError
from markmap_store.models.node import SavedFiles, SavedStructureFiles
from markmap_store.protocols import StorageProtocol

ARTIFACT_EXTENSIONS = (".svg", ".html", ".md", ".json")


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class FileStorage:
    """Storage port backed by the local filesystem."""

    def make_dirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def write_durable(self, path: Path, contents: str) -> None:
        """Write, flush and fsync so the data survives process exit."""
        with open(path, "w", encoding="utf-8") as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())

    def exists(self, path: Path) -> bool:
        return path.exists()


class ArtifactWriter:
    """Write the artifact set of one operation into the agent's directory.

    Files are named ``{operation}_{epoch_millis}.{ext}``. Base names handed
    out by this writer are held until their files are written; if a base name
    is held or already on disk, ``-1``, ``-2``, ... is appended.
    """

    def __init__(
        self,
        storage_root: str | Path,
        storage: StorageProtocol | None = None,
        *,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self.storage_root = Path(storage_root).absolute()
        self.storage = storage or FileStorage()
        self.clock = clock
        self._unique_names: set[str] = set()
        self._lock = threading.Lock()
        logger.debug("Artifact writer ready, storage root {}", self.storage_root)

    def init_storage_root(self) -> None:
        """Create the storage root if it does not exist."""
        logger.info("Initializing storage root: {}", self.storage_root)
        self._make_dirs(self.storage_root)

    def agent_dir(self, agent_id: str) -> Path:
        """Return the agent's directory path without creating it."""
        return agent_subtree(self.storage_root, agent_id)

    def ensure_agent_dir(self, agent_id: str) -> Path:
        """Create the agent's directory (and missing parents) if needed."""
        agent_dir = self.agent_dir(agent_id)
        logger.debug("Ensuring agent dir: {}", agent_dir)
        self._make_dirs(agent_dir)
        return agent_dir

    def make_unique_name(self, agent_dir: Path, operation: str, timestamp: int) -> str:
        """Reserve a base name for one artifact set."""
        base = f"{operation}_{timestamp}"
        with self._lock:
            unique_str = ""
            unique_count = 0
            while True:
                name = base + unique_str
                key = str(agent_dir / name)
                if key not in self._unique_names and not self._taken_on_disk(agent_dir, name):
                    break
                unique_count += 1
                unique_str = f"-{unique_count}"
            self._unique_names.add(key)
        return name

    def save_outputs(
        self,
        agent_id: str,
        operation: str,
        svg_content: str,
        markdown_content: str,
        *,
        html_options: dict[str, Any] | None = None,
        background: str = "#ffffff",
    ) -> SavedFiles:
        """Save SVG, HTML and Markdown for one graphic-producing operation."""
        agent_dir = self.ensure_agent_dir(agent_id)
        timestamp = self.clock()
        base_name = self.make_unique_name(agent_dir, operation, timestamp)

        created = datetime.fromtimestamp(timestamp / 1000, tz=UTC).isoformat()
        title = f"Markmap - {operation} ({created})"
        html_content = generate_html(
            markdown_content, title, options=html_options, background=background
        )

        saved = SavedFiles(
            svg=str(agent_dir / f"{base_name}.svg"),
            html=str(agent_dir / f"{base_name}.html"),
            md=str(agent_dir / f"{base_name}.md"),
        )
        logger.debug("Writing files to {}:", agent_dir)
        try:
            self._write(Path(saved.svg), svg_content)
            self._write(Path(saved.html), html_content)
            self._write(Path(saved.md), markdown_content)
        finally:
            self._release_name(agent_dir, base_name)
        logger.debug("All files written successfully")
        return saved

    def save_structure_outputs(
        self,
        agent_id: str,
        operation: str,
        markdown_content: str,
        structure_data: Any,
    ) -> SavedStructureFiles:
        """Save Markdown and the JSON structure for one inspection operation."""
        agent_dir = self.ensure_agent_dir(agent_id)
        base_name = self.make_unique_name(agent_dir, operation, self.clock())

        saved = SavedStructureFiles(
            md=str(agent_dir / f"{base_name}.md"),
            json=str(agent_dir / f"{base_name}.json"),
        )
        logger.debug("Writing structure files to {}:", agent_dir)
        try:
            self._write(Path(saved.md), markdown_content)
            self._write(Path(saved.json), json.dumps(structure_data, indent=2, ensure_ascii=False))
        finally:
            self._release_name(agent_dir, base_name)
        logger.debug("All files written successfully")
        return saved

    def write_file(self, path: Path, contents: str) -> None:
        """Durably write a file outside the artifact scheme, creating parents."""
        self._make_dirs(path.parent)
        self._write(path, contents)

    def _release_name(self, agent_dir: Path, name: str) -> None:
        with self._lock:
            self._unique_names.discard(str(agent_dir / name))

    def _taken_on_disk(self, agent_dir: Path, name: str) -> bool:
        return any(self.storage.exists(agent_dir / f"{name}{ext}") for ext in ARTIFACT_EXTENSIONS)

    def _make_dirs(self, path: Path) -> None:
        try:
            self.storage.make_dirs(path)
        except OSError as e:
            msg = f"Cannot create directory {str(path)!r}: {e.strerror or e}"
            raise FileSystemError(msg) from e

    def _write(self, path: Path, contents: str) -> None:
        logger.debug("  {} ({} bytes)", path.name, len(contents.encode("utf-8")))
        try:
            self.storage.write_durable(path, contents)
        except OSError as e:
            msg = f"Cannot write {str(path)!r}: {e.strerror or e}"
            raise FileSystemError(msg) from e
