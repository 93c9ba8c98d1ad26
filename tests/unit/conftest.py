"""Shared test fixtures."""

from pathlib import Path

import pytest

from markmap_store.core.storage.writer import ArtifactWriter
from markmap_store.mcp.server import ServerContext
from tests.unit.fakes import FakeRenderer

SAMPLE_MARKDOWN = """\
# Project

Intro paragraph with a [link](https://example.com).

## Goals
- Fast `parsing`
  - **Deterministic** output
- Safe storage

## Risks
1. Path traversal
2. Lost writes
"""


@pytest.fixture
def storage_root(tmp_path: Path) -> Path:
    """Return an empty storage root outside the working directory."""
    root = tmp_path / "storage"
    root.mkdir()
    return root


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Change into a fresh working directory."""
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work


@pytest.fixture
def writer(storage_root: Path) -> ArtifactWriter:
    return ArtifactWriter(storage_root)


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def server_ctx(writer: ArtifactWriter, renderer: FakeRenderer) -> ServerContext:
    """Return a server context with a real writer and a recording renderer."""
    return ServerContext(writer=writer, renderer=renderer, render_timeout=5.0)
