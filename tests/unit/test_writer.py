"""Tests for ArtifactWriter durable per-agent artifact writes."""

import json
from pathlib import Path

import pytest

from markmap_store.core.storage import writer as writer_module
from markmap_store.core.storage.html_page import generate_html
from markmap_store.core.storage.writer import ArtifactWriter, FileStorage
from markmap_store.errors import FileSystemError, PathSecurityError, ValidationError
from tests.unit.fakes import FakeStorage, FixedClock


def test_save_outputs_writes_three_named_files(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, clock=FixedClock(1234))

    saved = writer.save_outputs("agent-1", "render", "<svg/>", "# A\n")

    agent_dir = storage_root.resolve() / "agent-1"
    assert saved.svg == str(agent_dir / "render_1234.svg")
    assert saved.html == str(agent_dir / "render_1234.html")
    assert saved.md == str(agent_dir / "render_1234.md")
    assert Path(saved.svg).read_text() == "<svg/>"
    assert Path(saved.md).read_text() == "# A\n"
    assert "<!DOCTYPE html>" in Path(saved.html).read_text()


def test_agent_dir_is_created_with_missing_parents(tmp_path: Path) -> None:
    writer = ArtifactWriter(tmp_path / "a" / "b" / "root")

    agent_dir = writer.ensure_agent_dir("agent-1")

    assert agent_dir.is_dir()


def test_ensure_agent_dir_is_idempotent(writer: ArtifactWriter) -> None:
    first = writer.ensure_agent_dir("agent-1")
    second = writer.ensure_agent_dir("agent-1")

    assert first == second
    assert first.is_dir()


def test_same_millisecond_gets_a_tie_breaker(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, clock=FixedClock(1000))

    first = writer.save_outputs("agent-1", "render", "<svg>1</svg>", "# one")
    second = writer.save_outputs("agent-1", "render", "<svg>2</svg>", "# two")

    assert Path(first.svg).name == "render_1000.svg"
    assert Path(second.svg).name == "render_1000-1.svg"
    assert Path(first.svg).read_text() == "<svg>1</svg>"
    assert Path(second.svg).read_text() == "<svg>2</svg>"


def test_existing_file_on_disk_is_not_overwritten(storage_root: Path) -> None:
    agent_dir = storage_root / "agent-1"
    agent_dir.mkdir()
    (agent_dir / "render_1000.md").write_text("keep me")
    writer = ArtifactWriter(storage_root, clock=FixedClock(1000))

    saved = writer.save_outputs("agent-1", "render", "<svg/>", "# new")

    assert Path(saved.md).name == "render_1000-1.md"
    assert (agent_dir / "render_1000.md").read_text() == "keep me"


def test_different_agents_use_disjoint_directories(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, clock=FixedClock(1000))

    a = writer.save_outputs("agent-a", "render", "<svg/>", "# A")
    b = writer.save_outputs("agent-b", "render", "<svg/>", "# B")

    assert Path(a.svg).parent != Path(b.svg).parent
    assert Path(a.svg).name == Path(b.svg).name == "render_1000.svg"


def test_agent_id_is_sanitized_into_directory_name(writer: ArtifactWriter) -> None:
    saved = writer.save_outputs("../evil agent", "render", "<svg/>", "# A")

    assert Path(saved.svg).parent == writer.storage_root.resolve() / "..evilagent"


def test_dot_dot_agent_cannot_escape_storage_root(writer: ArtifactWriter) -> None:
    with pytest.raises(PathSecurityError):
        writer.save_outputs("..", "render", "<svg/>", "# A")


def test_invalid_agent_is_rejected_before_any_write(storage_root: Path) -> None:
    storage = FakeStorage()
    writer = ArtifactWriter(storage_root, storage)

    with pytest.raises(ValidationError):
        writer.save_outputs("@#$%", "render", "<svg/>", "# A")

    assert storage.files == {}


def test_save_structure_outputs_writes_md_and_json(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, clock=FixedClock(42))

    saved = writer.save_structure_outputs(
        "agent-1", "get_structure", "# A", {"node_count": 1, "text": "ünï"}
    )

    assert Path(saved.md).name == "get_structure_42.md"
    assert Path(saved.json).name == "get_structure_42.json"
    assert json.loads(Path(saved.json).read_text(encoding="utf-8")) == {
        "node_count": 1,
        "text": "ünï",
    }
    assert not list(Path(saved.md).parent.glob("*.svg"))


def test_fake_storage_keeps_writes_off_disk(storage_root: Path) -> None:
    storage = FakeStorage()
    writer = ArtifactWriter(storage_root / "never", storage, clock=FixedClock(7))

    saved = writer.save_outputs("agent-1", "render", "<svg/>", "# A")

    assert storage.files[Path(saved.svg)] == "<svg/>"
    assert len(storage.files) == 3
    assert not (storage_root / "never").exists()


def test_write_failure_becomes_file_system_error(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, FakeStorage(fail_on=".html"))

    with pytest.raises(FileSystemError, match="Permission denied"):
        writer.save_outputs("agent-1", "render", "<svg/>", "# A")


def test_write_file_creates_parents(writer: ArtifactWriter, tmp_path: Path) -> None:
    target = tmp_path / "deep" / "er" / "out.svg"

    writer.write_file(target, "<svg/>")

    assert target.read_text() == "<svg/>"


def test_file_storage_syncs_every_write(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    synced: list[int] = []
    monkeypatch.setattr(writer_module.os, "fsync", synced.append)

    FileStorage().write_durable(tmp_path / "a.txt", "hello")

    assert len(synced) == 1
    assert (tmp_path / "a.txt").read_text() == "hello"


def test_init_storage_root_creates_directory(tmp_path: Path) -> None:
    writer = ArtifactWriter(tmp_path / "fresh")

    writer.init_storage_root()
    writer.init_storage_root()

    assert (tmp_path / "fresh").is_dir()


def test_html_embeds_markdown_safely() -> None:
    page = generate_html(
        "# A\n</script><script>alert(1)</script>", "Title <b>", options={"color": ["#000000"]}
    )

    assert "</script><script>alert(1)" not in page
    assert "\\u003c/script\\u003e" in page
    assert "<title>Title &lt;b&gt;</title>" in page
    assert '"color": ["#000000"]' in page


def test_reserved_names_are_released_after_writing(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, clock=FixedClock(1000))

    writer.save_outputs("agent-1", "render", "<svg/>", "# A")
    writer.save_structure_outputs("agent-1", "get_structure", "# A", {})
    second = writer.save_outputs("agent-1", "render", "<svg/>", "# B")

    assert writer._unique_names == set()
    assert Path(second.svg).name == "render_1000-1.svg"


def test_reserved_name_is_released_when_a_write_fails(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, FakeStorage(fail_on=".svg"), clock=FixedClock(1000))

    with pytest.raises(FileSystemError):
        writer.save_outputs("agent-1", "render", "<svg/>", "# A")

    assert writer._unique_names == set()


def test_held_name_is_not_handed_out_twice(storage_root: Path) -> None:
    writer = ArtifactWriter(storage_root, FakeStorage())

    first = writer.make_unique_name(storage_root, "render", 5)
    second = writer.make_unique_name(storage_root, "render", 5)

    assert (first, second) == ("render_5", "render_5-1")
