"""Fake implementations for testing the artifact pipeline."""

import time
from pathlib import Path

from markmap_store.core.render.themes import RenderParams


class FakeStorage:
    """In-memory fake for FileStorage.

    Records directories and durable writes instead of touching disk.
    """

    def __init__(self, *, fail_on: str | None = None) -> None:
        self.dirs: set[Path] = set()
        self.files: dict[Path, str] = {}
        self.fail_on = fail_on

    def make_dirs(self, path: Path) -> None:
        self.dirs.add(path)
        self.dirs.update(path.parents)

    def write_durable(self, path: Path, contents: str) -> None:
        if self.fail_on and path.name.endswith(self.fail_on):
            raise PermissionError(13, "Permission denied", str(path))
        if path.parent not in self.dirs:
            raise FileNotFoundError(2, "No such file or directory", str(path))
        self.files[path] = contents

    def exists(self, path: Path) -> bool:
        return path in self.files or path in self.dirs


class FakeRenderer:
    """Render engine fake that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, RenderParams]] = []

    def transform(self, markdown: str, params: RenderParams) -> str:
        self.calls.append((markdown, params))
        return f'<svg xmlns="http://www.w3.org/2000/svg"><!-- {len(self.calls)} --></svg>'


class SlowRenderer:
    """Render engine fake that never answers in time."""

    def __init__(self, delay: float) -> None:
        self.delay = delay

    def transform(self, markdown: str, params: RenderParams) -> str:
        time.sleep(self.delay)
        return "<svg/>"


class BrokenRenderer:
    """Render engine fake that always fails."""

    def transform(self, markdown: str, params: RenderParams) -> str:
        msg = "layout exploded"
        raise RuntimeError(msg)


class FixedClock:
    """Clock returning a constant epoch-millisecond value."""

    def __init__(self, value: int = 1_700_000_000_000) -> None:
        self.value = value

    def __call__(self) -> int:
        return self.value
