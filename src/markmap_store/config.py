"""Configuration constants for markmap-store."""

import os
from pathlib import Path

from loguru import logger

# Default location of per-agent output folders.
DEFAULT_STORAGE_ROOT: Path = Path("~/.local/share/markmap-store/output").expanduser()

# Size ceilings, in bytes.
MAX_CONTENT_BYTES: int = 1024 * 1024
MAX_FILE_BYTES: int = 5 * 1024 * 1024

# Structural ceilings, checked after parsing.
MAX_NODE_COUNT: int = 10_000
MAX_DEPTH: int = 20

MARKDOWN_EXTENSIONS: frozenset[str] = frozenset({".md", ".markdown"})

# Seconds the render engine may take before the call is abandoned.
DEFAULT_RENDER_TIMEOUT: float = 30.0


def resolve_storage_root() -> Path:
    """Return the absolute storage root, honoring MARKMAP_STORAGE_ROOT."""
    env = os.environ.get("MARKMAP_STORAGE_ROOT")
    root = Path(env).expanduser() if env else DEFAULT_STORAGE_ROOT
    return root.absolute()


def resolve_render_timeout() -> float:
    """Return the render deadline, honoring MARKMAP_RENDER_TIMEOUT."""
    env = os.environ.get("MARKMAP_RENDER_TIMEOUT")
    if not env:
        return DEFAULT_RENDER_TIMEOUT
    try:
        value = float(env)
    except ValueError:
        value = 0.0
    if value <= 0:
        logger.warning(
            "Ignoring invalid MARKMAP_RENDER_TIMEOUT={!r}, using {}s", env, DEFAULT_RENDER_TIMEOUT
        )
        return DEFAULT_RENDER_TIMEOUT
    return value
