"""Path validation against the permitted roots."""

from pathlib import Path

from markmap_store.config import MARKDOWN_EXTENSIONS
from markmap_store.core.storage.identifiers import sanitize_agent_id
from markmap_store.errors import PathSecurityError, ValidationError


def _is_within(path: Path, root: Path) -> bool:
    return path == root or path.is_relative_to(root)


def agent_subtree(storage_root: Path, agent_id: str) -> Path:
    """Return the canonical storage directory for an agent.

    Raises:
        ValidationError: If the identifier does not sanitize.
        PathSecurityError: If the sanitized name (e.g. ``..``) would leave the root.
    """
    root = storage_root.resolve()
    agent_dir = (root / sanitize_agent_id(agent_id)).resolve()
    if agent_dir == root or not agent_dir.is_relative_to(root):
        msg = f"agent_id {agent_id!r} does not name a directory under the storage root"
        raise PathSecurityError(msg)
    return agent_dir


def validate_file_path(
    file_path: str | Path,
    *,
    storage_root: Path,
    agent_id: str | None = None,
    cwd: Path | None = None,
) -> Path:
    """Resolve a caller-supplied path and check it against the permitted roots.

    The path is made absolute (relative paths are taken from ``cwd``),
    symlinks and ``..`` segments are resolved, and the canonical result must
    sit inside either the working directory or the agent's storage subtree.

    Args:
        file_path: Path as supplied by the caller.
        storage_root: Root of all agent directories.
        agent_id: Raw agent identifier; enables the agent subtree root.
        cwd: Working directory root (defaults to the process cwd).

    Returns:
        The canonical path.

    Raises:
        PathSecurityError: If the canonical path is outside every permitted root.
    """
    base = (cwd or Path.cwd()).resolve()
    candidate = Path(file_path).expanduser()
    if not candidate.is_absolute():
        candidate = base / candidate
    resolved = candidate.resolve()

    roots = [base]
    if agent_id:
        try:
            roots.append(agent_subtree(storage_root, agent_id))
        except (ValidationError, PathSecurityError):
            # An unusable identifier grants no extra root.
            pass

    if any(_is_within(resolved, root) for root in roots):
        return resolved

    msg = (
        f"Path {str(file_path)!r} must be within the current working directory "
        "or the agent storage directory"
    )
    raise PathSecurityError(msg)


def check_markdown_extension(file_path: str | Path) -> None:
    """Raise ValidationError unless the path ends in .md or .markdown."""
    ext = Path(file_path).suffix.lower()
    if ext not in MARKDOWN_EXTENSIONS:
        msg = f"Invalid file extension {ext!r}. Only .md and .markdown files are supported"
        raise ValidationError(msg)
