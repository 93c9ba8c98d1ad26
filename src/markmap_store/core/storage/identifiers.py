"""Agent identifier sanitization."""

import re

from markmap_store.errors import ValidationError

_DISALLOWED = re.compile(r"[^A-Za-z0-9._-]")


def sanitize_agent_id(agent_id: str) -> str:
    """Reduce an agent identifier to a filesystem-safe directory name.

    Every character outside ``[A-Za-z0-9._-]`` is dropped; the order of the
    remaining characters is kept. The result is the only value that may be
    joined into a storage path for that agent.

    Raises:
        ValidationError: If the identifier is empty, whitespace-only, or
            contains no allowed characters.
    """
    if not agent_id or not agent_id.strip():
        msg = "agent_id cannot be empty"
        raise ValidationError(msg)

    sanitized = _DISALLOWED.sub("", agent_id)
    if not sanitized:
        msg = "agent_id contains no valid characters (allowed: a-zA-Z0-9._-)"
        raise ValidationError(msg)
    return sanitized
