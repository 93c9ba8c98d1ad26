"""Error kinds surfaced by markmap operations.

Each class carries an ``error_type`` tag that the operation boundary
reports next to the human-readable message.
"""


class MarkmapError(Exception):
    """Base class for all expected operation failures."""

    error_type = "MarkmapError"


class ValidationError(MarkmapError):
    """Malformed, missing or out-of-range input."""

    error_type = "ValidationError"


class ResourceLimitError(MarkmapError):
    """A size, node-count or depth ceiling was exceeded."""

    error_type = "ResourceLimitError"


class PathSecurityError(MarkmapError):
    """A path resolves outside the permitted roots."""

    error_type = "PathSecurityError"


class FileSystemError(MarkmapError):
    """Reading, writing or stat-ing the underlying storage failed."""

    error_type = "FileSystemError"


class RenderError(MarkmapError):
    """The render engine failed or did not answer in time."""

    error_type = "RenderError"
