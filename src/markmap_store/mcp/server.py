"""MCP server exposing markmap rendering tools with per-agent storage."""

import asyncio
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from markmap_store.config import (
    MAX_CONTENT_BYTES,
    MAX_FILE_BYTES,
    resolve_render_timeout,
    resolve_storage_root,
)
from markmap_store.core.render.adapter import RenderResult, render_markdown, validate_options
from markmap_store.core.render.svg import SvgRenderer
from markmap_store.core.render.themes import decide_palette
from markmap_store.core.storage.identifiers import sanitize_agent_id
from markmap_store.core.storage.path_guard import check_markdown_extension, validate_file_path
from markmap_store.core.storage.writer import ArtifactWriter
from markmap_store.core.tree.extractor import extract_structure
from markmap_store.core.tree.outline import coerce_outline_items, outline_to_markdown
from markmap_store.errors import (
    FileSystemError,
    MarkmapError,
    RenderError,
    ResourceLimitError,
    ValidationError,
)
from markmap_store.models.node import SavedFiles
from markmap_store.protocols import RendererProtocol


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    writer: ArtifactWriter
    renderer: RendererProtocol = field(default_factory=SvgRenderer)
    render_timeout: float = field(default_factory=resolve_render_timeout)


def _failure(error: Exception, operation: str) -> dict[str, Any]:
    """Turn an exception into the structured failure payload."""
    if isinstance(error, MarkmapError):
        logger.warning("{} failed ({}): {}", operation, error.error_type, error)
        return {"success": False, "error": str(error), "error_type": error.error_type}
    logger.opt(exception=error).error("{} failed unexpectedly", operation)
    return {
        "success": False,
        "error": f"Unexpected error: {error}",
        "error_type": RenderError.error_type,
    }


def _check_content(markdown_content: str) -> None:
    if not isinstance(markdown_content, str) or not markdown_content.strip():
        msg = "Markdown content cannot be empty"
        raise ValidationError(msg)
    size = len(markdown_content.encode("utf-8"))
    if size > MAX_CONTENT_BYTES:
        msg = (
            f"Markdown content too large ({size / 1024 / 1024:.2f}MB). "
            f"Maximum size is {MAX_CONTENT_BYTES // (1024 * 1024)}MB"
        )
        raise ResourceLimitError(msg)


def _read_markdown_file(path: Path) -> tuple[str, int]:
    """Read a Markdown file after checking its size; return text and byte size."""
    try:
        size = path.stat().st_size
    except OSError as e:
        msg = f"Could not stat {str(path)!r}: {e.strerror or e}"
        raise FileSystemError(msg) from e
    if size > MAX_FILE_BYTES:
        msg = (
            f"File too large ({size / 1024 / 1024:.2f}MB). "
            f"Maximum size is {MAX_FILE_BYTES // (1024 * 1024)}MB"
        )
        raise ResourceLimitError(msg)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"Could not read {str(path)!r}: {e}"
        raise FileSystemError(msg) from e
    if not text.strip():
        msg = f"File {str(path)!r} is empty"
        raise ValidationError(msg)
    return text, size


def _guard_source(ctx: ServerContext, agent: str, file_path: str) -> Path:
    """Apply the extension check and the path guard to a Markdown input path."""
    if not file_path or not file_path.strip():
        msg = "File path cannot be empty"
        raise ValidationError(msg)
    check_markdown_extension(file_path)
    return validate_file_path(file_path, storage_root=ctx.writer.storage_root, agent_id=agent)


async def _save_graphic(
    ctx: ServerContext,
    agent: str,
    operation: str,
    result: RenderResult,
    markdown_content: str,
) -> SavedFiles:
    return await asyncio.to_thread(
        ctx.writer.save_outputs,
        agent,
        operation,
        result.svg,
        markdown_content,
        html_options=result.params.to_engine_options(),
        background=result.params.background,
    )


# --- Core functions (testable without MCP context) ---


async def markmap_render(
    ctx: ServerContext,
    *,
    agent_id: str,
    markdown_content: str,
    options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Render inline Markdown as a mindmap and save svg/html/md artifacts.

    Args:
        agent_id: Caller identifier; selects the storage directory.
        markdown_content: Markdown text (max 1MB).
        options: Render options (color_freeze_level, max_width, ...).
    """
    operation = "render"
    try:
        agent = sanitize_agent_id(agent_id)
        _check_content(markdown_content)
        structure = extract_structure(markdown_content)
        result = await render_markdown(
            markdown_content, ctx.renderer, options=options, timeout=ctx.render_timeout
        )
        saved = await _save_graphic(ctx, agent, operation, result, markdown_content)
    except Exception as e:
        return _failure(e, operation)

    stats = structure.stats
    return {
        "success": True,
        "message": (
            f"Successfully generated mindmap with {stats.node_count} nodes. "
            f"Files saved to {saved.svg}"
        ),
        "svg_content": result.svg,
        "node_count": stats.node_count,
        "depth": stats.max_depth,
        "features_used": list(stats.features_used),
        "saved_files": saved.to_dict(),
    }


async def markmap_from_outline(
    ctx: ServerContext,
    *,
    agent_id: str,
    outline_items: Sequence[Mapping[str, Any]],
    options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Build Markdown from (text, level) items, render it and save artifacts.

    Args:
        agent_id: Caller identifier.
        outline_items: Items like ``{"text": "AI", "level": 1}``; levels 1-6.
        options: Render options.
    """
    operation = "from_outline"
    try:
        agent = sanitize_agent_id(agent_id)
        if not outline_items:
            msg = "Outline items cannot be empty"
            raise ValidationError(msg)
        items = coerce_outline_items(outline_items)
        markdown_generated = outline_to_markdown(items)
        structure = extract_structure(markdown_generated)
        result = await render_markdown(
            markdown_generated, ctx.renderer, options=options, timeout=ctx.render_timeout
        )
        saved = await _save_graphic(ctx, agent, operation, result, markdown_generated)
    except Exception as e:
        return _failure(e, operation)

    stats = structure.stats
    return {
        "success": True,
        "message": (
            f"Successfully generated mindmap from {len(items)} outline items "
            f"({stats.node_count} nodes total). Files saved to {saved.svg}"
        ),
        "svg_content": result.svg,
        "markdown_generated": markdown_generated,
        "item_count": len(items),
        "node_count": stats.node_count,
        "depth": stats.max_depth,
        "features_used": list(stats.features_used),
        "saved_files": saved.to_dict(),
    }


async def markmap_render_file(
    ctx: ServerContext,
    *,
    agent_id: str,
    file_path: str,
    options: Mapping[str, Any] | None = None,
    save_output: bool = False,
    output_path: str | None = None,
    theme: str | None = None,
    color_scheme: Sequence[str] | None = None,
) -> dict[str, Any]:
    """Read a Markdown file, render it and save artifacts.

    The file must be .md/.markdown, at most 5MB, and inside the working
    directory or the agent's storage directory.

    Args:
        agent_id: Caller identifier.
        file_path: Path of the Markdown file.
        options: Render options.
        save_output: Also write the SVG to ``output_path``.
        output_path: Extra SVG destination (same location rules as file_path).
        theme: Optional theme name, as for customize.
        color_scheme: Optional ``#RRGGBB`` colors, as for customize.
    """
    operation = "render_file"
    try:
        agent = sanitize_agent_id(agent_id)
        source = _guard_source(ctx, agent, file_path)
        target: Path | None = None
        if save_output and output_path:
            target = validate_file_path(
                output_path, storage_root=ctx.writer.storage_root, agent_id=agent
            )
        decide_palette(theme, color_scheme)
        markdown_content, size = await asyncio.to_thread(_read_markdown_file, source)

        structure = extract_structure(markdown_content)
        result = await render_markdown(
            markdown_content,
            ctx.renderer,
            theme=theme,
            colors=color_scheme,
            options=options,
            timeout=ctx.render_timeout,
        )

        saved_path: str | None = None
        if target is not None:
            await asyncio.to_thread(ctx.writer.write_file, target, result.svg)
            saved_path = str(target)

        saved = await _save_graphic(ctx, agent, operation, result, markdown_content)
    except Exception as e:
        return _failure(e, operation)

    stats = structure.stats
    if saved_path:
        message = (
            f"Successfully rendered {file_path} ({stats.node_count} nodes) and saved to "
            f"{saved_path}. Auto-saved to {saved.svg}"
        )
    else:
        message = (
            f"Successfully rendered {file_path} with {stats.node_count} nodes. "
            f"Files saved to {saved.svg}"
        )
    return {
        "success": True,
        "message": message,
        "svg_content": result.svg,
        "file_path": file_path,
        "saved_path": saved_path,
        "node_count": stats.node_count,
        "depth": stats.max_depth,
        "features_used": list(stats.features_used),
        "file_size_kb": round(size / 1024, 2),
        "saved_files": saved.to_dict(),
    }


async def markmap_customize(
    ctx: ServerContext,
    *,
    agent_id: str,
    markdown_content: str,
    theme: str | None = None,
    color_scheme: Sequence[str] | None = None,
    options: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Render Markdown with a theme and/or explicit colors.

    Explicit colors replace the theme palette; the theme (default when
    omitted) still sets layout density such as the color freeze level.

    Args:
        agent_id: Caller identifier.
        markdown_content: Markdown text (max 1MB).
        theme: One of default, dark, colorful, minimal.
        color_scheme: Colors in ``#RRGGBB`` form.
        options: Render options.
    """
    operation = "customize"
    try:
        agent = sanitize_agent_id(agent_id)
        _check_content(markdown_content)
        decide_palette(theme, color_scheme)
        custom_options = list(validate_options(options))
        structure = extract_structure(markdown_content)
        result = await render_markdown(
            markdown_content,
            ctx.renderer,
            theme=theme,
            colors=color_scheme,
            options=options,
            timeout=ctx.render_timeout,
        )
        saved = await _save_graphic(ctx, agent, operation, result, markdown_content)
    except Exception as e:
        return _failure(e, operation)

    stats = structure.stats
    decision = result.decision
    theme_applied = decision.theme.name
    custom_colors = color_scheme is not None

    applied: list[str] = []
    if theme_applied != "default":
        applied.append(f"theme: {theme_applied}")
    if custom_colors:
        applied.append(f"custom colors ({len(decision.colors)})")
    if custom_options:
        applied.append(f"custom options ({len(custom_options)})")
    if applied:
        message = (
            f"Successfully generated customized mindmap with {stats.node_count} nodes. "
            f"Applied: {', '.join(applied)}. Files saved to {saved.svg}"
        )
    else:
        message = (
            f"Successfully generated mindmap with {stats.node_count} nodes using default "
            f"theme. Files saved to {saved.svg}"
        )

    return {
        "success": True,
        "message": message,
        "svg_content": result.svg,
        "theme_applied": theme_applied,
        "colors_used": list(decision.colors),
        "palette_source": decision.source,
        "node_count": stats.node_count,
        "customization_summary": {
            "theme": theme_applied,
            "custom_colors": custom_colors,
            "custom_options": custom_options,
        },
        "saved_files": saved.to_dict(),
    }


async def _save_structure(
    ctx: ServerContext, agent: str, operation: str, markdown_content: str
) -> dict[str, Any]:
    structure = extract_structure(markdown_content)
    stats = structure.stats
    data = {
        "structure": structure.to_dict(),
        "node_count": stats.node_count,
        "depth": stats.max_depth,
        "features_used": list(stats.features_used),
    }
    saved = await asyncio.to_thread(
        ctx.writer.save_structure_outputs, agent, operation, markdown_content, data
    )
    return {
        "success": True,
        "message": (
            f"Extracted {stats.node_count} nodes ({stats.max_depth} levels deep). "
            f"Files saved to {saved.json}"
        ),
        **data,
        "saved_files": saved.to_dict(),
    }


async def markmap_get_structure(
    ctx: ServerContext,
    *,
    agent_id: str,
    markdown_content: str,
) -> dict[str, Any]:
    """Extract the heading/list tree as JSON and save md/json artifacts.

    Args:
        agent_id: Caller identifier.
        markdown_content: Markdown text (max 1MB).
    """
    operation = "get_structure"
    try:
        agent = sanitize_agent_id(agent_id)
        _check_content(markdown_content)
        return await _save_structure(ctx, agent, operation, markdown_content)
    except Exception as e:
        return _failure(e, operation)


async def markmap_get_structure_file(
    ctx: ServerContext,
    *,
    agent_id: str,
    file_path: str,
) -> dict[str, Any]:
    """Like markmap_get_structure, but read the Markdown from a file.

    The file follows the render_file rules: .md/.markdown, at most 5MB, and
    inside the working directory or the agent's storage directory.
    """
    operation = "get_structure"
    try:
        agent = sanitize_agent_id(agent_id)
        source = _guard_source(ctx, agent, file_path)
        markdown_content, size = await asyncio.to_thread(_read_markdown_file, source)
        result = await _save_structure(ctx, agent, operation, markdown_content)
    except Exception as e:
        return _failure(e, operation)

    result["file_path"] = file_path
    result["file_size_kb"] = round(size / 1024, 2)
    return result


# --- MCP Server Setup ---


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Create the storage root on startup."""
    writer = ArtifactWriter(resolve_storage_root())
    await asyncio.to_thread(writer.init_storage_root)
    yield ServerContext(writer=writer)


mcp_server = FastMCP(
    "markmap-store",
    instructions="""\
Markmap turns Markdown headings and lists into an interactive mindmap.

Every tool needs an agent_id. Outputs (SVG, standalone HTML, the Markdown
source, or a JSON structure) are saved under a folder owned by that agent_id
and the saved paths are returned in saved_files.

## Tools
- markmap_render_tool: Markdown text -> mindmap.
- markmap_from_outline_tool: list of {text, level} items -> mindmap.
- markmap_render_file_tool: .md/.markdown file -> mindmap.
- markmap_customize_tool: themes (default, dark, colorful, minimal) and #RRGGBB colors.
- markmap_get_structure_tool: node tree, node count, depth and features as JSON.

Limits: 1MB inline Markdown, 5MB files, 10,000 nodes, depth 20.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def markmap_render_tool(
    ctx: Context,
    agent_id: str,
    markdown_content: str,
    options: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Render Markdown as a mindmap SVG.

    Headings and nested lists become nodes. The SVG, an interactive HTML
    page and the Markdown are saved to the agent's folder.

    Args:
        agent_id: Your agent identifier (letters, digits, '.', '_', '-').
        markdown_content: Markdown text (max 1MB).
        options: color_freeze_level, duration, max_width, initial_expand_level,
            spacing_horizontal, spacing_vertical, zoom, pan.
    """
    return await markmap_render(
        _ctx(ctx), agent_id=agent_id, markdown_content=markdown_content, options=options
    )


@mcp_server.tool()
async def markmap_from_outline_tool(
    ctx: Context,
    agent_id: str,
    outline_items: list[dict[str, Any]],
    options: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Generate a mindmap from outline items.

    Each item is {"text": str, "level": 1-6}; items keep their order and
    their stated level.

    Args:
        agent_id: Your agent identifier.
        outline_items: The outline.
        options: Render options (see markmap_render_tool).
    """
    return await markmap_from_outline(
        _ctx(ctx), agent_id=agent_id, outline_items=outline_items, options=options
    )


@mcp_server.tool()
async def markmap_render_file_tool(
    ctx: Context,
    agent_id: str,
    file_path: str,
    options: dict[str, Any] | None = None,
    save_output: bool = False,
    output_path: str | None = None,
    theme: str | None = None,
    color_scheme: list[str] | None = None,
) -> dict[str, Any]:
    """Render a Markdown file as a mindmap.

    The file must be .md or .markdown, at most 5MB, and inside the server's
    working directory or your agent folder.

    Args:
        agent_id: Your agent identifier.
        file_path: Path to the Markdown file.
        options: Render options (see markmap_render_tool).
        save_output: Also write the SVG to output_path.
        output_path: Extra SVG destination (same location rules).
        theme: default, dark, colorful or minimal.
        color_scheme: List of #RRGGBB colors.
    """
    return await markmap_render_file(
        _ctx(ctx),
        agent_id=agent_id,
        file_path=file_path,
        options=options,
        save_output=save_output,
        output_path=output_path,
        theme=theme,
        color_scheme=color_scheme,
    )


@mcp_server.tool()
async def markmap_customize_tool(
    ctx: Context,
    agent_id: str,
    markdown_content: str,
    theme: str | None = None,
    color_scheme: list[str] | None = None,
    options: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Render a mindmap with a theme and/or custom colors.

    color_scheme overrides the theme's colors; the theme still controls
    layout density.

    Args:
        agent_id: Your agent identifier.
        markdown_content: Markdown text (max 1MB).
        theme: default, dark, colorful or minimal.
        color_scheme: List of #RRGGBB colors.
        options: Render options (see markmap_render_tool).
    """
    return await markmap_customize(
        _ctx(ctx),
        agent_id=agent_id,
        markdown_content=markdown_content,
        theme=theme,
        color_scheme=color_scheme,
        options=options,
    )


@mcp_server.tool()
async def markmap_get_structure_tool(
    ctx: Context,
    agent_id: str,
    markdown_content: str,
) -> dict[str, Any]:
    """Get the node tree of a Markdown document without rendering.

    Returns the nested structure, node count, max depth and the Markdown
    features found. Markdown and JSON are saved to your agent folder.

    Args:
        agent_id: Your agent identifier.
        markdown_content: Markdown text (max 1MB).
    """
    return await markmap_get_structure(
        _ctx(ctx), agent_id=agent_id, markdown_content=markdown_content
    )
