"""CLI for markmap-store (render, structure, MCP server)."""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from loguru import logger

from markmap_store.config import resolve_storage_root
from markmap_store.core.storage.writer import ArtifactWriter
from markmap_store.logging_config import configure_logging
from markmap_store.mcp.server import (
    ServerContext,
    markmap_get_structure_file,
    markmap_render_file,
)

app = typer.Typer(help="Markmap store: render Markdown mindmaps into per-agent folders.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _server_context(storage_root: Path | None) -> ServerContext:
    writer = ArtifactWriter(storage_root or resolve_storage_root())
    writer.init_storage_root()
    return ServerContext(writer=writer)


def _exit_on_failure(result: dict[str, Any]) -> None:
    if not result["success"]:
        logger.error("{}: {}", result["error_type"], result["error"])
        raise typer.Exit(1)


@app.command()
def serve() -> None:
    """Run the MCP server over stdio."""
    from markmap_store.mcp.server import mcp_server

    mcp_server.run(transport="stdio")


@app.command()
def render(
    file: Path = typer.Argument(..., help="Markdown file to render"),
    agent_id: str = typer.Option(..., "--agent-id", "-a", help="Agent folder to save into"),
    theme: Annotated[
        str | None,
        typer.Option("--theme", "-t", help="default, dark, colorful or minimal"),
    ] = None,
    colors: Annotated[
        list[str] | None,
        typer.Option("--color", "-c", help="Custom #RRGGBB color (repeatable)"),
    ] = None,
    storage_root: Annotated[
        Path | None,
        typer.Option("--storage-root", help="Override MARKMAP_STORAGE_ROOT"),
    ] = None,
) -> None:
    """Render a Markdown file and print where the artifacts were saved."""
    ctx = _server_context(storage_root)
    result = asyncio.run(
        markmap_render_file(
            ctx,
            agent_id=agent_id,
            file_path=str(file),
            theme=theme,
            color_scheme=colors or None,
        )
    )
    _exit_on_failure(result)
    typer.echo(result["message"])
    for kind, path in result["saved_files"].items():
        typer.echo(f"  {kind}: {path}")


@app.command()
def structure(
    file: Path = typer.Argument(..., help="Markdown file to inspect"),
    agent_id: str = typer.Option(..., "--agent-id", "-a", help="Agent folder to save into"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Print the tree as JSON"),
    storage_root: Annotated[
        Path | None,
        typer.Option("--storage-root", help="Override MARKMAP_STORAGE_ROOT"),
    ] = None,
) -> None:
    """Print the node tree statistics of a Markdown file."""
    ctx = _server_context(storage_root)
    result = asyncio.run(
        markmap_get_structure_file(ctx, agent_id=agent_id, file_path=str(file))
    )
    _exit_on_failure(result)

    if output_json:
        typer.echo(json.dumps(result["structure"], indent=2, ensure_ascii=False))
        return
    typer.echo(f"Nodes: {result['node_count']}")
    typer.echo(f"Depth: {result['depth']}")
    typer.echo(f"Features: {', '.join(result['features_used']) or '-'}")
    typer.echo(f"Saved: {result['saved_files']['json']}")
