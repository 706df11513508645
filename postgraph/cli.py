"""
CLI interface for the tag graph.

Usage:
    postgraph add notes/my-post.md
    postgraph related my-post.md --limit 5
    postgraph select theme/kubernetes theme/cloud-architecture
    postgraph graph --min-shared 2 --json
"""

import json
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from typing_extensions import Annotated

from .adjacency import parse_tag_list
from .api import TagEngine
from .config import default_store_path, load_or_create_config
from .errors import PostgraphError, log_exception
from .logging_config import configure_quiet_mode, enable_debug_mode
from .tag_validator import validate_tags
from .types import GraphOptions, Item, NeighborRecord, normalize_id

# Maximum number of files to add from a directory at once
MAX_DIR_FILES = 1000


# Configure quiet mode by default
# Set POSTGRAPH_VERBOSE=1 to enable debug mode via environment
if os.environ.get("POSTGRAPH_VERBOSE") == "1":
    enable_debug_mode()
else:
    configure_quiet_mode(quiet=True)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"postgraph {version('postgraph')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _get_json_output() -> bool:
    return _json_output


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value
    if value is not None:
        # log_exception resolves the error log from the environment
        os.environ["POSTGRAPH_STORE_PATH"] = str(value)


app = typer.Typer(
    name="postgraph",
    help="Tag index, related posts and co-occurrence graph.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="POSTGRAPH_STORE_PATH",
        help="Path to the store directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Tag index, related posts and co-occurrence graph."""


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _get_engine() -> TagEngine:
    """Load config and preload the engine, exiting cleanly on failure."""
    import atexit

    store_path = _store_override if _store_override is not None else default_store_path()
    try:
        config = load_or_create_config(store_path)
        engine = TagEngine.open(config)
    except (OSError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    atexit.register(engine.close)
    return engine


@contextmanager
def _cli_errors(command: str) -> Iterator[None]:
    """Turn engine errors into a clean message and exit code 1."""
    try:
        yield
    except PostgraphError as e:
        log_exception(e, context=f"postgraph {command}")
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _split_tags(args: list[str]) -> list[str]:
    """Accept tags as separate arguments, comma-separated, or both."""
    return [tag for arg in args for tag in parse_tag_list(arg)]


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _format_neighbors(records: list[NeighborRecord]) -> str:
    if not records:
        return "No results."
    lines = []
    for r in records:
        date = r.updated_at.strftime("%Y-%m-%d")
        lines.append(f"{r.id}  {r.weight}  {date}  {', '.join(r.shared_tags)}")
    return "\n".join(lines)


def _format_items(items: list[Item]) -> str:
    if not items:
        return "No results."
    return "\n".join(
        f"{item.id}  {item.updated_at.strftime('%Y-%m-%d')}  {item.name}"
        for item in items
    )


def _list_post_files(path: Path) -> list[Path]:
    """Markdown files in a directory (non-recursive, no hidden files), by name."""
    files = [
        entry for entry in sorted(path.iterdir())
        if entry.is_file() and not entry.name.startswith(".") and entry.suffix.lower() == ".md"
    ]
    if len(files) > MAX_DIR_FILES:
        typer.echo(f"Error: {path} has {len(files)} posts (limit {MAX_DIR_FILES})", err=True)
        raise typer.Exit(1)
    return files


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    paths: Annotated[list[Path], typer.Argument(
        help="Markdown files or directories to add",
        exists=True,
    )],
):
    """Add posts to the store (id is derived from the file name)."""
    engine = _get_engine()
    files: list[Path] = []
    for path in paths:
        files.extend(_list_post_files(path) if path.is_dir() else [path])

    added: list[Item] = []
    failed = 0
    for file in files:
        try:
            added.append(engine.ingest(file.read_bytes(), file.name))
        except PostgraphError as e:
            failed += 1
            typer.echo(f"Skipped {file.name}: {e}", err=True)

    if _get_json_output():
        _echo_json([item.to_dict() for item in added])
    else:
        for item in added:
            typer.echo(f"Added {item.id}")
    if failed:
        raise typer.Exit(1)


@app.command()
def related(
    id: Annotated[str, typer.Argument(help="Item id (e.g. my-post.md)")],
    tag: Annotated[Optional[list[str]], typer.Option(
        "--tag", "-t",
        help="Only count these tags as shared (repeatable)",
    )] = None,
    min_shared: Annotated[int, typer.Option(
        "--min-shared", "-m",
        help="Minimum number of shared tags",
    )] = 1,
    limit: Annotated[Optional[int], typer.Option(
        "--limit", "-n",
        help="Maximum results (0 = unlimited)",
    )] = None,
):
    """Posts related to an item by shared tags."""
    engine = _get_engine()
    with _cli_errors("related"):
        records = engine.get_related(id, include_tags=tag, min_shared=min_shared, limit=limit)
    if _get_json_output():
        _echo_json([r.to_dict() for r in records])
    else:
        typer.echo(_format_neighbors(records))


@app.command()
def select(
    tags: Annotated[list[str], typer.Argument(help="Selected tags (space or comma separated)")],
    limit: Annotated[int, typer.Option(
        "--limit", "-n",
        help="Maximum results (0 = unlimited)",
    )] = 0,
):
    """Posts matching any selected tag, most matches first."""
    engine = _get_engine()
    records = engine.get_selection_adjacency(_split_tags(tags), limit=limit)
    if _get_json_output():
        _echo_json([r.to_dict() for r in records])
    else:
        typer.echo(_format_neighbors(records))


@app.command()
def find(
    tags: Annotated[list[str], typer.Argument(help="Tags to filter by (space or comma separated)")],
    match_all: Annotated[bool, typer.Option(
        "--all", "-a",
        help="Require every tag (default: any tag)",
    )] = False,
):
    """Posts carrying any (or all) of the given tags, newest first."""
    engine = _get_engine()
    try:
        items = engine.find_by_tags(_split_tags(tags), match_all=match_all)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    if _get_json_output():
        _echo_json([item.to_dict() for item in items])
    else:
        typer.echo(_format_items(items))


@app.command()
def graph(
    min_shared: Annotated[Optional[int], typer.Option(
        "--min-shared", "-m",
        help="Minimum shared tags per edge",
    )] = None,
    include: Annotated[Optional[list[str]], typer.Option(
        "--include", "-i",
        help="Only build edges from these tags (repeatable)",
    )] = None,
    max_edges: Annotated[Optional[int], typer.Option(
        "--max-edges",
        help="Maximum edges (0 = unlimited)",
    )] = None,
):
    """Item co-occurrence graph keyed by shared tags."""
    engine = _get_engine()
    defaults = engine.default_graph_options()
    options = GraphOptions(
        min_shared_tags=min_shared if min_shared is not None else defaults.min_shared_tags,
        include_tags=frozenset(include or ()),
        max_edges=max_edges if max_edges is not None else defaults.max_edges,
    )
    with _cli_errors("graph"):
        result = engine.get_graph(options)
    if _get_json_output():
        _echo_json(result.to_dict())
        return
    typer.echo(f"{len(result.items)} items, {len(result.edges)} edges")
    for edge in result.edges:
        typer.echo(f"{edge.source} -- {edge.target}  {edge.weight}  {', '.join(edge.shared_tags)}")


@app.command()
def tags(
    selected: Annotated[Optional[list[str]], typer.Option(
        "--selected", "-t",
        help="Selected tags to suggest co-occurring tags for (repeatable)",
    )] = None,
):
    """Tag frequencies, plus suggestions for a selection."""
    engine = _get_engine()
    summary = engine.tag_summary(selected or ())
    if _get_json_output():
        _echo_json(summary.to_dict())
        return
    for tag in summary.order:
        typer.echo(f"{summary.counts[tag]:5d}  {tag}")
    if summary.suggested:
        typer.echo("")
        typer.echo("Suggested: " + ", ".join(summary.suggested))


@app.command()
def check(
    tags: Annotated[list[str], typer.Argument(help="Tags to validate")],
):
    """Validate a tag list against the taxonomy."""
    with _cli_errors("check"):
        normalized = validate_tags(tags)
    if _get_json_output():
        _echo_json(normalized)
    else:
        typer.echo("\n".join(normalized))


@app.command("id")
def id_command(
    filename: Annotated[str, typer.Argument(help="External file name")],
):
    """Show the item id derived from a file name."""
    typer.echo(normalize_id(filename))


@app.command()
def rebuild():
    """Rebuild the tag index from the stored posts and show statistics."""
    engine = _get_engine()
    engine.rebuild_index()
    stats = engine.stats()
    if _get_json_output():
        _echo_json(stats)
    else:
        for key, value in stats.items():
            typer.echo(f"{key}: {value}")


# -----------------------------------------------------------------------------

def main():
    try:
        app()
    except SystemExit:
        raise  # Let typer handle exit codes
    except KeyboardInterrupt:
        raise SystemExit(130)  # Standard exit code for Ctrl+C
    except Exception as e:
        # Log full traceback to file, show clean message to user
        log_path = log_exception(e, context="postgraph CLI")
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
