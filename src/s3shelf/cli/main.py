"""Main entry point for the s3shelf CLI.

Provides a Typer-based CLI for inspecting and managing objects in the
configured bucket.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Awaitable, Optional

import typer
from rich.console import Console
from rich.table import Table

from s3shelf import __version__
from s3shelf.cache.gate import most_recent
from s3shelf.config import settings
from s3shelf.errors import StorageError
from s3shelf.logging_config import setup_logging
from s3shelf.storage.backend import CONTENT_TYPE_OCTET_STREAM, ObjectRef
from s3shelf.storage.object_store import ObjectStore

console = Console()

app = typer.Typer(
    name="s3shelf",
    help="Manage records stored in an S3-compatible bucket",
    rich_markup_mode="rich",
)


def get_store() -> ObjectStore:
    """Build the object store from settings."""
    from s3shelf.main import build_store

    return build_store()


def _open_store() -> ObjectStore:
    try:
        return get_store()
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


def _run(coro: Awaitable[Any]) -> Any:
    try:
        return asyncio.run(coro)
    except StorageError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def _format_time(ref: ObjectRef) -> str:
    return ref.last_modified.strftime("%Y-%m-%d %H:%M:%S") if ref.last_modified else "-"


def _print_refs(refs: list, title: str) -> None:
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Last Modified")
    table.add_column("Size", justify="right")
    for ref in refs:
        table.add_row(ref.key, _format_time(ref), str(ref.size) if ref.size is not None else "-")
    console.print(table)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"s3shelf version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log storage calls to stderr"),
) -> None:
    """s3shelf: typed record storage on S3-compatible buckets.

    ## Commands

    * [bold cyan]ls[/bold cyan] / [bold cyan]dirs[/bold cyan] / [bold cyan]recent[/bold cyan] - Inspect the bucket
    * [bold cyan]put[/bold cyan] / [bold cyan]get[/bold cyan] - Upload and download objects
    * [bold cyan]rm[/bold cyan] / [bold cyan]rm-prefix[/bold cyan] / [bold cyan]mv[/bold cyan] - Delete and rename
    * [bold cyan]serve[/bold cyan] - Run the HTTP API
    """
    if verbose:
        setup_logging("DEBUG")


@app.command("ls")
def list_objects(
    prefix: str = typer.Argument("", help="Key prefix to list"),
) -> None:
    """List objects under a prefix."""
    store = _open_store()
    refs = _run(store.list_keys(prefix))
    if not refs:
        console.print(f"[yellow]No objects under '{prefix}'[/yellow]")
        return
    _print_refs(refs, f"{len(refs)} object(s)")


@app.command("dirs")
def list_directories(
    prefix: str = typer.Argument("", help="Key prefix to group under"),
) -> None:
    """List the directories directly below a prefix."""
    store = _open_store()
    directories = _run(store.list_directories(prefix))
    for directory in sorted(directories):
        console.print(directory)


@app.command("recent")
def recent(
    directory: str = typer.Argument("", help="Directory to rank"),
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Number of keys to show"),
) -> None:
    """Show the most recently modified keys in a directory."""
    store = _open_store()
    refs = _run(store.list_keys(directory))
    _print_refs(most_recent(refs, limit), f"{min(limit, len(refs))} most recent")


@app.command("put")
def put_object(
    key: str = typer.Argument(..., help="Destination key"),
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to upload"),
    content_type: str = typer.Option(CONTENT_TYPE_OCTET_STREAM, "--content-type", "-t"),
    overwrite: bool = typer.Option(False, "--overwrite", "-f", help="Replace an existing object"),
) -> None:
    """Upload a file."""
    store = _open_store()
    stored_key = _run(store.upload_bytes(key, file.read_bytes(), content_type, overwrite))
    console.print(f"[green]Uploaded {file} to {stored_key}[/green]")


@app.command("get")
def get_object(
    key: str = typer.Argument(..., help="Key to download"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write to a file instead of stdout"),
) -> None:
    """Download an object."""
    store = _open_store()
    data = _run(store.download_bytes(key))
    if out is None:
        typer.echo(data.decode("utf-8", errors="replace"), nl=False)
        return
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    console.print(f"[green]Saved {len(data)} bytes to {out}[/green]")


@app.command("rm")
def remove_object(
    key: str = typer.Argument(..., help="Key to delete"),
) -> None:
    """Delete one object."""
    store = _open_store()
    if _run(store.delete_object(key)):
        console.print(f"[green]Deleted {key}[/green]")
    else:
        console.print(f"[yellow]No object at {key}[/yellow]")
        raise typer.Exit(1)


@app.command("rm-prefix")
def remove_prefix(
    prefix: str = typer.Argument(..., help="Prefix to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete every object under a prefix."""
    if not prefix.strip():
        console.print("[red]Refusing to delete the whole bucket; give a prefix[/red]")
        raise typer.Exit(1)
    if not yes:
        typer.confirm(f"Delete all objects under '{prefix}'?", abort=True)
    store = _open_store()
    deleted = _run(store.delete_prefix(prefix))
    console.print(f"[green]Deleted {deleted} object(s) under '{prefix}'[/green]")


@app.command("mv")
def rename_object(
    source: str = typer.Argument(..., help="Existing key"),
    dest: str = typer.Argument(..., help="New key"),
    overwrite: bool = typer.Option(False, "--overwrite", "-f", help="Replace an existing destination"),
) -> None:
    """Rename an object (copy, then delete the source; not atomic)."""
    store = _open_store()
    _run(store.rename_object(source, dest, overwrite))
    console.print(f"[green]Renamed {source} to {dest}[/green]")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: int = typer.Option(8000, "--port", "-p"),
    bindings: Optional[str] = typer.Option(
        None,
        "--bindings",
        "-b",
        help="module:attribute naming the RecordBindings to serve (default: SHELF_BINDINGS)",
    ),
) -> None:
    """Run the HTTP API with uvicorn.

    Without bindings only the health and root endpoints are served.
    """
    from s3shelf.main import load_bindings
    from s3shelf.main import main as run_api

    # Same lookup as uvicorn's default --app-dir
    sys.path.insert(0, str(Path.cwd()))

    path = settings.SHELF_BINDINGS if bindings is None else bindings
    try:
        collections = load_bindings(path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    if not collections:
        console.print("[yellow]No record bindings configured; serving health endpoints only[/yellow]")

    console.print(f"Serving s3shelf on {host}:{port} (backend: {settings.SHELF_BACKEND})")
    run_api(host=host, port=port, bindings=path)


if __name__ == "__main__":
    app()
