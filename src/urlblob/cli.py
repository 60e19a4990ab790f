"""CLI for urlblob."""

import itertools
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from .errors import BlobStoreError
from .path import BlobPath
from .repository import BlobRepository
from .settings import DEFAULT_CONCURRENT_STREAMS
from .utils import humanize_size


app = typer.Typer(help="""\
Read blobs from a read-only URL repository. Blob paths are composed by
resolving each path segment against the repository base URL.""")

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Read-only URL blob repository tools."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_blob_path(path: Optional[str]) -> BlobPath:
    """Split a slash-separated path such as ``a/b`` into a BlobPath."""
    blob_path = BlobPath()
    if not path:
        return blob_path
    for segment in path.split("/"):
        if segment:
            blob_path = blob_path.add(segment)
    return blob_path


def _fail(e: Exception) -> None:
    err_console.print(f"[red]✗[/red] {escape(str(e))}")
    raise typer.Exit(1)


def _open_repository(url: str, buffer_size: str, workers: int) -> BlobRepository:
    try:
        return BlobRepository({
            "type": "url",
            "url": url,
            "buffer_size": buffer_size,
            "concurrent_streams": workers,
        })
    except BlobStoreError as e:
        _fail(e)


@app.command()
def cat(
    url: str = typer.Argument(..., help="Repository base URL"),
    blob: str = typer.Argument(..., help="Blob name"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Container path, e.g. indices/0"),
    buffer_size: str = typer.Option("100kb", "--buffer-size", help="Read buffer size, e.g. 64kb"),
    workers: int = typer.Option(DEFAULT_CONCURRENT_STREAMS, "--workers", help="Concurrent read streams"),
):
    """Write a blob's bytes to stdout."""
    with _open_repository(url, buffer_size, workers) as repo:
        try:
            container = repo.blob_container(parse_blob_path(path))
            with container.read_blob(blob) as stream:
                out = sys.stdout.buffer
                for chunk in stream.iter_chunks():
                    out.write(chunk)
                out.flush()
        except BlobStoreError as e:
            _fail(e)


@app.command()
def get(
    url: str = typer.Argument(..., help="Repository base URL"),
    blob: str = typer.Argument(..., help="Blob name"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Container path, e.g. indices/0"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Destination file (default: blob name)"),
    buffer_size: str = typer.Option("100kb", "--buffer-size", help="Read buffer size, e.g. 64kb"),
    workers: int = typer.Option(DEFAULT_CONCURRENT_STREAMS, "--workers", help="Concurrent read streams"),
):
    """Download a blob to a local file."""
    dest = output or Path(blob)
    with _open_repository(url, buffer_size, workers) as repo:
        try:
            container = repo.blob_container(parse_blob_path(path))
            size = 0
            with container.read_blob(blob) as stream:
                chunks = stream.iter_chunks()
                # Fail before creating dest if the blob can't be opened
                first = next(chunks, b"")
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    for chunk in itertools.chain([first], chunks):
                        f.write(chunk)
                        size += len(chunk)
        except BlobStoreError as e:
            _fail(e)

    console.print(f"[green]✓[/green] {escape(blob)} → {escape(str(dest))} ({humanize_size(size)})")


@app.command()
def exists(
    url: str = typer.Argument(..., help="Repository base URL"),
    blob: str = typer.Argument(..., help="Blob name"),
    path: Optional[str] = typer.Option(None, "--path", "-p", help="Container path, e.g. indices/0"),
):
    """Check whether a blob exists (exit code 1 if it does not)."""
    with _open_repository(url, "100kb", 1) as repo:
        try:
            container = repo.blob_container(parse_blob_path(path))
            found = container.blob_exists(blob)
        except BlobStoreError as e:
            _fail(e)

    if not found:
        console.print(f"[yellow]✗[/yellow] {escape(blob)} not found")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] {escape(blob)} exists")


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
