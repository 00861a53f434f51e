# ABOUTME: The `shelfsync rm` command for dropping a cache entry.
# ABOUTME: Removes the metadata and cover file for one path; the EPUB itself is untouched.

from pathlib import Path

import click
from rich.console import Console

from shelfsync.cli.options import cover_dir_option, db_option, open_cache


@click.command("rm")
@click.argument("file_path")
@db_option
@cover_dir_option
def rm(file_path: str, db_path: Path | None, cover_dir: Path | None) -> None:
    """Remove a book from the metadata cache by its file path."""
    console = Console()
    store, cache = open_cache(db_path, cover_dir)
    try:
        books = cache.get_all()
        key = file_path
        if key not in books:
            # Cache keys are absolute; accept a relative path too
            key = str(Path(file_path).resolve())
        if key not in books:
            console.print("[red]Error:[/red] not in cache")
            raise SystemExit(1)
        cache.remove(key)
    finally:
        store.close()

    console.print(f"[green]Removed[/green] {books[key].title}")
