# ABOUTME: The `shelfsync verify` command for checking cache coherence.
# ABOUTME: Validates every cached entry against disk, evicting missing or changed files.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfsync.cli.options import cover_dir_option, db_option, open_cache


@click.command("verify")
@db_option
@cover_dir_option
def verify(db_path: Path | None, cover_dir: Path | None) -> None:
    """Verify the cache: drop entries whose file is gone or changed."""
    console = Console()
    store, cache = open_cache(db_path, cover_dir)
    try:
        books = list(cache.get_all().values())
        evicted = [book for book in books if cache.validate(book) is None]
    finally:
        store.close()

    ok = len(books) - len(evicted)
    if evicted:
        table = Table()
        table.add_column("Title", style="bold")
        table.add_column("Path", style="dim")
        table.add_column("Issue", style="red")
        for book in evicted:
            table.add_row(book.title, book.file_path, "Missing or changed")

        console.print(table)
        console.print(
            f"\n[red]{len(evicted)} stale entry(ies) evicted, {ok} book(s) verified.[/red]"
        )
        raise SystemExit(1)

    console.print(f"[green]All {ok} book(s) verified.[/green]")
