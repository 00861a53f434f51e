# ABOUTME: The `shelfsync ls` command for listing cached books.
# ABOUTME: Displays a Rich table of every entry in the metadata cache without re-validating.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfsync.cli.options import cover_dir_option, db_option, open_cache
from shelfsync.core.library import deduplicate_books


@click.command("ls")
@db_option
@cover_dir_option
@click.option("--paths", "show_paths", is_flag=True, default=False, help="Show file paths.")
def ls(db_path: Path | None, cover_dir: Path | None, show_paths: bool) -> None:
    """List all books in the metadata cache."""
    console = Console()
    store, cache = open_cache(db_path, cover_dir)
    try:
        books = deduplicate_books(cache.get_all().values())
    finally:
        store.close()

    if not books:
        console.print("[yellow]No books in the cache.[/yellow]")
        return

    table = Table()
    table.add_column("Title", style="bold")
    table.add_column("Author")
    table.add_column("Cover", width=5)
    table.add_column("TOC", justify="right", width=4)
    if show_paths:
        table.add_column("Path", style="dim")

    for book in sorted(books, key=lambda b: (b.title.casefold(), b.file_path)):
        row = [
            book.title,
            book.author,
            "yes" if book.has_cover else "no",
            str(len(book.table_of_contents)),
        ]
        if show_paths:
            row.append(book.file_path)
        table.add_row(*row)

    console.print(table)
    console.print(f"\n[dim]{len(books)} book(s)[/dim]")
