# ABOUTME: The `shelfsync inspect` command for viewing EPUB metadata.
# ABOUTME: Parses a single EPUB without touching the cache and prints what was found.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from shelfsync.formats.archive import LARGE_FILE_THRESHOLD
from shelfsync.formats.epub import ParseError, parse_epub


@click.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--large-file-threshold",
    type=click.IntRange(min=0),
    default=LARGE_FILE_THRESHOLD,
    show_default=True,
    help="Size in bytes above which the EPUB is extracted to a temp directory.",
)
@click.option("--toc/--no-toc", default=True, help="Show the table of contents.")
def inspect(path: Path, large_file_threshold: int, toc: bool) -> None:
    """Show metadata extracted from an EPUB file."""
    console = Console()
    try:
        meta = parse_epub(path, large_file_threshold=large_file_threshold)
    except ParseError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise SystemExit(1) from exc

    table = Table(title=str(path.name), show_header=False, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("Title", meta.title)
    table.add_row("Author", meta.author)
    table.add_row("Cover", "yes" if meta.has_cover else "no")
    table.add_row("Size", f"{meta.file_size} bytes")
    table.add_row("Chapters", str(len(meta.table_of_contents)))
    console.print(table)

    if toc and meta.table_of_contents:
        contents = Table(title="Contents")
        contents.add_column("#", style="dim", width=4)
        contents.add_column("Label", style="bold")
        contents.add_column("Href")
        for index, entry in enumerate(meta.table_of_contents, start=1):
            contents.add_row(str(index), entry.label, entry.href)
        console.print(contents)
