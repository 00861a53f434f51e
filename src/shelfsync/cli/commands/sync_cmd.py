# ABOUTME: The `shelfsync sync` command for scanning directories into the cache.
# ABOUTME: Runs one library session: cache-first load, background sync, batched enrichment.

import asyncio
import functools
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TaskID,
    TimeRemainingColumn,
)
from rich.table import Table

from shelfsync.cli.options import cover_dir_option, db_option, open_cache
from shelfsync.core.events import LibraryEvent, ProcessingCountUpdated
from shelfsync.core.library import BATCH_DELAY, BATCH_SIZE, LibraryService
from shelfsync.core.scanner import DirectoryScanner
from shelfsync.db.cache import MetadataCache
from shelfsync.formats.archive import LARGE_FILE_THRESHOLD
from shelfsync.formats.epub import parse_epub
from shelfsync.metadata.types import BookMetadata

logger = logging.getLogger(__name__)


def _make_progress(console: Console) -> Progress:
    """Create a Rich progress bar for new-file enrichment."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    )


class _ProgressReporter:
    """Feeds ProcessingCountUpdated events into a Rich progress task.

    The first count of a pass is the number of new files; later counts are
    what remains.
    """

    def __init__(self, progress: Progress) -> None:
        self._progress = progress
        self._task_id: TaskID | None = None
        self._total = 0

    @property
    def total(self) -> int:
        return self._total

    def __call__(self, event: LibraryEvent) -> None:
        if not isinstance(event, ProcessingCountUpdated):
            return
        if self._task_id is None:
            self._total = event.remaining
            self._task_id = self._progress.add_task("Parsing new books", total=event.remaining)
            return
        self._progress.update(self._task_id, completed=self._total - event.remaining)


async def _run_session(
    service: LibraryService, reporter: _ProgressReporter
) -> tuple[list[BookMetadata], list[BookMetadata]]:
    """Initialize the library, wait for the background sync, return before/after."""
    unsubscribe = service.events.subscribe(reporter)
    try:
        before = await service.initialize()
        await service.wait_for_sync()
        after = await service.get_all_books()
    finally:
        unsubscribe()
        await service.dispose()
    return before, after


@click.command()
@click.argument(
    "roots",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@db_option
@cover_dir_option
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=BATCH_SIZE,
    show_default=True,
    help="Number of EPUBs parsed concurrently.",
)
@click.option(
    "--batch-delay",
    type=click.FloatRange(min=0.0),
    default=BATCH_DELAY,
    show_default=True,
    help="Pause in seconds between batches.",
)
@click.option(
    "--large-file-threshold",
    type=click.IntRange(min=0),
    default=LARGE_FILE_THRESHOLD,
    show_default=True,
    help="Size in bytes above which an EPUB is extracted to a temp directory.",
)
def sync(
    roots: tuple[Path, ...],
    db_path: Path | None,
    cover_dir: Path | None,
    batch_size: int,
    batch_delay: float,
    large_file_threshold: int,
) -> None:
    """Scan ROOTS for EPUB files and bring the metadata cache up to date."""
    console = Console()
    store, cache = open_cache(db_path, cover_dir)
    service = _build_service(
        cache, roots, batch_size, batch_delay, large_file_threshold
    )

    progress = _make_progress(console)
    reporter = _ProgressReporter(progress)
    try:
        with progress:
            before, after = asyncio.run(_run_session(service, reporter))
    finally:
        store.close()

    before_paths = {book.file_path for book in before}
    after_paths = {book.file_path for book in after}
    added = len(after_paths - before_paths)
    removed = len(before_paths - after_paths)
    failed = reporter.total - added

    if after:
        table = Table()
        table.add_column("Title", style="bold")
        table.add_column("Author")
        table.add_column("Cover", width=5)
        for book in sorted(after, key=lambda b: (b.title.casefold(), b.file_path)):
            table.add_row(book.title, book.author, "yes" if book.has_cover else "no")
        console.print(table)

    console.print(
        f"\n[green]{len(after)} book(s) in library[/green] "
        f"([bold]{added}[/bold] added, {removed} removed)"
    )
    if failed > 0:
        console.print(f"[yellow]{failed} file(s) could not be parsed.[/yellow]")


def _build_service(
    cache: MetadataCache,
    roots: tuple[Path, ...],
    batch_size: int,
    batch_delay: float,
    large_file_threshold: int,
) -> LibraryService:
    parse_fn = functools.partial(parse_epub, large_file_threshold=large_file_threshold)
    logger.debug("Syncing %d root(s) with batch size %d", len(roots), batch_size)
    return LibraryService(
        cache,
        DirectoryScanner(roots),
        parse_fn=parse_fn,
        batch_size=batch_size,
        batch_delay=batch_delay,
    )
