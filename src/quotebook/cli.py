"""Command-line interface for quotebook.

Built with Typer for commands and Rich for output.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import get_config
from .db import get_db
from .db.models import Note, Quote
from .db.schemas import ImportSource
from .imports import QuoteImportError, ReconcilingImporter
from .logger import setup_logging

# Create the main app
app = typer.Typer(
    name="quotebook",
    help="Collect highlights from Kobo, Kindle and Apple Books.",
    no_args_is_help=True,
)

import_app = typer.Typer(help="Import highlights from an e-reader.")
app.add_typer(import_app, name="import")

console = Console()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also log to this file"),
) -> None:
    """Collect highlights from Kobo, Kindle and Apple Books."""
    setup_logging(
        level="DEBUG" if verbose else get_config().log_level,
        log_file=str(log_file) if log_file else None,
    )


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def run_import(source: ImportSource, location: Optional[Path], progress: bool) -> None:
    """Run one import and report its outcome; exits 1 on failure."""
    importer = ReconcilingImporter.for_source(source, db=get_db(), show_progress=progress)
    try:
        summary = importer.run(location)
    except QuoteImportError as e:
        print_error(str(e))
        raise typer.Exit(1)

    print_success(summary.message)


# ============================================================================
# Import Commands
# ============================================================================


@import_app.command("kobo")
def import_kobo_cmd(
    file: Path = typer.Argument(..., help="Path to KoboReader.sqlite"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars"),
) -> None:
    """Import highlights and notes from a Kobo database."""
    run_import(ImportSource.KOBO, file, progress)


@import_app.command("kindle")
def import_kindle_cmd(
    file: Path = typer.Argument(..., help="Path to My Clippings.txt"),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars"),
) -> None:
    """Import highlights and notes from a Kindle clippings file."""
    run_import(ImportSource.KINDLE, file, progress)


@import_app.command("apple-books")
def import_apple_books_cmd(
    directory: Optional[Path] = typer.Option(
        None, "--dir", "-d", help="Apple Books container (defaults to QUOTEBOOK_APPLE_BOOKS_DIR)"
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars"),
) -> None:
    """Import highlights and notes from Apple Books."""
    run_import(ImportSource.APPLE_BOOKS, directory, progress)


# ============================================================================
# Library Commands
# ============================================================================


@app.command("books")
def list_books_cmd(
    limit: int = typer.Option(20, "--limit", "-l", help="Max books to show"),
) -> None:
    """List imported books with their quote counts."""
    db = get_db()
    books = db.list_books()

    if not books:
        console.print("[dim]No books found.[/dim]")
        return

    table = Table(title="Books", show_header=True, header_style="bold magenta")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=50)
    table.add_column("Quotes", justify="right")

    for book in books[:limit]:
        table.add_row(book.title, str(len(db.list_quotes(book_id=book.id))))

    console.print(table)

    if len(books) > limit:
        console.print(f"[dim]Showing {limit} of {len(books)} books[/dim]")


@app.command("quotes")
def list_quotes_cmd(
    book_id: Optional[str] = typer.Option(None, "--book", "-b", help="Only quotes of this book id"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max quotes to show"),
) -> None:
    """List imported quotes."""
    db = get_db()
    quotes = db.list_quotes(book_id=book_id)

    if not quotes:
        console.print("[dim]No quotes found.[/dim]")
        return

    table = Table(title="Quotes", show_header=True, header_style="bold magenta")
    table.add_column("Quote", style="cyan", no_wrap=False, max_width=70)
    table.add_column("Added", style="green")

    for quote in quotes[:limit]:
        table.add_row(quote.short_content, quote.created_at.strftime("%Y-%m-%d"))

    console.print(table)


@app.command()
def stats() -> None:
    """Show how many quotes and notes have been collected."""
    db = get_db()
    console.print(f"Books:  {len(db.list_books())}")
    console.print(f"Quotes: {db.count(Quote)}")
    console.print(f"Notes:  {db.count(Note)}")


# ============================================================================
# Version Command
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"quotebook version {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
