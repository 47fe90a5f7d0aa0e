"""Reconciling importer.

Runs one source adapter's output through the identity resolver and into
the store. A run is one transaction: either every new author, book,
chapter, quote and note from the source is committed, or none is.

Runs are serialized by a process-wide lock. The resolver's
read-then-insert is not isolated between transactions, so two runs
interleaving could both create the same entity.
"""

import asyncio
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Generator, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from tqdm import tqdm

from ..config import get_config
from ..db.schemas import (
    AuthorCreate,
    BookCreate,
    ChapterCreate,
    ImportSource,
    ItemKind,
    NoteCreate,
    QuoteCreate,
)
from ..db.sqlite import Database, get_db
from ..logger import get_logger
from .apple_books import AppleBooksSource
from .base import (
    BaseSource,
    InvalidFormat,
    PersistenceError,
    QuoteImportError,
    SourceBatch,
    SourceBook,
    SourceItem,
)
from .dates import normalize_or_now, normalize_timestamp, utcnow
from .kindle import KindleClippingsSource
from .kobo import KoboSource
from .resolver import IdentityResolver, RunIdMaps

logger = get_logger(__name__)

# Held for the whole of a run, extraction included
_IMPORT_LOCK = threading.Lock()

SOURCES: dict[ImportSource, type[BaseSource]] = {
    ImportSource.KOBO: KoboSource,
    ImportSource.KINDLE: KindleClippingsSource,
    ImportSource.APPLE_BOOKS: AppleBooksSource,
}

# Core Data floats may fall back to the import time; string dates may not
LENIENT_TIMESTAMP_SOURCES = {ImportSource.APPLE_BOOKS}


class ImportPhase(str, Enum):
    """Lifecycle of a single import run."""

    IDLE = "idle"
    EXTRACTING = "extracting"
    PER_BOOK = "per_book"
    PER_ITEM = "per_item"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class ImportSummary:
    """Counts of entities a run created."""

    source: ImportSource
    new_books: int = 0
    new_quotes: int = 0
    new_notes: int = 0

    @property
    def message(self) -> str:
        return (
            f"Imported successfully {self.new_books} new books "
            f"and {self.new_quotes} new quotes"
        )


@contextmanager
def import_transaction(db: Database, debug: bool = False) -> Generator[Session, None, None]:
    """One session for a whole run; commit on success, rollback on error."""
    try:
        with db.get_session() as session:
            yield session
    except SQLAlchemyError as e:
        raise PersistenceError("Failed to commit transaction", cause=e, debug=debug) from e


class ReconcilingImporter:
    """Imports one source location into the store."""

    def __init__(
        self,
        source: BaseSource,
        db: Optional[Database] = None,
        show_progress: bool = False,
    ):
        """Initialize importer.

        Args:
            source: Adapter for the platform being imported
            db: Database instance (uses global if not provided)
            show_progress: Show tqdm progress bars
        """
        self.source = source
        self.db = db or get_db()
        self.show_progress = show_progress
        self.debug = get_config().debug
        self.phase = ImportPhase.IDLE

    @classmethod
    def for_source(
        cls, source: ImportSource, db: Optional[Database] = None, show_progress: bool = False
    ) -> "ReconcilingImporter":
        """Build an importer with the adapter registered for a source."""
        return cls(SOURCES[source](), db=db, show_progress=show_progress)

    def run(self, location: Optional[Path] = None) -> ImportSummary:
        """Extract the source and reconcile it into the store.

        Args:
            location: Source file or directory (adapter specific)

        Returns:
            ImportSummary with the number of new books and quotes

        Raises:
            QuoteImportError: On any failure; nothing is committed
        """
        with _IMPORT_LOCK:
            logger.info("Importing from %s: %s", self.source.source.value, location or "default location")

            self._enter(ImportPhase.EXTRACTING)
            try:
                batch = self.source.extract(location)
            except QuoteImportError as e:
                logger.error("Error importing from %s: %s", self.source.source.value, e)
                self._enter(ImportPhase.ROLLED_BACK)
                raise

            logger.info("Extracted %d books and %d items", len(batch.books), len(batch.items))

            try:
                with import_transaction(self.db, self.debug) as session:
                    summary = self._reconcile(batch, session)
            except QuoteImportError as e:
                self._enter(ImportPhase.ROLLED_BACK)
                logger.error("Error importing from %s: %s", self.source.source.value, e)
                raise

            self._enter(ImportPhase.COMMITTED)
            logger.info("Import result: %s (%d new notes)", summary.message, summary.new_notes)
            return summary

    def _enter(self, phase: ImportPhase) -> None:
        logger.debug("Import phase: %s -> %s", self.phase.value, phase.value)
        self.phase = phase

    async def run_async(self, location: Optional[Path] = None) -> ImportSummary:
        """Run the import in a worker thread without blocking the event loop."""
        return await asyncio.to_thread(self.run, location)

    # -------------------------------------------------------------------------
    # Reconciliation
    # -------------------------------------------------------------------------

    def _reconcile(self, batch: SourceBatch, session: Session) -> ImportSummary:
        resolver = IdentityResolver(self.db, session, debug=self.debug)
        maps = RunIdMaps()
        summary = ImportSummary(source=batch.source)
        imported_at = utcnow()
        lenient = batch.source in LENIENT_TIMESTAMP_SOURCES

        self._enter(ImportPhase.PER_BOOK)
        for book in tqdm(batch.books, desc="Books", disable=not self.show_progress):
            if self._reconcile_book(book, session, resolver, maps):
                summary.new_books += 1

        self._enter(ImportPhase.PER_ITEM)
        for item in tqdm(batch.items, desc="Highlights", disable=not self.show_progress):
            self._reconcile_item(item, session, resolver, maps, summary, imported_at, lenient)

        return summary

    def _reconcile_book(
        self,
        book: SourceBook,
        session: Session,
        resolver: IdentityResolver,
        maps: RunIdMaps,
    ) -> bool:
        """Resolve or create a book and its chapters. Returns True if created."""
        created = False
        book_id = maps.books.get(book.origin_id)

        if book_id is None:
            book_id = resolver.resolve_book(book.origin_id)
            if book_id is not None:
                maps.book_authors[book.origin_id] = resolver.book_author_id(book_id)
            else:
                author_id = self._author_id(book.author, session, resolver, maps)
                book_id = self._insert(
                    "book",
                    self.db.insert_book,
                    lambda: BookCreate(
                        title=book.title, author_id=author_id, original_id=book.origin_id
                    ),
                    session,
                ).id
                maps.book_authors[book.origin_id] = author_id
                created = True
            maps.books[book.origin_id] = book_id

        for chapter in book.chapters:
            if chapter.origin_id in maps.chapters:
                continue
            chapter_id = resolver.resolve_chapter(chapter.origin_id, book_id=book_id)
            if chapter_id is None:
                chapter_id = self._insert(
                    "chapter",
                    self.db.insert_chapter,
                    lambda: ChapterCreate(
                        book_id=book_id,
                        title=chapter.title,
                        volume_index=chapter.volume_index,
                        original_id=chapter.origin_id,
                    ),
                    session,
                ).id
            maps.add_chapter(book.origin_id, chapter.origin_id, chapter.title, chapter_id)

        return created

    def _author_id(
        self,
        name: Optional[str],
        session: Session,
        resolver: IdentityResolver,
        maps: RunIdMaps,
    ) -> Optional[str]:
        if not name:
            return None
        if name in maps.authors:
            return maps.authors[name]
        author_id = resolver.resolve_author(name)
        if author_id is None:
            author_id = self._insert(
                "author", self.db.insert_author, lambda: AuthorCreate(name=name), session
            ).id
        maps.authors[name] = author_id
        return author_id

    def _reconcile_item(
        self,
        item: SourceItem,
        session: Session,
        resolver: IdentityResolver,
        maps: RunIdMaps,
        summary: ImportSummary,
        imported_at: datetime,
        lenient: bool,
    ) -> None:
        if item.kind == ItemKind.BOOKMARK:
            return

        book_id = maps.books.get(item.book_origin_id)
        if book_id is None:
            book_id = resolver.resolve_book(item.book_origin_id)
            if book_id is None:
                logger.debug("Quote missing book %s", item.book_origin_id)
                return
            maps.books[item.book_origin_id] = book_id
            maps.book_authors[item.book_origin_id] = resolver.book_author_id(book_id)
        author_id = maps.book_authors.get(item.book_origin_id)

        if lenient:
            created_at = normalize_or_now(item.created_at, fallback=imported_at)
        else:
            created_at = normalize_timestamp(item.created_at)
        updated_at = normalize_or_now(item.updated_at, fallback=created_at)

        # Standalone note (Kindle "Note" clipping): no passage and no origin id
        if item.kind == ItemKind.NOTE and not item.has_text and not item.origin_id:
            if item.has_annotation:
                self._ensure_note(
                    item, book_id, author_id, None, created_at, updated_at, session, resolver, summary
                )
            return

        if not item.has_text and not item.has_annotation:
            logger.debug("Skipping empty bookmark %s", item.origin_id)
            return

        content = item.text if item.has_text else ""
        if item.origin_id:
            quote_id = resolver.resolve_quote(origin_id=item.origin_id)
        else:
            quote_id = resolver.resolve_quote(book_id=book_id, content=content)

        if quote_id is None:
            chapter_id = maps.chapter_for(
                item.book_origin_id, item.chapter_origin_id, item.chapter_title
            )
            quote_id = self._insert(
                "quote",
                self.db.insert_quote,
                lambda: QuoteCreate(
                    book_id=book_id,
                    author_id=author_id,
                    chapter_id=chapter_id,
                    chapter_progress=item.chapter_progress,
                    content=content,
                    starred=False,
                    created_at=created_at,
                    updated_at=updated_at,
                    imported_at=imported_at,
                    original_id=item.origin_id,
                ),
                session,
            ).id
            summary.new_quotes += 1

        if item.kind == ItemKind.NOTE and item.has_annotation:
            self._ensure_note(
                item, book_id, author_id, quote_id, created_at, updated_at, session, resolver, summary
            )

    def _ensure_note(
        self,
        item: SourceItem,
        book_id: str,
        author_id: Optional[str],
        quote_id: Optional[str],
        created_at: datetime,
        updated_at: datetime,
        session: Session,
        resolver: IdentityResolver,
        summary: ImportSummary,
    ) -> None:
        if resolver.resolve_note(book_id, quote_id, item.annotation) is not None:
            return
        self._insert(
            "note",
            self.db.insert_note,
            lambda: NoteCreate(
                book_id=book_id,
                author_id=author_id,
                quote_id=quote_id,
                content=item.annotation,
                created_at=created_at,
                updated_at=updated_at,
            ),
            session,
        )
        summary.new_notes += 1

    def _insert(self, what: str, insert, build, session: Session):
        """Validate a create-schema and insert it, translating failures."""
        try:
            data = build()
        except ValidationError as e:
            raise InvalidFormat(f"Invalid {what} record: {e}") from e
        try:
            return insert(data, session)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to insert {what}", cause=e, debug=self.debug) from e


def import_source(
    source: ImportSource,
    location: Optional[Path] = None,
    db: Optional[Database] = None,
    show_progress: bool = False,
) -> str:
    """Import one source location and return the summary message.

    Raises:
        QuoteImportError: On any failure; nothing is committed
    """
    importer = ReconcilingImporter.for_source(source, db=db, show_progress=show_progress)
    return importer.run(location).message


def import_kobo(path: Path, db: Optional[Database] = None, show_progress: bool = False) -> str:
    """Import a KoboReader.sqlite file."""
    return import_source(ImportSource.KOBO, Path(path), db=db, show_progress=show_progress)


def import_kindle(path: Path, db: Optional[Database] = None, show_progress: bool = False) -> str:
    """Import a Kindle My Clippings.txt file."""
    return import_source(ImportSource.KINDLE, Path(path), db=db, show_progress=show_progress)


def import_apple_books(
    container: Optional[Path] = None,
    db: Optional[Database] = None,
    show_progress: bool = False,
) -> str:
    """Import from the Apple Books container (configured location by default)."""
    return import_source(
        ImportSource.APPLE_BOOKS,
        Path(container) if container is not None else None,
        db=db,
        show_progress=show_progress,
    )
