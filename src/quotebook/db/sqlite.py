"""SQLite database operations.

Handles database connection, session management, and the lookup/insert
queries used by the import pipeline.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Author, Base, Book, Chapter, Note, Quote
from .schemas import AuthorCreate, BookCreate, ChapterCreate, NoteCreate, QuoteCreate


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Database connection and operations manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses the
                     configured QUOTEBOOK_DB_PATH.
        """
        if db_path is None:
            from ..config import get_config

            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False},
            )
        event.listen(self.engine, "connect", _enable_foreign_keys)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        Base.metadata.create_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        Commits when the block exits normally and rolls back on any
        exception, so one session is one atomic unit of work.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ========================================================================
    # Author Operations
    # ========================================================================

    def get_author_by_name(self, name: str, session: Session) -> Optional[Author]:
        """Get a live author by exact (case-sensitive) name."""
        stmt = select(Author).where(Author.name == name, Author.deleted_at.is_(None))
        return session.execute(stmt).scalars().first()

    def insert_author(self, author: AuthorCreate, session: Session) -> Author:
        """Insert a new author."""
        db_author = Author(name=author.name)
        session.add(db_author)
        session.flush()
        return db_author

    # ========================================================================
    # Book Operations
    # ========================================================================

    def get_book(self, book_id: str, session: Optional[Session] = None) -> Optional[Book]:
        """Get a book by ID."""

        def _get(s: Session) -> Optional[Book]:
            return s.get(Book, book_id)

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                book = _get(s)
                if book:
                    s.expunge(book)
                return book

    def get_book_by_original_id(self, original_id: str, session: Session) -> Optional[Book]:
        """Get a live book by the origin id its source issued."""
        stmt = select(Book).where(
            Book.original_id == original_id, Book.deleted_at.is_(None)
        )
        return session.execute(stmt).scalars().first()

    def insert_book(self, book: BookCreate, session: Session) -> Book:
        """Insert a new book."""
        db_book = Book(
            title=book.title,
            author_id=book.author_id,
            publication_year=book.publication_year,
            original_id=book.original_id,
        )
        session.add(db_book)
        session.flush()
        return db_book

    def list_books(self, session: Optional[Session] = None) -> list[Book]:
        """Get all live books ordered by title."""

        def _get(s: Session) -> list[Book]:
            stmt = (
                select(Book)
                .where(Book.deleted_at.is_(None))
                .order_by(func.lower(Book.title))
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                books = _get(s)
                for book in books:
                    s.expunge(book)
                return books

    def soft_delete_book(self, book_id: str, session: Optional[Session] = None) -> bool:
        """Mark a book as deleted."""

        def _delete(s: Session) -> bool:
            book = s.get(Book, book_id)
            if not book or book.deleted_at is not None:
                return False
            book.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Chapter Operations
    # ========================================================================

    def get_chapter_by_original_id(
        self, original_id: str, session: Session, book_id: Optional[str] = None
    ) -> Optional[Chapter]:
        """Get a live chapter by origin id, optionally scoped to a book."""
        stmt = select(Chapter).where(
            Chapter.original_id == original_id, Chapter.deleted_at.is_(None)
        )
        if book_id is not None:
            stmt = stmt.where(Chapter.book_id == book_id)
        return session.execute(stmt).scalars().first()

    def insert_chapter(self, chapter: ChapterCreate, session: Session) -> Chapter:
        """Insert a new chapter."""
        db_chapter = Chapter(
            book_id=chapter.book_id,
            title=chapter.title,
            volume_index=chapter.volume_index,
            original_id=chapter.original_id,
        )
        session.add(db_chapter)
        session.flush()
        return db_chapter

    def list_chapters(self, book_id: str, session: Optional[Session] = None) -> list[Chapter]:
        """Get the chapters of a book in reading order."""

        def _get(s: Session) -> list[Chapter]:
            stmt = (
                select(Chapter)
                .where(Chapter.book_id == book_id, Chapter.deleted_at.is_(None))
                .order_by(Chapter.volume_index)
            )
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                chapters = _get(s)
                for chapter in chapters:
                    s.expunge(chapter)
                return chapters

    # ========================================================================
    # Quote Operations
    # ========================================================================

    def get_quote_by_original_id(self, original_id: str, session: Session) -> Optional[Quote]:
        """Get a live quote by origin id."""
        stmt = select(Quote).where(
            Quote.original_id == original_id, Quote.deleted_at.is_(None)
        )
        return session.execute(stmt).scalars().first()

    def get_quote_by_book_and_content(
        self, book_id: str, content: str, session: Session
    ) -> Optional[Quote]:
        """Get a live quote by exact content within a book."""
        stmt = select(Quote).where(
            Quote.book_id == book_id,
            Quote.content == content,
            Quote.deleted_at.is_(None),
        )
        return session.execute(stmt).scalars().first()

    def insert_quote(self, quote: QuoteCreate, session: Session) -> Quote:
        """Insert a new quote."""
        db_quote = Quote(
            book_id=quote.book_id,
            author_id=quote.author_id,
            chapter_id=quote.chapter_id,
            chapter_progress=quote.chapter_progress,
            content=quote.content,
            starred=quote.starred,
            created_at=quote.created_at,
            updated_at=quote.updated_at,
            imported_at=quote.imported_at,
            original_id=quote.original_id,
        )
        session.add(db_quote)
        session.flush()
        return db_quote

    def list_quotes(
        self, book_id: Optional[str] = None, session: Optional[Session] = None
    ) -> list[Quote]:
        """Get live quotes, optionally for one book, in reading order."""

        def _get(s: Session) -> list[Quote]:
            stmt = select(Quote).where(Quote.deleted_at.is_(None))
            if book_id is not None:
                stmt = stmt.where(Quote.book_id == book_id)
            stmt = stmt.order_by(Quote.chapter_progress, Quote.created_at)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                quotes = _get(s)
                for quote in quotes:
                    s.expunge(quote)
                return quotes

    def soft_delete_quote(self, quote_id: str, session: Optional[Session] = None) -> bool:
        """Mark a quote as deleted."""

        def _delete(s: Session) -> bool:
            quote = s.get(Quote, quote_id)
            if not quote or quote.deleted_at is not None:
                return False
            quote.deleted_at = datetime.now(timezone.utc).replace(tzinfo=None)
            return True

        if session:
            return _delete(session)
        else:
            with self.get_session() as s:
                return _delete(s)

    # ========================================================================
    # Note Operations
    # ========================================================================

    def get_note(
        self,
        book_id: Optional[str],
        quote_id: Optional[str],
        content: str,
        session: Session,
    ) -> Optional[Note]:
        """Get a live note by its book, quote and exact content."""
        stmt = select(Note).where(
            Note.book_id.is_(None) if book_id is None else Note.book_id == book_id,
            Note.quote_id.is_(None) if quote_id is None else Note.quote_id == quote_id,
            Note.content == content,
            Note.deleted_at.is_(None),
        )
        return session.execute(stmt).scalars().first()

    def insert_note(self, note: NoteCreate, session: Session) -> Note:
        """Insert a new note."""
        db_note = Note(
            book_id=note.book_id,
            author_id=note.author_id,
            quote_id=note.quote_id,
            content=note.content,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )
        session.add(db_note)
        session.flush()
        return db_note

    def list_notes(
        self, quote_id: Optional[str] = None, session: Optional[Session] = None
    ) -> list[Note]:
        """Get live notes, optionally attached to one quote."""

        def _get(s: Session) -> list[Note]:
            stmt = select(Note).where(Note.deleted_at.is_(None))
            if quote_id is not None:
                stmt = stmt.where(Note.quote_id == quote_id)
            stmt = stmt.order_by(Note.created_at)
            return list(s.execute(stmt).scalars().all())

        if session:
            return _get(session)
        else:
            with self.get_session() as s:
                notes = _get(s)
                for note in notes:
                    s.expunge(note)
                return notes

    # ========================================================================
    # Counts
    # ========================================================================

    def count(self, model: type[Base], session: Optional[Session] = None) -> int:
        """Count live rows of a model (authors, books, chapters, quotes, notes)."""

        def _count(s: Session) -> int:
            stmt = select(func.count()).select_from(model).where(model.deleted_at.is_(None))
            return s.execute(stmt).scalar_one()

        if session:
            return _count(session)
        else:
            with self.get_session() as s:
                return _count(s)


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    if _db is not None:
        _db.engine.dispose()
    _db = None
