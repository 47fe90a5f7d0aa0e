"""SQLAlchemy ORM models for the local SQLite store.

Tables:
- authors: People books are attributed to
- books: Book records, optionally carrying a source origin id
- chapters: Ordered chapters of a book
- quotes: Highlights and passages
- notes: Free-form annotations on a quote or book
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utcnow() -> datetime:
    """Current UTC instant as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Author(Base):
    """Author model."""

    __tablename__ = "authors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    books: Mapped[list["Book"]] = relationship("Book", back_populates="author")

    __table_args__ = (
        Index(
            "uq_authors_name_live",
            "name",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Author(id={self.id}, name='{self.name}')>"


class Book(Base):
    """Book model."""

    __tablename__ = "books"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    author_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("authors.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    publication_year: Mapped[Optional[str]] = mapped_column(String(10))

    # Kobo volume id, Apple Books asset id, or the Kindle title
    original_id: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    author: Mapped[Optional["Author"]] = relationship("Author", back_populates="books")
    chapters: Mapped[list["Chapter"]] = relationship(
        "Chapter", back_populates="book", order_by="Chapter.volume_index"
    )

    __table_args__ = (
        Index(
            "uq_books_original_id_live",
            "original_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND original_id IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}')>"


class Chapter(Base):
    """Chapter model - ordered by volume index within a book."""

    __tablename__ = "chapters"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("books.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    volume_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    original_id: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    book: Mapped["Book"] = relationship("Book", back_populates="chapters")

    __table_args__ = (
        Index(
            "uq_chapters_original_id_live",
            "book_id",
            "original_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND original_id IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Chapter(id={self.id}, book_id={self.book_id}, index={self.volume_index})>"


class Quote(Base):
    """Quote model - a highlighted passage."""

    __tablename__ = "quotes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("books.id"), index=True
    )
    author_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("authors.id"))
    chapter_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("chapters.id"))

    # Fraction of the book/chapter read at the highlight (0.0-1.0)
    chapter_progress: Mapped[Optional[float]] = mapped_column(Float)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    starred: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    imported_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Kobo bookmark id or Apple Books annotation uuid; NULL for clippings
    original_id: Mapped[Optional[str]] = mapped_column(Text)

    book: Mapped[Optional["Book"]] = relationship("Book")
    chapter: Mapped[Optional["Chapter"]] = relationship("Chapter")
    notes: Mapped[list["Note"]] = relationship("Note", back_populates="quote")

    __table_args__ = (
        Index(
            "uq_quotes_original_id_live",
            "original_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL AND original_id IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Quote(id={self.id}, book_id={self.book_id})>"

    @property
    def short_content(self) -> str:
        """Get truncated content for display."""
        if len(self.content) <= 100:
            return self.content
        return self.content[:97] + "..."


class Note(Base):
    """Note model - annotation attached to a quote and/or a book."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    book_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("books.id"), index=True
    )
    author_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("authors.id"))
    quote_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("quotes.id"), index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    quote: Mapped[Optional["Quote"]] = relationship("Quote", back_populates="notes")

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, quote_id={self.quote_id})>"
