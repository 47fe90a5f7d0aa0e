"""Database module for local SQLite storage."""

from .models import Author, Book, Chapter, Note, Quote
from .schemas import (
    AuthorCreate,
    BookCreate,
    ChapterCreate,
    EntityKind,
    ImportSource,
    ItemKind,
    NoteCreate,
    QuoteCreate,
)
from .sqlite import Database, get_db

__all__ = [
    "Author",
    "Book",
    "Chapter",
    "Note",
    "Quote",
    "AuthorCreate",
    "BookCreate",
    "ChapterCreate",
    "NoteCreate",
    "QuoteCreate",
    "EntityKind",
    "ImportSource",
    "ItemKind",
    "Database",
    "get_db",
]
