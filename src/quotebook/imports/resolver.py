"""Identity resolution for imported records.

Decides, for each incoming record, whether a matching entity already
exists in the store. Lookups are read-only and must run inside the same
session (transaction) as the inserts that follow them.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.schemas import EntityKind
from ..db.sqlite import Database
from .base import PersistenceError


@dataclass
class RunIdMaps:
    """External id -> internal id maps for one import run.

    Owned by a single run and discarded with it; never shared across runs.
    """

    # author name -> author id
    authors: dict[str, str] = field(default_factory=dict)
    # book origin id -> book id
    books: dict[str, str] = field(default_factory=dict)
    # book origin id -> author id (None when the book has no author)
    book_authors: dict[str, Optional[str]] = field(default_factory=dict)
    # chapter origin id -> chapter id
    chapters: dict[str, str] = field(default_factory=dict)
    # (book origin id, chapter title) -> chapter id
    chapter_titles: dict[tuple[str, str], str] = field(default_factory=dict)

    def add_chapter(self, book_origin_id: str, origin_id: str, title: str, chapter_id: str) -> None:
        self.chapters[origin_id] = chapter_id
        self.chapter_titles.setdefault((book_origin_id, title), chapter_id)

    def chapter_for(
        self,
        book_origin_id: str,
        origin_id: Optional[str],
        title: Optional[str],
    ) -> Optional[str]:
        """Look up a chapter by origin id, then by title within its book."""
        if origin_id and origin_id in self.chapters:
            return self.chapters[origin_id]
        if title:
            return self.chapter_titles.get((book_origin_id, title))
        return None


class IdentityResolver:
    """Finds existing entities matching external records.

    Every method returns the internal id of the match, or None when the
    record needs to be created.
    """

    def __init__(self, db: Database, session: Session, debug: bool = False):
        self.db = db
        self.session = session
        self.debug = debug

    def resolve(self, kind: EntityKind, key: Any) -> Optional[str]:
        """Resolve an entity by kind.

        Keys per kind:
            AUTHOR: display name
            BOOK: origin id
            CHAPTER: origin id, or (origin id, book id)
            QUOTE: origin id, or (book id, content) when there is none
            NOTE: (book id, quote id, content)
        """
        if kind == EntityKind.AUTHOR:
            return self.resolve_author(key)
        if kind == EntityKind.BOOK:
            return self.resolve_book(key)
        if kind == EntityKind.CHAPTER:
            if isinstance(key, tuple):
                return self.resolve_chapter(key[0], book_id=key[1])
            return self.resolve_chapter(key)
        if kind == EntityKind.QUOTE:
            if isinstance(key, tuple):
                book_id, content = key
                return self.resolve_quote(book_id=book_id, content=content)
            return self.resolve_quote(origin_id=key)
        if kind == EntityKind.NOTE:
            book_id, quote_id, content = key
            return self.resolve_note(book_id, quote_id, content)
        raise ValueError(f"Unknown entity kind: {kind}")

    def resolve_author(self, name: str) -> Optional[str]:
        """Match an author by exact display name."""
        author = self._lookup("author", self.db.get_author_by_name, name, self.session)
        return author.id if author else None

    def resolve_book(self, origin_id: str) -> Optional[str]:
        """Match a book by origin id."""
        book = self._lookup("book", self.db.get_book_by_original_id, origin_id, self.session)
        return book.id if book else None

    def book_author_id(self, book_id: str) -> Optional[str]:
        """Author id of an existing book."""
        book = self._lookup("book", self.db.get_book, book_id, self.session)
        return book.author_id if book else None

    def resolve_chapter(self, origin_id: str, book_id: Optional[str] = None) -> Optional[str]:
        """Match a chapter by origin id, scoped to a book when given."""
        chapter = self._lookup(
            "chapter",
            self.db.get_chapter_by_original_id,
            origin_id,
            self.session,
            book_id=book_id,
        )
        return chapter.id if chapter else None

    def resolve_quote(
        self,
        origin_id: Optional[str] = None,
        book_id: Optional[str] = None,
        content: Optional[str] = None,
    ) -> Optional[str]:
        """Match a quote by origin id, else by (book id, exact content).

        The content comparison is plain equality: whitespace and
        punctuation differences make two distinct quotes.
        """
        if origin_id:
            quote = self._lookup(
                "quote", self.db.get_quote_by_original_id, origin_id, self.session
            )
            return quote.id if quote else None
        if book_id is None or content is None:
            return None
        quote = self._lookup(
            "quote", self.db.get_quote_by_book_and_content, book_id, content, self.session
        )
        return quote.id if quote else None

    def resolve_note(
        self, book_id: Optional[str], quote_id: Optional[str], content: str
    ) -> Optional[str]:
        """Match a note by its book, quote and exact content."""
        note = self._lookup("note", self.db.get_note, book_id, quote_id, content, self.session)
        return note.id if note else None

    def _lookup(self, what: str, query, *args, **kwargs):
        try:
            return query(*args, **kwargs)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to look up {what}", cause=e, debug=self.debug) from e
