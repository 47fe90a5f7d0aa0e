"""Base importer functionality.

Provides the error taxonomy, the raw record shapes every source adapter
produces, and the common adapter interface.
"""

import sqlite3
from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional, Union

from ..db.schemas import ImportSource, ItemKind

RawTimestamp = Union[str, float, int, datetime]


class QuoteImportError(Exception):
    """Base class for import pipeline failures."""

    pass


class SourceUnreadable(QuoteImportError):
    """Source file or directory pattern is missing or cannot be opened."""

    pass


class InvalidFormat(QuoteImportError):
    """A source record does not have the expected shape."""

    pass


class InvalidTimestamp(InvalidFormat):
    """A timestamp matches none of the recognized encodings."""

    pass


class PersistenceError(QuoteImportError):
    """The target store rejected a read or a write."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, debug: bool = False):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.debug = debug

    def __str__(self) -> str:
        if self.debug and self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


@dataclass
class SourceChapter:
    """A chapter as listed by the source, in reading order."""

    origin_id: str
    title: str
    volume_index: int = 0


@dataclass
class SourceBook:
    """A (book, author) pair with its chapters."""

    origin_id: str
    title: str
    author: Optional[str] = None
    chapters: list[SourceChapter] = field(default_factory=list)


@dataclass
class SourceItem:
    """A single highlight, note or bookmark read from the source."""

    book_origin_id: str
    kind: ItemKind
    created_at: RawTimestamp
    text: Optional[str] = None
    annotation: Optional[str] = None
    updated_at: Optional[RawTimestamp] = None
    origin_id: Optional[str] = None
    chapter_origin_id: Optional[str] = None
    chapter_title: Optional[str] = None
    chapter_progress: Optional[float] = None

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def has_annotation(self) -> bool:
        return bool(self.annotation and self.annotation.strip())


@dataclass
class SourceBatch:
    """Everything one adapter extracted from one source location."""

    source: ImportSource
    location: Optional[Path] = None
    books: list[SourceBook] = field(default_factory=list)
    items: list[SourceItem] = field(default_factory=list)

    def book_ids(self) -> set[str]:
        return {book.origin_id for book in self.books}


class BaseSource(ABC):
    """Base class for all source adapters.

    An adapter reads one external export and returns a SourceBatch. It
    never writes to the source and closes everything it opened before
    returning.
    """

    source: ImportSource

    @abstractmethod
    def extract(self, location: Optional[Path] = None) -> SourceBatch:
        """Read the source at ``location`` into a batch of raw records.

        Raises:
            SourceUnreadable: location is missing or cannot be opened
            InvalidFormat: a record does not have the expected shape
        """
        pass

    @staticmethod
    def require_file(path: Path, description: str) -> Path:
        """Return path if it is an existing file, else raise SourceUnreadable."""
        path = Path(path).expanduser()
        if not path.exists() or not path.is_file():
            raise SourceUnreadable(f"{description} not found: {path}")
        return path

    @staticmethod
    @contextmanager
    def open_sqlite(path: Path, description: str) -> Generator[sqlite3.Connection, None, None]:
        """Open a read-only connection to an external SQLite file."""
        try:
            conn = sqlite3.connect(f"{Path(path).resolve().as_uri()}?mode=ro", uri=True)
        except sqlite3.Error as e:
            raise SourceUnreadable(f"Failed to open {description}: {e}") from e
        conn.row_factory = sqlite3.Row
        with closing(conn):
            yield conn
