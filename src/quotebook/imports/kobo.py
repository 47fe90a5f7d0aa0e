"""Kobo e-reader importer.

Reads highlights and notes directly from a KoboReader.sqlite database
copied off the device.
"""

import sqlite3
from pathlib import Path
from typing import Optional

from ..db.schemas import ImportSource, ItemKind
from ..logger import get_logger
from .base import (
    BaseSource,
    InvalidFormat,
    SourceBatch,
    SourceBook,
    SourceChapter,
    SourceItem,
    SourceUnreadable,
)

logger = get_logger(__name__)

# First database version using the volume-to-book bookmark layout
KOBO_V175 = 175

QUERY_VERSION = "SELECT version FROM DbVersion;"

QUERY_BOOKS_AUTHORS = """
    SELECT DISTINCT
        b.VolumeID AS volume_id,
        c.Title AS title,
        c.Attribution AS author
    FROM Bookmark b
    INNER JOIN content c ON b.VolumeID = c.ContentID
    ORDER BY c.Title;
"""

QUERY_CHAPTERS = """
    SELECT DISTINCT
        c.ContentID AS content_id,
        c.Title AS title,
        c.VolumeIndex AS volume_index
    FROM content c
    WHERE c.BookID = ?
    ORDER BY c.VolumeIndex;
"""

# Bookmarks are attached to their book through the volume id. The
# bookmark content id may extend a chapter content id with an anchor, so
# the chapter row is the longest one prefixing it; when none does (PDFs,
# kepub split files) the chapter columns are NULL.
QUERY_ITEMS_V175 = """
    SELECT
        b.BookmarkID AS bookmark_id,
        b.VolumeID AS volume_id,
        c.ContentID AS content_id,
        b.Text AS text,
        b.Annotation AS annotation,
        b.DateCreated AS date_created,
        b.DateModified AS date_modified,
        b.ChapterProgress AS chapter_progress,
        c.BookTitle AS book_title,
        c.Title AS chapter,
        b.Type AS item_type,
        MAX(LENGTH(c.ContentID)) AS match_length
    FROM Bookmark b
    LEFT JOIN content c
        ON b.VolumeID = c.BookID
        AND substr(b.ContentID, 1, LENGTH(c.ContentID)) = c.ContentID
    GROUP BY b.BookmarkID
    ORDER BY b.ChapterProgress ASC, b.DateCreated ASC;
"""

# Older databases only relate bookmarks to content rows by content id.
QUERY_ITEMS_V174 = """
    SELECT
        b.BookmarkID AS bookmark_id,
        b.VolumeID AS volume_id,
        c.ContentID AS content_id,
        b.Text AS text,
        b.Annotation AS annotation,
        b.DateCreated AS date_created,
        b.DateModified AS date_modified,
        b.ChapterProgress AS chapter_progress,
        c.BookTitle AS book_title,
        c.Title AS chapter,
        b.Type AS item_type
    FROM Bookmark b
    LEFT JOIN content c ON b.ContentID = c.ContentID
    GROUP BY b.BookmarkID
    ORDER BY b.ChapterProgress ASC, b.DateCreated ASC;
"""

_ITEM_KINDS = {
    "highlight": ItemKind.HIGHLIGHT,
    "note": ItemKind.NOTE,
    "dogear": ItemKind.BOOKMARK,
}


class KoboSource(BaseSource):
    """Extracts books, chapters and bookmarks from a Kobo database."""

    source = ImportSource.KOBO

    def extract(self, location: Optional[Path] = None) -> SourceBatch:
        """Read a KoboReader.sqlite file.

        Args:
            location: Path to the database file

        Returns:
            SourceBatch with one SourceBook per bookmarked volume and one
            SourceItem per bookmark
        """
        if location is None:
            raise SourceUnreadable("No Kobo database path given")
        path = self.require_file(location, "Kobo database file")

        with self.open_sqlite(path, "Kobo database") as conn:
            version = self.read_version(conn)
            logger.info("Kobo database version %s", version)

            try:
                books = self._read_books(conn)
                items = self._read_items(conn, version)
            except sqlite3.Error as e:
                raise SourceUnreadable(f"Failed to read Kobo database: {e}") from e

        logger.debug("Read %d books and %d bookmarks from %s", len(books), len(items), path)
        return SourceBatch(source=self.source, location=path, books=books, items=items)

    @staticmethod
    def read_version(conn: sqlite3.Connection) -> int:
        """Read the schema version marker."""
        try:
            row = conn.execute(QUERY_VERSION).fetchone()
        except sqlite3.Error as e:
            raise SourceUnreadable(f"Failed to get Kobo database version: {e}") from e
        if row is None or row[0] is None:
            raise SourceUnreadable("Failed to get Kobo database version: no version row")
        try:
            return int(row[0])
        except (TypeError, ValueError) as e:
            raise SourceUnreadable(f"Unrecognized Kobo database version: {row[0]!r}") from e

    @staticmethod
    def items_query(version: int) -> str:
        """Select the bookmark query matching a database version."""
        return QUERY_ITEMS_V175 if version >= KOBO_V175 else QUERY_ITEMS_V174

    def _read_books(self, conn: sqlite3.Connection) -> list[SourceBook]:
        books = []
        for row in conn.execute(QUERY_BOOKS_AUTHORS).fetchall():
            if not row["title"]:
                raise InvalidFormat(f"Kobo volume without a title: {row['volume_id']}")
            chapters = [
                SourceChapter(
                    origin_id=ch["content_id"],
                    title=ch["title"] or "",
                    volume_index=int(ch["volume_index"] or 0),
                )
                for ch in conn.execute(QUERY_CHAPTERS, (row["volume_id"],)).fetchall()
            ]
            books.append(
                SourceBook(
                    origin_id=row["volume_id"],
                    title=row["title"],
                    author=row["author"] or None,
                    chapters=chapters,
                )
            )
        return books

    def _read_items(self, conn: sqlite3.Connection, version: int) -> list[SourceItem]:
        items = []
        for row in conn.execute(self.items_query(version)).fetchall():
            item_type = (row["item_type"] or "highlight").lower()
            kind = _ITEM_KINDS.get(item_type)
            if kind is None:
                logger.debug("Skipping Kobo bookmark %s of type %s", row["bookmark_id"], item_type)
                continue
            if not row["date_created"]:
                raise InvalidFormat(f"Kobo bookmark {row['bookmark_id']} has no creation date")
            items.append(
                SourceItem(
                    origin_id=row["bookmark_id"],
                    book_origin_id=row["volume_id"],
                    kind=kind,
                    text=row["text"],
                    annotation=row["annotation"],
                    created_at=row["date_created"],
                    updated_at=row["date_modified"] or None,
                    chapter_origin_id=row["content_id"],
                    chapter_title=row["chapter"],
                    chapter_progress=row["chapter_progress"],
                )
            )
        return items
