"""Apple Books importer.

Reads highlights from the two Core Data stores Apple Books keeps in its
sandbox container: the library (BKLibrary) and the annotations
(AEAnnotation).
"""

import sqlite3
from pathlib import Path
from typing import Optional

from ..config import get_config
from ..db.schemas import ImportSource, ItemKind
from ..logger import get_logger
from .base import BaseSource, SourceBatch, SourceBook, SourceItem, SourceUnreadable

logger = get_logger(__name__)

ANNOTATION_DB_PATTERN = "AEAnnotation/AEAnnotation*.sqlite"
LIBRARY_DB_PATTERN = "BKLibrary/BKLibrary*.sqlite"

QUERY_BOOKS = """
    SELECT
        ZASSETID AS id,
        ZAUTHOR AS author,
        ZTITLE AS title
    FROM ZBKLIBRARYASSET;
"""

# Older stores keep the highlighted text in ZFUTUREPROOFING5
QUERY_ANNOTATIONS = """
    SELECT
        ZANNOTATIONUUID AS id,
        ZANNOTATIONASSETID AS book_id,
        COALESCE(ZANNOTATIONSELECTEDTEXT, ZFUTUREPROOFING5) AS content,
        ZANNOTATIONCREATIONDATE AS created_at,
        ZANNOTATIONMODIFICATIONDATE AS modified_at,
        ZANNOTATIONNOTE AS annotation
    FROM ZAEANNOTATION
    WHERE
        ZANNOTATIONDELETED = 0
        AND COALESCE(ZANNOTATIONSELECTEDTEXT, ZFUTUREPROOFING5) IS NOT NULL
        AND COALESCE(ZANNOTATIONSELECTEDTEXT, ZFUTUREPROOFING5) != '';
"""


def resolve_path(root: Path, pattern: str, description: str) -> Path:
    """Return the first file under root matching a glob pattern."""
    matches = sorted(p for p in Path(root).expanduser().glob(pattern) if p.is_file())
    if not matches:
        raise SourceUnreadable(
            f"Apple Books {description} database not found: "
            f"no match for '{Path(root) / pattern}'"
        )
    return matches[0]


class AppleBooksSource(BaseSource):
    """Extracts books and annotations from the Apple Books stores."""

    source = ImportSource.APPLE_BOOKS

    def extract(self, location: Optional[Path] = None) -> SourceBatch:
        """Read the Apple Books library and annotation databases.

        Args:
            location: Apple Books container directory. Defaults to the
                      configured QUOTEBOOK_APPLE_BOOKS_DIR.

        Returns:
            SourceBatch of annotated books and their annotations
        """
        root = Path(location) if location is not None else get_config().apple_books_dir

        annotation_path = resolve_path(root, ANNOTATION_DB_PATTERN, "annotation")
        library_path = resolve_path(root, LIBRARY_DB_PATTERN, "library")

        with self.open_sqlite(library_path, "Apple Books library database") as conn:
            try:
                book_rows = conn.execute(QUERY_BOOKS).fetchall()
            except sqlite3.Error as e:
                raise SourceUnreadable(f"Failed to fetch Apple Books library: {e}") from e

        with self.open_sqlite(annotation_path, "Apple Books annotation database") as conn:
            try:
                annotation_rows = conn.execute(QUERY_ANNOTATIONS).fetchall()
            except sqlite3.Error as e:
                raise SourceUnreadable(f"Failed to fetch Apple Books annotations: {e}") from e

        items = [
            SourceItem(
                origin_id=row["id"],
                book_origin_id=row["book_id"],
                kind=ItemKind.NOTE if row["annotation"] else ItemKind.HIGHLIGHT,
                text=row["content"],
                annotation=row["annotation"],
                created_at=row["created_at"],
                updated_at=row["modified_at"],
            )
            for row in annotation_rows
        ]

        # Books nobody highlighted would only create empty records
        annotated = {item.book_origin_id for item in items}
        books = [
            SourceBook(origin_id=row["id"], title=row["title"] or row["id"], author=row["author"] or None)
            for row in book_rows
            if row["id"] in annotated
        ]
        logger.debug(
            "Apple Books: %d of %d library assets have annotations",
            len(books),
            len(book_rows),
        )

        return SourceBatch(source=self.source, location=root, books=books, items=items)
