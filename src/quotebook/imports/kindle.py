"""Kindle "My Clippings.txt" importer.

The clippings file is a sequence of blocks separated by a line of ten
equals signs::

    Title (Author)
    - Your Highlight on page 12 | Location 170-172 | Added on Saturday, 26 March 2016 14:59:39

    Highlighted text, possibly
    over several lines
    ==========
"""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..db.schemas import ImportSource, ItemKind
from ..logger import get_logger
from .base import (
    BaseSource,
    InvalidFormat,
    InvalidTimestamp,
    SourceBatch,
    SourceBook,
    SourceItem,
    SourceUnreadable,
)
from .dates import parse_datetime

logger = get_logger(__name__)

CLIPPING_DELIMITER = "=========="

# Author is the last parenthesized group and may nest one level;
# titles may contain parentheses too
TITLE_AUTHOR_RE = re.compile(
    r"^(?P<title>.*?)(?:\s*\((?P<author>(?:[^()]|\([^()]*\))*)\))?$"
)
METADATA_RE = re.compile(
    r"(?:- )?(?:Your )?(?P<kind>Highlight|Note|Bookmark).*?Added on (?P<date>.*?)$"
)


@dataclass
class Clipping:
    """A single parsed clipping block."""

    title: str
    author: Optional[str]
    kind: ItemKind
    added_at: datetime
    content: Optional[str] = None  # Absent for bookmarks


def parse_clipping(lines: list[str]) -> Clipping:
    """Parse the lines of one clipping block.

    Raises:
        InvalidFormat: If the title or metadata line is malformed
    """
    if len(lines) < 2:
        raise InvalidFormat(f"Incomplete clipping: {lines!r}")

    header = lines[0].strip()
    match = TITLE_AUTHOR_RE.match(header)
    if not header or match is None or not match.group("title").strip():
        raise InvalidFormat(f"Unable to parse line: {lines[0]}")
    title = match.group("title").strip()
    author = match.group("author")
    author = author.strip() if author and author.strip() else None

    meta = METADATA_RE.search(lines[1].strip())
    if meta is None:
        raise InvalidFormat(f"Invalid metadata format on line: {lines[1]}")
    kind = ItemKind(meta.group("kind").lower())

    try:
        added_at = parse_datetime(meta.group("date"))
    except InvalidTimestamp as e:
        raise InvalidFormat(f"Error parsing date => {e}") from e

    # The third line is blank by format; content follows
    content = None
    if len(lines) > 3 and lines[2].strip() == "":
        joined = "\n".join(lines[3:]).strip("\n")
        content = joined if joined.strip() else None

    return Clipping(title=title, author=author, kind=kind, added_at=added_at, content=content)


def read_clippings(path: Path) -> list[Clipping]:
    """Read and parse a whole clippings file.

    The file is parsed completely before anything is returned, so one bad
    block rejects the whole file.
    """
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            raw = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceUnreadable(f"Failed to read clippings file: {e}") from e

    clippings = []
    lines: list[str] = []
    for line in raw.splitlines():
        if line.strip() == CLIPPING_DELIMITER:
            if lines:
                clippings.append(parse_clipping(lines))
                lines = []
        elif lines or line.strip():
            # Leading blank lines before a block are noise
            lines.append(line)

    # File may end without a trailing delimiter
    if lines:
        clippings.append(parse_clipping(lines))

    return clippings


class KindleClippingsSource(BaseSource):
    """Extracts clippings grouped by book title."""

    source = ImportSource.KINDLE

    def extract(self, location: Optional[Path] = None) -> SourceBatch:
        """Read a My Clippings.txt file.

        Books have no stable id in the clippings file, so the title is
        used as the book's origin id.
        """
        if location is None:
            raise SourceUnreadable("No clippings file path given")
        path = self.require_file(location, "Clippings file")

        clippings = read_clippings(path)

        books: dict[str, SourceBook] = {}
        items = []
        for clipping in clippings:
            book = books.get(clipping.title)
            if book is None:
                book = SourceBook(
                    origin_id=clipping.title, title=clipping.title, author=clipping.author
                )
                books[clipping.title] = book
            elif book.author is None and clipping.author:
                book.author = clipping.author

            if clipping.content is None:
                logger.debug("Skipping %s without content in '%s'", clipping.kind.value, clipping.title)
                continue

            if clipping.kind == ItemKind.NOTE:
                items.append(
                    SourceItem(
                        book_origin_id=clipping.title,
                        kind=ItemKind.NOTE,
                        annotation=clipping.content,
                        created_at=clipping.added_at,
                    )
                )
            elif clipping.kind == ItemKind.HIGHLIGHT:
                items.append(
                    SourceItem(
                        book_origin_id=clipping.title,
                        kind=ItemKind.HIGHLIGHT,
                        text=clipping.content,
                        created_at=clipping.added_at,
                    )
                )

        logger.debug("Parsed %d clippings for %d books from %s", len(clippings), len(books), path)
        return SourceBatch(
            source=self.source, location=path, books=list(books.values()), items=items
        )
