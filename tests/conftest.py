"""Pytest configuration and shared fixtures.

This module provides fixtures for testing quotebook, including a
temporary store and builders for Kobo, Apple Books and Kindle sources.
"""

import os
import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Callable, Generator

import pytest
from sqlalchemy.orm import Session

from quotebook.config import reset_config
from quotebook.db.sqlite import Database, reset_db


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Path:
    """Temporary database file path."""
    return tmp_path / "quotebook.db"


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    os.environ["QUOTEBOOK_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    if "QUOTEBOOK_DB_PATH" in os.environ:
        del os.environ["QUOTEBOOK_DB_PATH"]


@pytest.fixture(scope="function")
def session(db: Database) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with db.get_session() as sess:
        yield sess


# ============================================================================
# Kobo Fixtures
# ============================================================================

KOBO_SCHEMA = """
    CREATE TABLE DbVersion (version INTEGER);
    CREATE TABLE content (
        ContentID TEXT PRIMARY KEY,
        BookID TEXT,
        BookTitle TEXT,
        Title TEXT,
        Attribution TEXT,
        VolumeIndex INTEGER
    );
    CREATE TABLE Bookmark (
        BookmarkID TEXT PRIMARY KEY,
        VolumeID TEXT,
        ContentID TEXT,
        Text TEXT,
        Annotation TEXT,
        DateCreated TEXT,
        DateModified TEXT,
        ChapterProgress REAL,
        Type TEXT
    );
"""

KOBO_CONTENT = [
    # Volumes
    ("vol-dune", None, None, "Dune", "Frank Herbert", -1),
    ("vol-neuro", None, None, "Neuromancer", "William Gibson", -1),
    # Chapters
    ("vol-dune!ch1", "vol-dune", "Dune", "Book One", "", 1),
    ("vol-dune!ch2", "vol-dune", "Dune", "Book Two", "", 2),
    ("vol-neuro!ch1", "vol-neuro", "Neuromancer", "Chiba City Blues", "", 1),
]

KOBO_BOOKMARKS = [
    (
        "bm-1", "vol-dune", "vol-dune!ch1", "I must not fear.", None,
        "2020-11-22T10:11:42.000", None, 0.1, "highlight",
    ),
    (
        "bm-2", "vol-dune", "vol-dune!ch1", "Fear is the mind-killer.", "The litany",
        "2020-11-22T10:12:00Z", "2020-11-23T08:00:00Z", 0.2, "note",
    ),
    (
        "bm-3", "vol-dune", "vol-dune!ch2", "The spice must flow.", None,
        "2020-11-23 08:00:00", None, 0.5, "highlight",
    ),
    (
        "bm-4", "vol-dune", "vol-dune!ch2", None, None,
        "2020-11-23 09:00:00", None, 0.6, "dogear",
    ),
    (
        "bm-5", "vol-neuro", "vol-neuro!ch1", "The sky above the port was the color of television.",
        None, "2021-01-02T03:04:05.000", None, 0.0, "highlight",
    ),
]


def write_kobo_db(path: Path, version: int = 175, bookmarks: list = None) -> Path:
    """Write a minimal KoboReader.sqlite."""
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(KOBO_SCHEMA)
        conn.execute("INSERT INTO DbVersion (version) VALUES (?)", (version,))
        conn.executemany("INSERT INTO content VALUES (?, ?, ?, ?, ?, ?)", KOBO_CONTENT)
        conn.executemany(
            "INSERT INTO Bookmark VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            KOBO_BOOKMARKS if bookmarks is None else bookmarks,
        )
        conn.commit()
    return path


@pytest.fixture
def kobo_db(tmp_path: Path) -> Path:
    """KoboReader.sqlite at the current (175+) schema version."""
    return write_kobo_db(tmp_path / "KoboReader.sqlite", version=175)


@pytest.fixture
def make_kobo_db(tmp_path: Path) -> Callable[..., Path]:
    """Factory for Kobo databases with a chosen version or bookmark set."""

    def _make(version: int = 175, bookmarks: list = None, name: str = None) -> Path:
        path = tmp_path / (name or f"KoboReader-{version}.sqlite")
        return write_kobo_db(path, version=version, bookmarks=bookmarks)

    return _make


# ============================================================================
# Apple Books Fixtures
# ============================================================================

APPLE_ANNOTATION_SCHEMA = """
    CREATE TABLE ZAEANNOTATION (
        Z_PK INTEGER PRIMARY KEY,
        ZANNOTATIONUUID TEXT,
        ZANNOTATIONASSETID TEXT,
        ZANNOTATIONSELECTEDTEXT TEXT,
        ZFUTUREPROOFING5 TEXT,
        ZANNOTATIONNOTE TEXT,
        ZANNOTATIONCREATIONDATE REAL,
        ZANNOTATIONMODIFICATIONDATE REAL,
        ZANNOTATIONDELETED INTEGER
    );
"""

APPLE_LIBRARY_SCHEMA = """
    CREATE TABLE ZBKLIBRARYASSET (
        Z_PK INTEGER PRIMARY KEY,
        ZASSETID TEXT,
        ZAUTHOR TEXT,
        ZTITLE TEXT
    );
"""

APPLE_ASSETS = [
    ("asset-walden", "Henry David Thoreau", "Walden"),
    ("asset-unread", "Nobody", "Never Opened"),
]

APPLE_ANNOTATIONS = [
    # uuid, asset, selected text, legacy text, note, created, modified, deleted
    ("ann-1", "asset-walden", "I went to the woods", None, None, 0.0, 86400.5, 0),
    ("ann-2", "asset-walden", "Simplify, simplify.", None, "Good advice", 357350400.0, None, 0),
    ("ann-3", "asset-walden", "Deleted highlight", None, None, 100.0, 100.0, 1),
    ("ann-4", "asset-walden", None, "Legacy text column", None, 200.0, 200.0, 0),
    ("ann-5", "asset-walden", "", None, None, 300.0, 300.0, 0),
]


def write_apple_books_dir(
    root: Path, assets: list = None, annotations: list = None
) -> Path:
    """Write an Apple Books container with both Core Data stores."""
    (root / "AEAnnotation").mkdir(parents=True, exist_ok=True)
    (root / "BKLibrary").mkdir(parents=True, exist_ok=True)

    annotation_path = root / "AEAnnotation" / "AEAnnotation_v10312011_1727_local.sqlite"
    with closing(sqlite3.connect(annotation_path)) as conn:
        conn.executescript(APPLE_ANNOTATION_SCHEMA)
        conn.executemany(
            """INSERT INTO ZAEANNOTATION (
                ZANNOTATIONUUID, ZANNOTATIONASSETID, ZANNOTATIONSELECTEDTEXT,
                ZFUTUREPROOFING5, ZANNOTATIONNOTE, ZANNOTATIONCREATIONDATE,
                ZANNOTATIONMODIFICATIONDATE, ZANNOTATIONDELETED
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            APPLE_ANNOTATIONS if annotations is None else annotations,
        )
        conn.commit()

    library_path = root / "BKLibrary" / "BKLibrary-1-091020131601.sqlite"
    with closing(sqlite3.connect(library_path)) as conn:
        conn.executescript(APPLE_LIBRARY_SCHEMA)
        conn.executemany(
            "INSERT INTO ZBKLIBRARYASSET (ZASSETID, ZAUTHOR, ZTITLE) VALUES (?, ?, ?)",
            APPLE_ASSETS if assets is None else assets,
        )
        conn.commit()

    return root


@pytest.fixture
def apple_books_dir(tmp_path: Path) -> Path:
    """Apple Books container with one annotated and one unannotated book."""
    return write_apple_books_dir(tmp_path / "iBooksX")


@pytest.fixture
def make_apple_books_dir(tmp_path: Path) -> Callable[..., Path]:
    """Factory for Apple Books containers with custom rows."""

    def _make(assets: list = None, annotations: list = None, name: str = "container") -> Path:
        return write_apple_books_dir(tmp_path / name, assets=assets, annotations=annotations)

    return _make


# ============================================================================
# Kindle Fixtures
# ============================================================================

KINDLE_CLIPPINGS = """The Hobbit (J.R.R. Tolkien)
- Your Highlight on page 12 | Location 170-172 | Added on Saturday, 26 March 2016 14:59:39

In a hole in the ground there lived a hobbit.
==========
The Hobbit (J.R.R. Tolkien)
- Your Note on page 12 | Location 172 | Added on Saturday, 26 March 2016 15:00:00

Lovely opening line.
==========
The Hobbit (J.R.R. Tolkien)
- Your Bookmark on page 20 | Location 300 | Added on Saturday, 26 March 2016 15:10:00


==========
Meditations (Marcus Aurelius)
- Your Highlight at location 100-101 | Added on Sunday, March 27, 2016, 09:05 AM

You have power over your mind
not outside events.
==========
"""


@pytest.fixture
def clippings_file(tmp_path: Path) -> Path:
    """A My Clippings.txt with highlights, a note and a bookmark."""
    path = tmp_path / "My Clippings.txt"
    path.write_text(KINDLE_CLIPPINGS, encoding="utf-8")
    return path


@pytest.fixture
def write_clippings(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing arbitrary clippings text to a file."""

    def _write(text: str, name: str = "clippings.txt", encoding: str = "utf-8") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding=encoding)
        return path

    return _write


# ============================================================================
# CLI Testing Fixtures
# ============================================================================


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def cli_app():
    """Get the CLI app for testing."""
    from quotebook.cli import app

    return app
