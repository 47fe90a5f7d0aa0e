"""Tests for the Apple Books importer."""

import os
from datetime import datetime

import pytest

from quotebook.config import reset_config
from quotebook.db.models import Author, Book, Note, Quote
from quotebook.db.schemas import ItemKind
from quotebook.imports.apple_books import (
    ANNOTATION_DB_PATTERN,
    AppleBooksSource,
    resolve_path,
)
from quotebook.imports.base import SourceUnreadable
from quotebook.imports.importer import import_apple_books


class TestResolvePath:
    """Tests for locating the Core Data stores."""

    def test_resolves_versioned_name(self, apple_books_dir):
        """Test the glob matches the versioned file name."""
        path = resolve_path(apple_books_dir, ANNOTATION_DB_PATTERN, "annotation")
        assert path.name.startswith("AEAnnotation")
        assert path.suffix == ".sqlite"

    def test_missing(self, tmp_path):
        """Test a directory without the store raises SourceUnreadable."""
        with pytest.raises(SourceUnreadable, match="annotation"):
            resolve_path(tmp_path, ANNOTATION_DB_PATTERN, "annotation")


class TestAppleBooksSource:
    """Tests for AppleBooksSource extraction."""

    def test_unannotated_books_dropped(self, apple_books_dir):
        """Test only books with annotations are extracted."""
        batch = AppleBooksSource().extract(apple_books_dir)

        assert [(b.origin_id, b.title, b.author) for b in batch.books] == [
            ("asset-walden", "Walden", "Henry David Thoreau")
        ]

    def test_deleted_and_empty_annotations_excluded(self, apple_books_dir):
        """Test deleted and empty annotations are filtered out."""
        batch = AppleBooksSource().extract(apple_books_dir)
        assert sorted(i.origin_id for i in batch.items) == ["ann-1", "ann-2", "ann-4"]

    def test_legacy_text_column(self, apple_books_dir):
        """Test older stores' text column is used when the current one is NULL."""
        batch = AppleBooksSource().extract(apple_books_dir)
        legacy = next(i for i in batch.items if i.origin_id == "ann-4")
        assert legacy.text == "Legacy text column"

    def test_note_kind(self, apple_books_dir):
        """Test annotations with a note are marked as notes."""
        batch = AppleBooksSource().extract(apple_books_dir)
        kinds = {i.origin_id: i.kind for i in batch.items}
        assert kinds["ann-1"] == ItemKind.HIGHLIGHT
        assert kinds["ann-2"] == ItemKind.NOTE

    def test_missing_stores(self, tmp_path):
        """Test a container without stores raises SourceUnreadable."""
        with pytest.raises(SourceUnreadable):
            AppleBooksSource().extract(tmp_path)

    def test_missing_library_store(self, apple_books_dir):
        """Test the library store is required as well."""
        for path in (apple_books_dir / "BKLibrary").iterdir():
            path.unlink()
        with pytest.raises(SourceUnreadable, match="library"):
            AppleBooksSource().extract(apple_books_dir)

    def test_default_location_from_config(self, apple_books_dir):
        """Test the configured container is used when none is given."""
        os.environ["QUOTEBOOK_APPLE_BOOKS_DIR"] = str(apple_books_dir)
        reset_config()
        try:
            batch = AppleBooksSource().extract()
        finally:
            del os.environ["QUOTEBOOK_APPLE_BOOKS_DIR"]
            reset_config()

        assert len(batch.books) == 1


class TestAppleBooksImport:
    """Tests for importing Apple Books into the store."""

    def test_import(self, db, apple_books_dir):
        """Test the annotated book and its quotes are created."""
        message = import_apple_books(apple_books_dir, db=db)

        assert message == "Imported successfully 1 new books and 3 new quotes"
        assert db.count(Book) == 1
        assert db.count(Author) == 1
        assert db.count(Quote) == 3
        assert db.count(Note) == 1

    def test_core_data_dates(self, db, apple_books_dir):
        """Test Core Data timestamps are converted to calendar dates."""
        import_apple_books(apple_books_dir, db=db)
        quotes = {q.original_id: q for q in db.list_quotes()}

        assert quotes["ann-1"].created_at == datetime(2001, 1, 1)
        assert quotes["ann-1"].updated_at == datetime(2001, 1, 2, 0, 0, 0, 500000)
        assert quotes["ann-2"].created_at == datetime(2012, 4, 29)
        assert quotes["ann-2"].updated_at == quotes["ann-2"].created_at

    def test_note_linked(self, db, apple_books_dir):
        """Test the annotation note is attached to its quote."""
        import_apple_books(apple_books_dir, db=db)
        quote = next(q for q in db.list_quotes() if q.original_id == "ann-2")
        notes = db.list_notes(quote_id=quote.id)

        assert [n.content for n in notes] == ["Good advice"]

    def test_idempotent(self, db, apple_books_dir):
        """Test re-importing creates nothing new."""
        import_apple_books(apple_books_dir, db=db)
        message = import_apple_books(apple_books_dir, db=db)

        assert message == "Imported successfully 0 new books and 0 new quotes"
        assert db.count(Quote) == 3
        assert db.count(Note) == 1

    def test_missing_asset_skipped(self, db, make_apple_books_dir):
        """Test annotations on assets missing from the library are skipped."""
        root = make_apple_books_dir(
            annotations=[
                ("ann-1", "asset-walden", "Kept", None, None, 0.0, 0.0, 0),
                ("ann-2", "asset-gone", "Orphan", None, None, 0.0, 0.0, 0),
            ],
        )

        message = import_apple_books(root, db=db)

        assert message == "Imported successfully 1 new books and 1 new quotes"
