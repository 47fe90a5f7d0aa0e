"""Tests for Pydantic schemas."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from quotebook.db.schemas import (
    AuthorCreate,
    BookCreate,
    ChapterCreate,
    NoteCreate,
    QuoteCreate,
)

NOW = datetime(2024, 1, 1)


class TestAuthorAndBook:
    """Tests for AuthorCreate and BookCreate."""

    def test_empty_author_rejected(self):
        """Test that an empty author name is rejected."""
        with pytest.raises(ValidationError):
            AuthorCreate(name="")

    def test_minimal_book(self):
        """Test a book needs only a title."""
        book = BookCreate(title="Walden")
        assert book.author_id is None
        assert book.original_id is None

    def test_empty_title_rejected(self):
        """Test that empty title is rejected."""
        with pytest.raises(ValidationError):
            BookCreate(title="")


class TestChapterCreate:
    """Tests for ChapterCreate defaults."""

    def test_defaults(self):
        """Test chapters default to an empty title at index 0."""
        chapter = ChapterCreate(book_id="b")
        assert chapter.title == ""
        assert chapter.volume_index == 0


class TestQuoteCreate:
    """Tests for QuoteCreate."""

    def test_defaults(self):
        """Test imported quotes default to unstarred."""
        quote = QuoteCreate(content="x", created_at=NOW, updated_at=NOW)
        assert quote.starred is False
        assert quote.chapter_progress is None

    def test_timestamps_required(self):
        """Test creation and modification times are required."""
        with pytest.raises(ValidationError):
            QuoteCreate(content="x")

    @pytest.mark.parametrize("value,expected", [(-0.5, 0.0), (0.25, 0.25), (1.2, 1.0)])
    def test_progress_clamped(self, value, expected):
        """Test progress is clamped to 0.0-1.0."""
        quote = QuoteCreate(content="x", created_at=NOW, updated_at=NOW, chapter_progress=value)
        assert quote.chapter_progress == expected


class TestNoteCreate:
    """Tests for NoteCreate."""

    def test_empty_content_rejected(self):
        """Test notes must have content."""
        with pytest.raises(ValidationError):
            NoteCreate(content="", created_at=NOW, updated_at=NOW)
