"""Pydantic schemas for data validation.

These schemas describe the canonical records the import pipeline writes,
whatever source (Kobo, Kindle, Apple Books) they were read from.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ImportSource(str, Enum):
    """External platform a run reads from."""

    KOBO = "kobo"
    KINDLE = "kindle"
    APPLE_BOOKS = "apple_books"


class EntityKind(str, Enum):
    """Canonical entity kinds known to the identity resolver."""

    AUTHOR = "author"
    BOOK = "book"
    CHAPTER = "chapter"
    QUOTE = "quote"
    NOTE = "note"


class ItemKind(str, Enum):
    """What an extracted highlight record represents."""

    HIGHLIGHT = "highlight"
    NOTE = "note"
    BOOKMARK = "bookmark"


# ============================================================================
# Create Schemas
# ============================================================================


class AuthorCreate(BaseModel):
    """Schema for creating an author."""

    name: str = Field(..., min_length=1, description="Display name")


class BookCreate(BaseModel):
    """Schema for creating a book."""

    title: str = Field(..., min_length=1, description="Book title")
    author_id: Optional[str] = None
    publication_year: Optional[str] = None
    original_id: Optional[str] = Field(None, description="Origin id issued by the source")


class ChapterCreate(BaseModel):
    """Schema for creating a chapter."""

    book_id: str
    title: str = ""
    volume_index: int = 0
    original_id: Optional[str] = None


class QuoteCreate(BaseModel):
    """Schema for creating a quote (highlight)."""

    book_id: Optional[str] = None
    author_id: Optional[str] = None
    chapter_id: Optional[str] = None
    chapter_progress: Optional[float] = Field(None, description="Position in book 0.0-1.0")
    content: str = ""
    starred: bool = False
    created_at: datetime
    updated_at: datetime
    imported_at: Optional[datetime] = None
    original_id: Optional[str] = None

    @field_validator("chapter_progress")
    @classmethod
    def clamp_progress(cls, v: Optional[float]) -> Optional[float]:
        """Clamp progress into the 0.0-1.0 range readers occasionally overshoot."""
        if v is None:
            return None
        return min(1.0, max(0.0, float(v)))


class NoteCreate(BaseModel):
    """Schema for creating a note."""

    book_id: Optional[str] = None
    author_id: Optional[str] = None
    quote_id: Optional[str] = None
    content: str = Field(..., min_length=1)
    created_at: datetime
    updated_at: datetime
