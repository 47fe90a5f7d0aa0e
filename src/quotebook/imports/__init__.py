"""Highlight import from e-reader sources."""

from .apple_books import AppleBooksSource
from .base import (
    BaseSource,
    InvalidFormat,
    InvalidTimestamp,
    PersistenceError,
    QuoteImportError,
    SourceBatch,
    SourceBook,
    SourceChapter,
    SourceItem,
    SourceUnreadable,
)
from .importer import (
    ImportPhase,
    ImportSummary,
    ReconcilingImporter,
    import_apple_books,
    import_kindle,
    import_kobo,
    import_source,
)
from .kindle import KindleClippingsSource
from .kobo import KoboSource
from .resolver import IdentityResolver, RunIdMaps

__all__ = [
    "AppleBooksSource",
    "BaseSource",
    "InvalidFormat",
    "InvalidTimestamp",
    "PersistenceError",
    "QuoteImportError",
    "SourceBatch",
    "SourceBook",
    "SourceChapter",
    "SourceItem",
    "SourceUnreadable",
    "ImportPhase",
    "ImportSummary",
    "ReconcilingImporter",
    "import_apple_books",
    "import_kindle",
    "import_kobo",
    "import_source",
    "KindleClippingsSource",
    "KoboSource",
    "IdentityResolver",
    "RunIdMaps",
]
