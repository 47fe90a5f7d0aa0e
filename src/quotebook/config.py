"""Configuration management for quotebook.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()

DEFAULT_APPLE_BOOKS_DIR = "~/Library/Containers/com.apple.iBooksX/Data/Documents"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Application configuration."""

    # Database
    db_path: Path

    # Apple Books container (holds AEAnnotation/ and BKLibrary/)
    apple_books_dir: Path

    # Logging
    log_level: str

    # Show driver errors in user-facing messages
    debug: bool

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        db_path_str = os.environ.get(
            "QUOTEBOOK_DB_PATH",
            str(Path.home() / ".quotebook" / "quotebook.db"),
        )
        if db_path_str == ":memory:":
            db_path = Path(db_path_str)
        else:
            db_path = Path(db_path_str).expanduser()

        apple_books_dir = Path(
            os.environ.get("QUOTEBOOK_APPLE_BOOKS_DIR", DEFAULT_APPLE_BOOKS_DIR)
        ).expanduser()

        return cls(
            db_path=db_path,
            apple_books_dir=apple_books_dir,
            log_level=os.environ.get("QUOTEBOOK_LOG_LEVEL", "INFO").upper(),
            debug=os.environ.get("QUOTEBOOK_DEBUG", "").strip().lower() in _TRUTHY,
        )

    @property
    def is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check database directory is writable
        if not self.is_memory and not self.db_path.parent.exists():
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except PermissionError:
                errors.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Unknown log level: {self.log_level}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
