"""quotebook - personal library of quotes and reading highlights."""

__version__ = "0.1.0"
