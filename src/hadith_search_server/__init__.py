"""In-memory search server for hadith collections."""

__version__ = "1.0.0"
