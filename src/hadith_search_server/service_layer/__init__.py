"""Service layer - use-case orchestration over the active corpus snapshot.

Following Cosmic Python Chapter 4:
- The service layer is the only entry point the HTTP boundary talks to
- It works with the domain model and the search package, never with files
"""

from .corpus_service import CorpusService, CorpusSnapshot


__all__ = [
    "CorpusService",
    "CorpusSnapshot",
]
