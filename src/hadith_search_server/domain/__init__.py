"""Domain layer - the corpus tree and the query/result value objects.

Following Cosmic Python Chapter 2 (Repository Pattern) and Chapter 7 (Aggregates),
this layer contains:
- Aggregate root: Corpus, owning Collections, FileVariants and Records
- Value Objects: query options and result pages (Pydantic, camelCase on the wire)

Key principles:
1. No dependencies on infrastructure (no HTTP, no file access)
2. Immutability everywhere: the corpus never changes after a load
"""

from hadith_search_server.domain.model import Collection, Corpus, FileVariant, Record, VariantTag
from hadith_search_server.domain.query import (
    AdvancedSearchOptions,
    ListOptions,
    RecordView,
    SearchHit,
    SearchOptions,
    SearchPage,
    StatsScope,
)


__all__ = [
    "AdvancedSearchOptions",
    "Collection",
    "Corpus",
    "FileVariant",
    "ListOptions",
    "Record",
    "RecordView",
    "SearchHit",
    "SearchOptions",
    "SearchPage",
    "StatsScope",
    "VariantTag",
]
