"""Domain model - the in-memory corpus tree.

Following Cosmic Python principles:
- Domain model has NO dependencies on infrastructure
- Everything here is a frozen value object: the corpus is built once per load
  and never mutated, so readers can share it without locks

The tree is Corpus -> Collection -> FileVariant -> Record, plus the
VariantTag enum naming each rendering. Records arrive already validated from
``corpus.sources``.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from hadith_search_server.corpus.diacritics import has_diacritics
from hadith_search_server.errors import InternalInconsistencyError, LoadError


class VariantTag(str, Enum):
    """Text rendering of a collection."""

    REGULAR = "regular"
    FULLY_DIACRITIZED = "fully-diacritized"

    @classmethod
    def parse(cls, value: str | VariantTag) -> VariantTag:
        """Resolve a wire value, accepting the source format's alias."""
        if isinstance(value, VariantTag):
            return value
        normalized = value.strip().lower()
        alias = _VARIANT_ALIASES.get(normalized)
        if alias is not None:
            return alias
        return cls(normalized)


_VARIANT_ALIASES = {
    "mushakkala_mufassala": VariantTag.FULLY_DIACRITIZED,
    "fully_diacritized": VariantTag.FULLY_DIACRITIZED,
}


@dataclass(frozen=True, slots=True)
class Record:
    """A single narration.

    ``text_length`` and ``has_full_diacritics`` are derived from ``text`` at
    ingestion; use :meth:`from_text` rather than trusting stored values.
    """

    record_id: str
    text: str
    text_length: int
    has_full_diacritics: bool

    @classmethod
    def from_text(cls, record_id: str, text: str) -> Record:
        return cls(
            record_id=record_id,
            text=text,
            text_length=len(text),
            has_full_diacritics=has_diacritics(text),
        )


@dataclass(frozen=True, slots=True)
class FileVariant:
    """One rendering of a collection with its records in source order."""

    tag: VariantTag
    records: tuple[Record, ...]
    count: int
    file_name: str | None = None

    def __post_init__(self) -> None:
        if self.count != len(self.records):
            raise InternalInconsistencyError(
                f"Variant '{self.tag.value}' declares {self.count} records but holds {len(self.records)}"
            )

    def find(self, record_id: str) -> Record | None:
        """Return the first record with ``record_id`` or None."""
        for record in self.records:
            if record.record_id == record_id:
                return record
        return None


@dataclass(frozen=True, slots=True)
class Collection:
    """A named source text (one canonical book) and its variants."""

    collection_id: str
    name: str
    name_arabic: str
    variants: tuple[FileVariant, ...]

    @property
    def total_records(self) -> int:
        return sum(variant.count for variant in self.variants)

    @property
    def variant_tags(self) -> list[VariantTag]:
        return [variant.tag for variant in self.variants]

    def iter_variants(self, tag: VariantTag | None = None) -> Iterator[FileVariant]:
        """Yield variants in order, optionally restricted to ``tag``."""
        for variant in self.variants:
            if tag is None or variant.tag is tag:
                yield variant


@dataclass(frozen=True, slots=True)
class Corpus:
    """Aggregate root: every collection in source order."""

    collections: tuple[Collection, ...]
    metadata: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for collection in self.collections:
            if collection.collection_id in seen:
                raise LoadError(f"Duplicate collection id '{collection.collection_id}'")
            seen.add(collection.collection_id)
        if not isinstance(self.metadata, MappingProxyType):
            object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def total_records(self) -> int:
        return sum(collection.total_records for collection in self.collections)

    @property
    def total_files(self) -> int:
        return sum(len(collection.variants) for collection in self.collections)
