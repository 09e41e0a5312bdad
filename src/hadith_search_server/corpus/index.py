"""Derived lookup structures built once per load."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from types import MappingProxyType

from hadith_search_server.domain.model import Collection, Corpus, FileVariant, Record


class CollectionIndex:
    """O(1) lookup from collection id to the corpus' own Collection instance."""

    __slots__ = ("_by_id",)

    def __init__(self, by_id: dict[str, Collection]) -> None:
        self._by_id = MappingProxyType(by_id)

    @classmethod
    def build(cls, corpus: Corpus) -> CollectionIndex:
        return cls({collection.collection_id: collection for collection in corpus.collections})

    def get(self, collection_id: str) -> Collection | None:
        return self._by_id.get(collection_id)

    def __contains__(self, collection_id: object) -> bool:
        return collection_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Collection]:
        return iter(self._by_id.values())


@dataclass(frozen=True, slots=True)
class SearchEntry:
    """One record of the flattened view, annotated with its owners.

    ``folded_text`` is the case-folded text, computed once so searches do not
    re-fold every record per query.
    """

    collection: Collection
    variant: FileVariant
    record: Record
    folded_text: str


def build_search_view(corpus: Corpus) -> tuple[SearchEntry, ...]:
    """Flatten the corpus in encounter order: collection, variant, record."""
    return tuple(
        SearchEntry(collection, variant, record, record.text.casefold())
        for collection in corpus.collections
        for variant in collection.variants
        for record in variant.records
    )
