"""Compound post-filter applied to ranked search results."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING

from hadith_search_server.domain.query import AdvancedSearchOptions, AppliedFilters


if TYPE_CHECKING:
    from collections.abc import Sequence

    from hadith_search_server.domain.model import VariantTag
    from hadith_search_server.search.engine import ScoredEntry


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FilterCriteria:
    """Conjunction of optional restrictions. Empty sets are unrestricted."""

    collections: frozenset[str] = frozenset()
    variants: frozenset[VariantTag] = frozenset()
    min_length: int | None = None
    max_length: int | None = None
    diacritics: bool | None = None

    @classmethod
    def from_options(cls, options: AdvancedSearchOptions) -> FilterCriteria:
        return cls(
            collections=frozenset(options.collections),
            variants=frozenset(options.variants),
            min_length=options.min_length,
            max_length=options.max_length,
            diacritics=options.diacritics,
        )

    @property
    def applied(self) -> AppliedFilters:
        return AppliedFilters(
            collections=len(self.collections),
            file_types=len(self.variants),
            length_filter=self.min_length is not None or self.max_length is not None,
            diacritics_filter=self.diacritics is not None,
        )

    def accepts(self, scored: ScoredEntry) -> bool:
        entry = scored.entry
        if self.collections and entry.collection.collection_id not in self.collections:
            return False
        if self.variants and entry.variant.tag not in self.variants:
            return False
        length = entry.record.text_length
        if self.min_length is not None and length < self.min_length:
            return False
        if self.max_length is not None and length > self.max_length:
            return False
        if self.diacritics is not None and entry.record.has_full_diacritics is not self.diacritics:
            return False
        return True


@dataclass(frozen=True, slots=True)
class FilterOutcome:
    hits: list[ScoredEntry]
    before: int
    after: int
    applied: AppliedFilters = field(default_factory=AppliedFilters)


def apply_filters(hits: Sequence[ScoredEntry], criteria: FilterCriteria) -> FilterOutcome:
    """Keep the hits accepted by every criterion, preserving their order."""
    kept = [scored for scored in hits if criteria.accepts(scored)]
    logger.debug("Advanced filters kept %d of %d results", len(kept), len(hits))
    return FilterOutcome(hits=kept, before=len(hits), after=len(kept), applied=criteria.applied)
