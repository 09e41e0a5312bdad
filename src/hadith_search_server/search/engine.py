"""Linear-scan search over the flattened corpus view.

A full scan over ~124k pre-folded records per query is fast enough for this
corpus size; no inverted index is built. Only the requested page is turned
into pydantic result models.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING

from hadith_search_server.domain.query import Pagination, QueryEcho, SearchHit, SearchOptions, SearchPage
from hadith_search_server.errors import QueryValidationError
from hadith_search_server.observability.metrics import SEARCH_LATENCY, track_latency
from hadith_search_server.search.scoring import relevance_score


if TYPE_CHECKING:
    from collections.abc import Sequence

    from hadith_search_server.corpus.index import SearchEntry
    from hadith_search_server.domain.model import VariantTag


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScoredEntry:
    """A matching view entry and its relevance."""

    entry: SearchEntry
    score: int

    def to_hit(self) -> SearchHit:
        entry = self.entry
        return SearchHit(
            record_id=entry.record.record_id,
            text=entry.record.text,
            text_length=entry.record.text_length,
            has_full_diacritics=entry.record.has_full_diacritics,
            collection_id=entry.collection.collection_id,
            collection_name=entry.collection.name,
            collection_name_arabic=entry.collection.name_arabic,
            file_type=entry.variant.tag,
            relevance_score=self.score,
        )


def normalize_query(query: str | None) -> str:
    """Trim the query, rejecting a missing or blank one."""
    normalized = (query or "").strip()
    if not normalized:
        raise QueryValidationError("Search query cannot be empty")
    return normalized


def paginate(hits: Sequence[ScoredEntry], limit: int, offset: int) -> tuple[list[SearchHit], Pagination]:
    """Materialize one page of ranked entries."""
    if limit < 0 or offset < 0:
        raise QueryValidationError("limit and offset must be non-negative")
    page = [scored.to_hit() for scored in hits[offset : offset + limit]]
    return page, Pagination.slice_of(len(hits), limit, offset)


class SearchEngine:
    """Rank records of an immutable search view against a text query."""

    def __init__(self, view: Sequence[SearchEntry]) -> None:
        self._view = view

    def __len__(self) -> int:
        return len(self._view)

    def rank(
        self,
        query: str,
        *,
        collection_id: str | None = None,
        variant: VariantTag | None = None,
        exact: bool = False,
    ) -> list[ScoredEntry]:
        """Return every matching entry, best first.

        Fuzzy mode matches a record when any whitespace token of the query
        occurs in it; exact mode needs the whole query as one substring. Both
        modes score against the whole query. The sort is stable, so equal
        scores keep corpus order.
        """
        folded_query = normalize_query(query).casefold()
        tokens = folded_query.split()
        mode = "exact" if exact else "fuzzy"

        with track_latency(SEARCH_LATENCY, mode=mode):
            matches: list[ScoredEntry] = []
            for entry in self._view:
                if collection_id is not None and entry.collection.collection_id != collection_id:
                    continue
                if variant is not None and entry.variant.tag is not variant:
                    continue

                folded_text = entry.folded_text
                if exact:
                    if folded_query not in folded_text:
                        continue
                elif not any(token in folded_text for token in tokens):
                    continue

                score = relevance_score(folded_text, folded_query, entry.record.text_length)
                matches.append(ScoredEntry(entry, score))

            matches.sort(key=lambda scored: scored.score, reverse=True)

        logger.debug("Search %r (%s) matched %d records", query, mode, len(matches))
        return matches

    def search(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        """Rank and paginate ``query`` according to ``options``."""
        options = options or SearchOptions()
        ranked = self.rank(
            query,
            collection_id=options.collection_id,
            variant=options.variant,
            exact=options.exact,
        )
        results, pagination = paginate(ranked, options.limit, options.offset)
        return SearchPage(
            results=results,
            pagination=pagination,
            query=QueryEcho(term=query.strip(), options=options.to_wire()),
        )
