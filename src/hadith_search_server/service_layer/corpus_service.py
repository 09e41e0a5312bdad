"""Corpus query surface.

Owns the active :class:`CorpusSnapshot` and answers every read operation
against it. The snapshot is immutable; loading or reloading builds a
complete new one and swaps a single reference, so readers never need a lock
and never observe a half-built corpus.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Any

import anyio.to_thread

from hadith_search_server.config import Settings
from hadith_search_server.corpus.index import CollectionIndex, SearchEntry, build_search_view
from hadith_search_server.corpus.loader import CorpusLoader, LoadReport
from hadith_search_server.domain.model import Collection, Corpus, FileVariant, Record, VariantTag
from hadith_search_server.domain.query import (
    AdvancedSearchOptions,
    AdvancedSearchPage,
    CollectionDetail,
    CollectionSummary,
    FilterSummary,
    ListOptions,
    Pagination,
    QueryEcho,
    RecordPage,
    RecordView,
    SearchOptions,
    SearchPage,
    StatsScope,
    Suggestions,
    VariantSummary,
)
from hadith_search_server.errors import CorpusNotLoadedError, QueryValidationError
from hadith_search_server.observability.metrics import CORPUS_LOAD_SECONDS, CORPUS_RECORD_COUNT
from hadith_search_server.observability.tracing import create_span
from hadith_search_server.search.engine import SearchEngine, normalize_query, paginate
from hadith_search_server.search.filters import FilterCriteria, apply_filters
from hadith_search_server.search.stats import (
    CollectionReport,
    CorpusStatistics,
    FrequentTerms,
    LengthDistribution,
    StatisticsAggregator,
    summarize,
)


logger = logging.getLogger(__name__)

COMMON_PHRASES = (
    "رسول الله",
    "صلى الله عليه وسلم",
    "حدثنا",
    "أخبرنا",
    "قال",
    "النبي",
    "الصلاة",
    "الزكاة",
    "الحج",
    "الصوم",
)
MIN_SUGGESTION_QUERY = 2
MAX_SUGGESTIONS = 20


@dataclass(frozen=True, slots=True)
class CorpusSnapshot:
    """Everything derived from one load, published as a unit."""

    corpus: Corpus
    index: CollectionIndex
    view: tuple[SearchEntry, ...]
    engine: SearchEngine
    stats: StatisticsAggregator
    load_report: LoadReport

    @classmethod
    def build(cls, corpus: Corpus, report: LoadReport, settings: Settings) -> CorpusSnapshot:
        index = CollectionIndex.build(corpus)
        view = build_search_view(corpus)
        return cls(
            corpus=corpus,
            index=index,
            view=view,
            engine=SearchEngine(view),
            stats=StatisticsAggregator(
                corpus,
                index,
                term_token_budget=settings.term_token_budget,
                min_term_length=settings.min_term_length,
            ),
            load_report=report,
        )


def record_view(collection: Collection, variant: FileVariant, record: Record) -> RecordView:
    return RecordView(
        record_id=record.record_id,
        text=record.text,
        text_length=record.text_length,
        has_full_diacritics=record.has_full_diacritics,
        collection_id=collection.collection_id,
        collection_name=collection.name,
        file_type=variant.tag,
    )


class CorpusService:
    """Read-only operations over the loaded corpus.

    Every query raises :class:`CorpusNotLoadedError` until the first load
    completes. Lookups of unknown collections or records return ``None``.
    """

    def __init__(self, settings: Settings, loader: CorpusLoader | None = None) -> None:
        self.settings = settings
        self.loader = loader or CorpusLoader(settings)
        self._snapshot: CorpusSnapshot | None = None
        self._load_lock = threading.Lock()

    # Lifecycle ---------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        return self._snapshot is not None

    @property
    def snapshot(self) -> CorpusSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise CorpusNotLoadedError("Corpus is still loading")
        return snapshot

    def load(self) -> LoadReport:
        """Build a new snapshot and publish it.

        On failure the active snapshot (if any) stays in place and the
        :class:`LoadError` propagates.
        """
        with self._load_lock, create_span("corpus.load") as span:
            corpus, report = self.loader.load()
            snapshot = CorpusSnapshot.build(corpus, report, self.settings)
            self._snapshot = snapshot
            span.set_attribute("corpus.strategy", report.strategy)
            span.set_attribute("corpus.records", report.records_count)

        CORPUS_RECORD_COUNT.labels(strategy=report.strategy).set(report.records_count)
        CORPUS_LOAD_SECONDS.labels(strategy=report.strategy).observe(report.duration_ms / 1000)
        return report

    async def initialize(self) -> LoadReport:
        """Load off the event loop so /alive keeps answering."""
        return await anyio.to_thread.run_sync(self.load)

    async def reload(self) -> LoadReport:
        """Rebuild the corpus from its sources and swap it in atomically."""
        previous = self._snapshot
        report = await anyio.to_thread.run_sync(self.load)
        logger.info(
            "Corpus reloaded: %d -> %d records",
            previous.load_report.records_count if previous else 0,
            report.records_count,
        )
        return report

    def status(self) -> dict[str, Any]:
        snapshot = self._snapshot
        if snapshot is None:
            return {"ready": False, "loadReport": None}
        return {
            "ready": True,
            "collections": len(snapshot.index),
            "records": snapshot.corpus.total_records,
            "files": snapshot.corpus.total_files,
            "loadReport": snapshot.load_report.to_dict(),
        }

    def data_info(self) -> dict[str, Any]:
        """Headline counts and the dataset version, for the API info route."""
        corpus = self.snapshot.corpus
        return {
            "totalCollections": len(corpus.collections),
            "totalHadiths": corpus.total_records,
            "totalFiles": corpus.total_files,
            "dataVersion": corpus.metadata.get("version"),
            "lastUpdated": corpus.metadata.get("generatedAt"),
        }

    # Collections -------------------------------------------------------------

    def list_collection_summaries(self) -> list[CollectionSummary]:
        return [summarize(collection) for collection in self.snapshot.corpus.collections]

    def get_collection(self, collection_id: str) -> CollectionDetail | None:
        collection = self.snapshot.index.get(collection_id)
        if collection is None:
            return None
        return CollectionDetail(
            collection_id=collection.collection_id,
            collection_name=collection.name,
            collection_name_arabic=collection.name_arabic,
            total_records=collection.total_records,
            files=[
                VariantSummary(file_type=variant.tag, file_name=variant.file_name, count=variant.count)
                for variant in collection.variants
            ],
        )

    def list_records(self, collection_id: str, options: ListOptions | None = None) -> RecordPage | None:
        """Page through a collection's records, all variants unless one is given."""
        options = options or ListOptions()
        collection = self.snapshot.index.get(collection_id)
        if collection is None:
            return None

        entries = [
            (variant, record) for variant in collection.iter_variants(options.variant) for record in variant.records
        ]
        page = entries[options.offset : options.offset + options.limit]
        return RecordPage(
            results=[record_view(collection, variant, record) for variant, record in page],
            pagination=Pagination.slice_of(len(entries), options.limit, options.offset),
        )

    def get_record(
        self,
        collection_id: str,
        record_id: str,
        variant: VariantTag = VariantTag.REGULAR,
    ) -> RecordView | None:
        collection = self.snapshot.index.get(collection_id)
        if collection is None:
            return None
        for file_variant in collection.iter_variants(variant):
            record = file_variant.find(record_id)
            if record is not None:
                return record_view(collection, file_variant, record)
        return None

    # Search ------------------------------------------------------------------

    def search(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        """Rank within one snapshot; a concurrent reload never splits a query."""
        options = options or SearchOptions()
        snapshot = self.snapshot
        if options.collection_id is not None and options.collection_id not in snapshot.index:
            raise QueryValidationError(f"Collection '{options.collection_id}' not found")
        return snapshot.engine.search(query, options)

    def advanced_search(self, query: str, options: AdvancedSearchOptions | None = None) -> AdvancedSearchPage:
        """Rank every match, filter, then paginate the filtered list."""
        options = options or AdvancedSearchOptions()
        term = normalize_query(query)
        ranked = self.snapshot.engine.rank(term, exact=options.exact)
        outcome = apply_filters(ranked, FilterCriteria.from_options(options))
        results, pagination = paginate(outcome.hits, options.limit, options.offset)
        return AdvancedSearchPage(
            results=results,
            pagination=pagination,
            query=QueryEcho(term=term, options=options.to_wire()),
            filters=FilterSummary(
                applied=outcome.applied,
                results_before_filtering=outcome.before,
                results_after_filtering=outcome.after,
            ),
        )

    def suggest(self, partial: str, limit: int | None = None) -> Suggestions:
        """The query itself followed by common phrases containing it."""
        query = (partial or "").strip()
        if len(query) < MIN_SUGGESTION_QUERY:
            raise QueryValidationError(f"Suggestion query must be at least {MIN_SUGGESTION_QUERY} characters")
        limit = self.settings.suggestion_limit if limit is None else max(1, min(limit, MAX_SUGGESTIONS))

        folded = query.casefold()
        suggestions = [query]
        for phrase in COMMON_PHRASES:
            if len(suggestions) >= limit:
                break
            if folded in phrase.casefold():
                suggestions.append(phrase)
        return Suggestions(suggestions=suggestions[:limit], query=query)

    # Statistics --------------------------------------------------------------

    def compute_stats(self, scope: StatsScope | None = None) -> CorpusStatistics:
        return self.snapshot.stats.compute(scope)

    def distribution(self, scope: StatsScope | None = None) -> LengthDistribution:
        return self.snapshot.stats.distribution(scope)

    def collection_report(self, collection_id: str) -> CollectionReport | None:
        return self.snapshot.stats.collection_report(collection_id)

    def frequent_terms(
        self,
        collection_id: str | None = None,
        variant: VariantTag | None = None,
        *,
        limit: int = 20,
    ) -> FrequentTerms:
        return self.snapshot.stats.frequent_terms(collection_id, variant, limit=limit)
