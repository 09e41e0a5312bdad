"""Corpus statistics computed on demand.

Every call makes one linear pass over the records in scope; nothing is
cached because the corpus is small enough and the endpoints are rarely hit.
All divisions guard against empty scopes and report zeros instead.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Iterator
import math
import re
from typing import TYPE_CHECKING, Any

from pydantic import Field

from hadith_search_server.domain.model import Collection, Corpus, FileVariant, VariantTag
from hadith_search_server.domain.query import CollectionSummary, StatsScope, WireModel


if TYPE_CHECKING:
    from hadith_search_server.corpus.index import CollectionIndex


PERCENTILES = (10, 25, 50, 75, 90, 95, 99)

# (label, lower bound inclusive, upper bound exclusive)
LENGTH_RANGES = (
    ("0-99", 0, 100),
    ("100-299", 100, 300),
    ("300-599", 300, 600),
    ("600-999", 600, 1000),
    ("1000+", 1000, None),
)
LENGTH_CLASSES = ("very_short", "short", "medium", "long", "very_long")

DEFAULT_TERM_LIMIT = 20
OVERVIEW_TERM_LIMIT = 10

_NON_ARABIC = re.compile(r"[^\u0600-\u06FF\u0750-\u077F]")


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percentage(part: int, whole: int) -> float:
    """``part / whole`` as a percentage with two decimals; 0 for an empty whole."""
    if whole <= 0:
        return 0.0
    return math.floor(part / whole * 100 * 100 + 0.5) / 100


def _bucket_index(length: int) -> int:
    for position, (_, lower, upper) in enumerate(LENGTH_RANGES):
        if length >= lower and (upper is None or length < upper):
            return position
    return 0


def _bucket_counts(lengths: Iterable[int]) -> list[int]:
    counts = [0] * len(LENGTH_RANGES)
    for length in lengths:
        counts[_bucket_index(length)] += 1
    return counts


# Result models ---------------------------------------------------------------


class LengthBucket(WireModel):
    count: int
    percentage: float


class LengthStatistics(WireModel):
    total: int = 0
    mean: int = 0
    median: int = 0
    min: int = 0
    max: int = 0
    standard_deviation: int = 0


class LengthDistribution(WireModel):
    ranges: dict[str, LengthBucket]
    statistics: LengthStatistics
    percentiles: dict[str, int]


class CorpusOverview(WireModel):
    total_collections: int
    total_records: int = Field(alias="totalHadiths")
    total_files: int
    average_record_length: int = Field(alias="averageHadithLength")
    total_characters: int


class CollectionShare(CollectionSummary):
    percentage: float


class TermFrequency(WireModel):
    term: str
    frequency: int
    percentage: float


class TermAnalysis(WireModel):
    total_terms: int
    unique_terms: int
    analyzed_records: int = Field(alias="analyzedHadiths")


class FrequentTerms(WireModel):
    terms: list[TermFrequency] = Field(alias="frequentTerms")
    analysis: TermAnalysis


class CorpusStatistics(WireModel):
    overview: CorpusOverview
    collections: list[CollectionShare]
    distribution: LengthDistribution
    frequent_terms: list[TermFrequency]
    metadata: dict[str, Any] = Field(default_factory=dict)


class VariantReport(WireModel):
    file_type: VariantTag
    count: int
    average_length: int
    min_length: int
    max_length: int
    with_diacritics: int
    without_diacritics: int


class DiacriticsAnalysis(WireModel):
    total_with_diacritics: int
    total_without_diacritics: int
    percentage_with_diacritics: float


class CollectionAnalysis(WireModel):
    total_characters: int
    length_distribution: dict[str, int]
    diacritics_analysis: DiacriticsAnalysis


class CollectionReport(WireModel):
    collection: CollectionSummary
    files: list[VariantReport]
    analysis: CollectionAnalysis


def length_distribution(lengths: list[int]) -> LengthDistribution:
    """Range buckets, summary statistics and the percentile ladder.

    The median is ``sorted[n // 2]`` and percentile ``p`` is
    ``sorted[floor(p / 100 * n)]``; an empty input yields zeros and no
    percentiles.
    """
    total = len(lengths)
    ranges = {
        label: LengthBucket(count=count, percentage=percentage(count, total))
        for (label, _, _), count in zip(LENGTH_RANGES, _bucket_counts(lengths))
    }
    if not total:
        return LengthDistribution(ranges=ranges, statistics=LengthStatistics(), percentiles={})

    ordered = sorted(lengths)
    mean = sum(ordered) / total
    variance = sum((length - mean) ** 2 for length in ordered) / total
    statistics = LengthStatistics(
        total=total,
        mean=round_half_up(mean),
        median=ordered[total // 2],
        min=ordered[0],
        max=ordered[-1],
        standard_deviation=round_half_up(math.sqrt(variance)),
    )
    percentiles = {f"p{p}": ordered[p * total // 100] for p in PERCENTILES}
    return LengthDistribution(ranges=ranges, statistics=statistics, percentiles=percentiles)


def summarize(collection: Collection) -> CollectionSummary:
    return CollectionSummary(
        collection_id=collection.collection_id,
        collection_name=collection.name,
        collection_name_arabic=collection.name_arabic,
        total_records=collection.total_records,
        file_types=collection.variant_tags,
    )


class StatisticsAggregator:
    """Aggregate length, share and term statistics over a loaded corpus."""

    def __init__(
        self,
        corpus: Corpus,
        index: CollectionIndex,
        *,
        term_token_budget: int = 50,
        min_term_length: int = 3,
    ) -> None:
        self.corpus = corpus
        self.index = index
        self.term_token_budget = term_token_budget
        self.min_term_length = min_term_length

    def _collections(self, collection_id: str | None) -> list[Collection]:
        if collection_id is None:
            return list(self.corpus.collections)
        collection = self.index.get(collection_id)
        return [collection] if collection is not None else []

    def _variants(
        self,
        collection_id: str | None,
        variant: VariantTag | None,
    ) -> Iterator[tuple[Collection, FileVariant]]:
        for collection in self._collections(collection_id):
            for file_variant in collection.iter_variants(variant):
                yield collection, file_variant

    def compute(self, scope: StatsScope | None = None) -> CorpusStatistics:
        """Overview, per-collection share, length distribution and top terms."""
        scope = scope or StatsScope()
        collections = self._collections(scope.collection_id)

        lengths: list[int] = []
        per_collection: list[tuple[Collection, int]] = []
        total_files = 0
        for collection in collections:
            records = 0
            for file_variant in collection.iter_variants(scope.variant):
                total_files += 1
                records += file_variant.count
                lengths.extend(record.text_length for record in file_variant.records)
            per_collection.append((collection, records))

        total_records = len(lengths)
        total_characters = sum(lengths)
        overview = CorpusOverview(
            total_collections=len(collections),
            total_records=total_records,
            total_files=total_files,
            average_record_length=round_half_up(total_characters / total_records) if total_records else 0,
            total_characters=total_characters,
        )
        shares = [
            CollectionShare(
                **summarize(collection).model_dump(),
                percentage=percentage(records, total_records),
            )
            for collection, records in per_collection
        ]
        metadata = self.corpus.metadata
        return CorpusStatistics(
            overview=overview,
            collections=shares,
            distribution=length_distribution(lengths),
            frequent_terms=self.frequent_terms(
                scope.collection_id,
                scope.variant,
                limit=OVERVIEW_TERM_LIMIT,
            ).terms,
            metadata={
                "dataVersion": metadata.get("version"),
                "generatedAt": metadata.get("generatedAt"),
                "sourceFormat": metadata.get("sourceFormat"),
                "encoding": metadata.get("encoding"),
                "loadedFrom": metadata.get("loadedFrom"),
            },
        )

    def distribution(self, scope: StatsScope | None = None) -> LengthDistribution:
        scope = scope or StatsScope()
        lengths = [
            record.text_length
            for _, file_variant in self._variants(scope.collection_id, scope.variant)
            for record in file_variant.records
        ]
        return length_distribution(lengths)

    def collection_report(self, collection_id: str) -> CollectionReport | None:
        """Per-variant length and diacritics breakdown of one collection."""
        collection = self.index.get(collection_id)
        if collection is None:
            return None

        files: list[VariantReport] = []
        all_lengths: list[int] = []
        for file_variant in collection.variants:
            lengths = [record.text_length for record in file_variant.records]
            with_diacritics = sum(1 for record in file_variant.records if record.has_full_diacritics)
            count = len(lengths)
            files.append(
                VariantReport(
                    file_type=file_variant.tag,
                    count=count,
                    average_length=round_half_up(sum(lengths) / count) if count else 0,
                    min_length=min(lengths, default=0),
                    max_length=max(lengths, default=0),
                    with_diacritics=with_diacritics,
                    without_diacritics=count - with_diacritics,
                )
            )
            all_lengths.extend(lengths)

        total_with = sum(report.with_diacritics for report in files)
        total = collection.total_records
        return CollectionReport(
            collection=summarize(collection),
            files=files,
            analysis=CollectionAnalysis(
                total_characters=sum(all_lengths),
                length_distribution=dict(zip(LENGTH_CLASSES, _bucket_counts(all_lengths))),
                diacritics_analysis=DiacriticsAnalysis(
                    total_with_diacritics=total_with,
                    total_without_diacritics=total - total_with,
                    percentage_with_diacritics=percentage(total_with, total),
                ),
            ),
        )

    def frequent_terms(
        self,
        collection_id: str | None = None,
        variant: VariantTag | None = None,
        *,
        limit: int = DEFAULT_TERM_LIMIT,
    ) -> FrequentTerms:
        """Most frequent Arabic terms, ties in order of first appearance.

        Without ``variant`` only regular renderings are read, otherwise each
        narration would be counted once per rendering.
        """
        variant = variant or VariantTag.REGULAR
        frequencies: Counter[str] = Counter()
        analyzed = 0
        for _, file_variant in self._variants(collection_id, variant):
            for record in file_variant.records:
                analyzed += 1
                words = [word for word in record.text.split() if len(word) >= self.min_term_length]
                for word in words[: self.term_token_budget]:
                    term = _NON_ARABIC.sub("", word)
                    if len(term) >= self.min_term_length:
                        frequencies[term] += 1

        total_terms = sum(frequencies.values())
        return FrequentTerms(
            terms=[
                TermFrequency(term=term, frequency=count, percentage=percentage(count, total_terms))
                for term, count in frequencies.most_common(max(limit, 0))
            ],
            analysis=TermAnalysis(
                total_terms=total_terms,
                unique_terms=len(frequencies),
                analyzed_records=analyzed,
            ),
        )
