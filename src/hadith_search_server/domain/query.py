"""Query options and result value objects.

Following Cosmic Python principles:
- Value Objects are immutable (frozen=True)
- No infrastructure dependencies

Field names are snake_case in Python and camelCase on the wire (the format
existing API clients already consume), so every model serializes with
``model_dump(by_alias=True)`` and accepts either spelling on input.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hadith_search_server.domain.model import VariantTag


DEFAULT_LIMIT = 20
DEFAULT_OFFSET = 0


class WireModel(BaseModel):
    """Base for immutable camelCase-serialized models."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _parse_variant(value: Any) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return VariantTag.parse(value)
    return value


OptionalVariant = Annotated[VariantTag | None, BeforeValidator(_parse_variant)]
Variant = Annotated[VariantTag, BeforeValidator(_parse_variant)]


# Options ------------------------------------------------------------------


class ListOptions(WireModel):
    """Paging through the records of one collection."""

    variant: OptionalVariant = Field(default=None, alias="fileType")
    limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    offset: int = Field(default=DEFAULT_OFFSET, ge=0)


class SearchOptions(WireModel):
    """Options for a plain search.

    Defaults: fuzzy matching, ``limit`` 20, ``offset`` 0, no restriction.
    """

    collection_id: str | None = Field(default=None, alias="collection")
    variant: OptionalVariant = Field(default=None, alias="fileType")
    exact: bool = False
    limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    offset: int = Field(default=DEFAULT_OFFSET, ge=0)

    @field_validator("collection_id", mode="before")
    @classmethod
    def _blank_collection_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AdvancedSearchOptions(WireModel):
    """Search followed by the compound post-filter.

    Empty ``collections`` or ``variants`` mean "unrestricted" for that
    dimension. Length bounds are inclusive.
    """

    collections: list[str] = Field(default_factory=list)
    variants: list[Variant] = Field(default_factory=list, alias="fileTypes")
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    diacritics: bool | None = Field(default=None, alias="hasFullDiacritics")
    exact: bool = False
    limit: int = Field(default=DEFAULT_LIMIT, ge=0)
    offset: int = Field(default=DEFAULT_OFFSET, ge=0)


class StatsScope(WireModel):
    """Optional restriction of statistics to one collection or one variant."""

    collection_id: str | None = Field(default=None, alias="collection")
    variant: OptionalVariant = Field(default=None, alias="fileType")


# Results ------------------------------------------------------------------


class RecordView(WireModel):
    """A record annotated with its owning collection and variant."""

    record_id: str = Field(alias="id")
    text: str
    text_length: int
    has_full_diacritics: bool
    collection_id: str
    collection_name: str
    file_type: VariantTag


class SearchHit(RecordView):
    collection_name_arabic: str
    relevance_score: int


class Pagination(WireModel):
    total: int
    limit: int
    offset: int
    has_more: bool

    @classmethod
    def slice_of(cls, total: int, limit: int, offset: int) -> Pagination:
        return cls(total=total, limit=limit, offset=offset, has_more=offset + limit < total)


class RecordPage(WireModel):
    results: list[RecordView] = Field(alias="hadiths")
    pagination: Pagination


class QueryEcho(WireModel):
    term: str
    options: dict[str, Any] = Field(default_factory=dict)


class SearchPage(WireModel):
    results: list[SearchHit] = Field(alias="hadiths")
    pagination: Pagination
    query: QueryEcho

    @property
    def total(self) -> int:
        return self.pagination.total

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more


class AppliedFilters(WireModel):
    collections: int = 0
    file_types: int = 0
    length_filter: bool = False
    diacritics_filter: bool = False


class FilterSummary(WireModel):
    applied: AppliedFilters
    results_before_filtering: int
    results_after_filtering: int


class AdvancedSearchPage(SearchPage):
    filters: FilterSummary


class CollectionSummary(WireModel):
    collection_id: str
    collection_name: str
    collection_name_arabic: str
    total_records: int = Field(alias="totalHadiths")
    file_types: list[VariantTag]


class VariantSummary(WireModel):
    file_type: VariantTag
    file_name: str | None = None
    count: int


class CollectionDetail(WireModel):
    collection_id: str
    collection_name: str
    collection_name_arabic: str
    total_records: int = Field(alias="totalHadiths")
    files: list[VariantSummary]


class Suggestions(WireModel):
    suggestions: list[str]
    query: str
