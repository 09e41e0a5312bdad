"""Schemas for the on-disk corpus documents.

Three documents exist, all produced by external conversion tooling:

- the unified document: ``{"collections": [...], "metadata": {...}}``
- one shard per collection: ``{"collection": {...}, "metadata": {...}}``
- the shard manifest: ``{"files": [{"filename", "hadithCount", "fileSizeMB"}, ...]}``

Validation happens here, once per load; the resulting domain objects are
plain frozen dataclasses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hadith_search_server.domain.model import Collection, FileVariant, Record, VariantTag


class _SourceModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class SourceRecord(_SourceModel):
    """A stored record. Stored ``textLength``/``hasFullDiacritics`` are ignored."""

    id: str = Field(min_length=1)
    text: str


class SourceFile(_SourceModel):
    file_type: str
    file_name: str | None = None
    count: int | None = Field(default=None, ge=0)
    records: list[SourceRecord] = Field(default_factory=list, alias="hadiths")

    def to_domain(self) -> FileVariant:
        records = tuple(Record.from_text(item.id.strip(), item.text) for item in self.records)
        declared = self.count if self.count is not None else len(records)
        return FileVariant(
            tag=VariantTag.parse(self.file_type),
            records=records,
            count=declared,
            file_name=self.file_name,
        )


class SourceCollection(_SourceModel):
    collection_id: str = Field(min_length=1)
    collection_name: str
    collection_name_arabic: str = ""
    files: list[SourceFile] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return sum(len(source_file.records) for source_file in self.files)

    def to_domain(self) -> Collection:
        return Collection(
            collection_id=self.collection_id,
            name=self.collection_name,
            name_arabic=self.collection_name_arabic,
            variants=tuple(source_file.to_domain() for source_file in self.files),
        )


class UnifiedDocument(_SourceModel):
    collections: list[SourceCollection]
    metadata: dict[str, Any] = Field(default_factory=dict)


class ShardDocument(_SourceModel):
    collection: SourceCollection
    metadata: dict[str, Any] = Field(default_factory=dict)


class ManifestEntry(_SourceModel):
    filename: str = Field(min_length=1)
    record_count: int = Field(ge=0, alias="hadithCount")
    file_size_mb: float | None = Field(default=None, alias="fileSizeMB")
    collection_id: str | None = None
    collection_name: str | None = None


class Manifest(_SourceModel):
    version: str | None = None
    generated_at: str | None = None
    total_collections: int | None = None
    files: list[ManifestEntry]
    summary: dict[str, Any] = Field(default_factory=dict)

    @property
    def declared_records(self) -> int:
        return sum(entry.record_count for entry in self.files)
