"""Corpus loading from sharded or unified source documents.

Two strategies are tried in strict priority order:

1. **sharded** - a manifest listing one document per collection. Every listed
   shard must exist, parse, and hold exactly the declared number of records;
   otherwise the whole strategy is abandoned (never a partial corpus).
2. **unified** - a single document holding every collection.

When neither resolves, :class:`LoadError` is raised and the server must not
start serving.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from pathlib import Path
import time
from typing import Any, Literal, TypeVar

import orjson
from pydantic import BaseModel, ValidationError
import psutil

from hadith_search_server.config import Settings
from hadith_search_server.corpus.sources import Manifest, ShardDocument, SourceCollection, UnifiedDocument
from hadith_search_server.domain.model import Corpus
from hadith_search_server.errors import InternalInconsistencyError, LoadError


logger = logging.getLogger(__name__)

LoadStrategy = Literal["sharded", "unified"]
ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass(frozen=True, slots=True)
class LoadReport:
    """Observability record of one successful load."""

    strategy: LoadStrategy
    source: str
    collections_count: int
    records_count: int
    duration_ms: float
    memory_mb: float
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy,
            "source": self.source,
            "collectionsCount": self.collections_count,
            "recordsCount": self.records_count,
            "durationMs": round(self.duration_ms, 2),
            "memoryMb": self.memory_mb,
            "loadedAt": self.loaded_at.isoformat(),
        }


class SourceNotFoundError(LoadError):
    """Raised when a strategy's source documents are absent."""


def _read_document(path: Path, model: type[ModelT]) -> ModelT:
    """Read and validate one JSON document, folding every failure into LoadError."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError as exc:
        raise SourceNotFoundError(f"Missing file: {path}") from exc
    except OSError as exc:
        raise LoadError(f"Unreadable file {path}: {exc}") from exc

    try:
        payload = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise LoadError(f"Invalid JSON in {path}: {exc}") from exc

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise LoadError(f"Unexpected document structure in {path}: {exc.error_count()} validation errors") from exc


def _build_corpus(collections: list[SourceCollection], metadata: dict[str, Any]) -> Corpus:
    """Convert validated sources to the domain tree. An empty corpus is a failed load."""
    try:
        corpus = Corpus(
            collections=tuple(collection.to_domain() for collection in collections),
            metadata=metadata,
        )
    except ValueError as exc:
        # Unknown variant tags surface here from VariantTag.parse
        raise LoadError(f"Invalid corpus content: {exc}") from exc

    if not corpus.collections or corpus.total_records == 0:
        counts = f"{len(corpus.collections)} collections, {corpus.total_records} records"
        raise LoadError(f"Refusing an empty corpus ({counts})")
    return corpus


def _memory_mb() -> float:
    return round(psutil.Process().memory_info().rss / (1024 * 1024), 1)


class CorpusLoader:
    """Resolve and deserialize the corpus into the in-memory tree."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def load(self) -> tuple[Corpus, LoadReport]:
        """Load the corpus using the best available strategy.

        Raises:
            LoadError: when neither the sharded nor the unified source resolves.
        """
        started = time.perf_counter()
        logger.info("Loading corpus from %s", self.settings.data_dir)

        failures: list[str] = []
        try:
            corpus = self.load_sharded()
        except SourceNotFoundError as exc:
            logger.info("Sharded source unavailable: %s", exc)
            failures.append(f"sharded: {exc}")
        except LoadError as exc:
            logger.warning("Abandoning sharded source: %s", exc)
            failures.append(f"sharded: {exc}")
        else:
            return corpus, self._report(corpus, "sharded", self.settings.manifest_path, started)

        try:
            corpus = self.load_unified()
        except LoadError as exc:
            failures.append(f"unified: {exc}")
            logger.error("Failed to load corpus: %s", "; ".join(failures))
            raise LoadError("No corpus source could be loaded (" + "; ".join(failures) + ")") from exc
        return corpus, self._report(corpus, "unified", self.settings.unified_path, started)

    def load_sharded(self) -> Corpus:
        """Load every shard listed in the manifest, in manifest order."""
        manifest_path = self.settings.manifest_path
        collections_dir = self.settings.collections_dir
        if not collections_dir.is_dir() or not manifest_path.is_file():
            raise SourceNotFoundError(f"Shard manifest {manifest_path} or directory {collections_dir} not found")

        manifest = _read_document(manifest_path, Manifest)
        if not manifest.files:
            raise LoadError(f"Manifest {manifest_path} lists no collections")
        logger.info("Found manifest with %d collections", len(manifest.files))

        collections: list[SourceCollection] = []
        shard_metadata: dict[str, Any] = {}
        for entry in manifest.files:
            shard_path = collections_dir / entry.filename
            try:
                shard = _read_document(shard_path, ShardDocument)
            except SourceNotFoundError as exc:
                # A missing shard is a failed strategy, not an absent one
                raise LoadError(str(exc)) from exc

            actual = shard.collection.record_count
            if actual != entry.record_count:
                raise InternalInconsistencyError(
                    f"Shard {entry.filename} holds {actual} records but the manifest declares {entry.record_count}"
                )
            if entry.collection_id and entry.collection_id != shard.collection.collection_id:
                raise InternalInconsistencyError(
                    f"Shard {entry.filename} holds collection '{shard.collection.collection_id}' "
                    f"but the manifest lists '{entry.collection_id}'"
                )

            collections.append(shard.collection)
            shard_metadata = shard_metadata or shard.metadata
            logger.debug("Loaded shard %s (%d records)", entry.filename, actual)

        metadata: dict[str, Any] = {
            "sourceFormat": shard_metadata.get("sourceFormat"),
            "encoding": shard_metadata.get("encoding"),
            "loadedFrom": "sharded",
            "version": manifest.version,
            "generatedAt": manifest.generated_at,
            "totalCollections": manifest.total_collections,
            "declaredRecords": manifest.declared_records,
        }
        return _build_corpus(collections, metadata)

    def load_unified(self) -> Corpus:
        """Load the single document holding every collection."""
        unified_path = self.settings.unified_path
        logger.info("Loading unified corpus from %s", unified_path)
        document = _read_document(unified_path, UnifiedDocument)
        metadata = {**document.metadata, "loadedFrom": "unified"}
        return _build_corpus(document.collections, metadata)

    def _report(self, corpus: Corpus, strategy: LoadStrategy, source: Path, started: float) -> LoadReport:
        report = LoadReport(
            strategy=strategy,
            source=str(source),
            collections_count=len(corpus.collections),
            records_count=corpus.total_records,
            duration_ms=(time.perf_counter() - started) * 1000,
            memory_mb=_memory_mb(),
        )
        logger.info(
            "Corpus loaded via %s: %d collections, %d records in %.0fms (rss %.1fMB)",
            report.strategy,
            report.collections_count,
            report.records_count,
            report.duration_ms,
            report.memory_mb,
        )
        return report
