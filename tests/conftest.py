"""Shared test fixtures and configuration.

Fixtures write a small two-collection corpus to ``tmp_path`` in both the
sharded and the unified layout:

- ``bukhari``: a regular and a fully diacritized rendering, 3 records each
- ``muslim``: a regular rendering with 2 records
"""

from __future__ import annotations

import copy
import json
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from hadith_search_server.config import Settings
from hadith_search_server.corpus.index import CollectionIndex, build_search_view
from hadith_search_server.corpus.loader import CorpusLoader
from hadith_search_server.domain.model import Corpus
from hadith_search_server.search.engine import SearchEngine


BUKHARI_REGULAR = [
    "حدثنا الحميدي قال حدثنا سفيان",
    "قال رسول الله إنما الأعمال بالنيات",
    "الصلاة عماد الدين",
]
BUKHARI_DIACRITIZED = [
    "حَدَّثَنَا الْحُمَيْدِيُّ",
    "قَالَ رَسُولُ اللَّهِ",
    "الصَّلَاةُ",
]
MUSLIM_REGULAR = [
    "حدثنا يحيى قال رسول الله",
    "الزكاة والصوم",
]


def _records(texts: list[str]) -> list[dict[str, Any]]:
    # Stored derived fields are deliberately wrong; ingestion recomputes them
    return [
        {"id": str(i), "text": text, "textLength": 999, "hasFullDiacritics": True} for i, text in enumerate(texts, 1)
    ]


def _file(file_type: str, file_name: str, texts: list[str]) -> dict[str, Any]:
    return {"fileType": file_type, "fileName": file_name, "hadiths": _records(texts), "count": len(texts)}


COLLECTIONS: list[dict[str, Any]] = [
    {
        "collectionId": "bukhari",
        "collectionName": "Sahih al-Bukhari",
        "collectionNameArabic": "صحيح البخاري",
        "files": [
            _file("regular", "bukhari.csv", BUKHARI_REGULAR),
            _file("mushakkala_mufassala", "bukhari_mushakkala.csv", BUKHARI_DIACRITIZED),
        ],
        "totalHadiths": 6,
    },
    {
        "collectionId": "muslim",
        "collectionName": "Sahih Muslim",
        "collectionNameArabic": "صحيح مسلم",
        "files": [_file("regular", "muslim.csv", MUSLIM_REGULAR)],
        "totalHadiths": 2,
    },
]

METADATA = {
    "version": "1.0.0",
    "generatedAt": "2024-01-01T00:00:00Z",
    "sourceFormat": "CSV",
    "encoding": "UTF-8",
}


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    return path


def write_unified(data_dir: Path, collections: list[dict[str, Any]] | None = None) -> Path:
    payload = {"collections": collections if collections is not None else COLLECTIONS, "metadata": METADATA}
    return write_json(data_dir / "hadith-data.json", payload)


def write_sharded(data_dir: Path, collections: list[dict[str, Any]] | None = None) -> Path:
    collections = collections if collections is not None else COLLECTIONS
    entries = []
    for collection in collections:
        filename = f"{collection['collectionId']}.json"
        write_json(data_dir / "collections" / filename, {"collection": collection, "metadata": METADATA})
        entries.append(
            {
                "collectionId": collection["collectionId"],
                "collectionName": collection["collectionName"],
                "filename": filename,
                "fileSizeMB": "0.01",
                "hadithCount": sum(len(f["hadiths"]) for f in collection["files"]),
            }
        )
    manifest = {
        "version": "1.0.0",
        "generatedAt": "2024-01-01T00:00:00Z",
        "totalCollections": len(entries),
        "files": entries,
    }
    return write_json(data_dir / "collections-manifest.json", manifest)


@pytest.fixture
def collections_payload() -> list[dict[str, Any]]:
    return copy.deepcopy(COLLECTIONS)


@pytest.fixture
def make_settings():
    def _make(data_dir: Path, **overrides: Any) -> Settings:
        return Settings(_env_file=None, data_dir=data_dir, **overrides)

    return _make


@pytest.fixture
def unified_dir(tmp_path: Path) -> Path:
    write_unified(tmp_path)
    return tmp_path


@pytest.fixture
def sharded_dir(tmp_path: Path) -> Path:
    write_sharded(tmp_path)
    return tmp_path


@pytest.fixture
def settings(unified_dir: Path, make_settings) -> Settings:
    return make_settings(unified_dir)


@pytest.fixture
def corpus(settings: Settings) -> Corpus:
    loaded, _ = CorpusLoader(settings).load()
    return loaded


@pytest.fixture
def index(corpus: Corpus) -> CollectionIndex:
    return CollectionIndex.build(corpus)


@pytest.fixture
def engine(corpus: Corpus) -> SearchEngine:
    return SearchEngine(build_search_view(corpus))


@pytest.fixture
def corpus_writer() -> SimpleNamespace:
    """Helpers for tests that need a custom on-disk layout."""
    return SimpleNamespace(unified=write_unified, sharded=write_sharded, json=write_json, metadata=METADATA)
