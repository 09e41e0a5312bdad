"""Unit tests for corpus loading strategies."""

from __future__ import annotations

import pytest

from hadith_search_server.corpus.loader import CorpusLoader
from hadith_search_server.domain.model import VariantTag
from hadith_search_server.errors import InternalInconsistencyError, LoadError


def test_sharded_layout_is_preferred(tmp_path, corpus_writer, make_settings) -> None:
    corpus_writer.sharded(tmp_path)
    corpus_writer.unified(tmp_path)

    corpus, report = CorpusLoader(make_settings(tmp_path)).load()

    assert report.strategy == "sharded"
    assert report.records_count == 8
    assert report.collections_count == 2
    assert corpus.metadata["loadedFrom"] == "sharded"
    assert [c.collection_id for c in corpus.collections] == ["bukhari", "muslim"]


def test_unified_layout_loads_when_no_manifest(unified_dir, make_settings) -> None:
    corpus, report = CorpusLoader(make_settings(unified_dir)).load()

    assert report.strategy == "unified"
    assert corpus.metadata["loadedFrom"] == "unified"
    assert corpus.metadata["sourceFormat"] == "CSV"


def test_total_records_do_not_depend_on_strategy(tmp_path, corpus_writer, make_settings) -> None:
    sharded = tmp_path / "sharded"
    unified = tmp_path / "unified"
    corpus_writer.sharded(sharded)
    corpus_writer.unified(unified)

    sharded_corpus, _ = CorpusLoader(make_settings(sharded)).load()
    unified_corpus, _ = CorpusLoader(make_settings(unified)).load()

    assert sharded_corpus.total_records == unified_corpus.total_records == 8
    assert sharded_corpus.total_records == sum(
        variant.count for collection in sharded_corpus.collections for variant in collection.variants
    )


def test_manifest_count_mismatch_falls_back_to_unified(tmp_path, corpus_writer, make_settings) -> None:
    manifest_path = corpus_writer.sharded(tmp_path)
    corpus_writer.unified(tmp_path)
    manifest = manifest_path.read_text(encoding="utf-8").replace('"hadithCount": 2', '"hadithCount": 3')
    manifest_path.write_text(manifest, encoding="utf-8")

    corpus, report = CorpusLoader(make_settings(tmp_path)).load()

    assert report.strategy == "unified"
    assert corpus.total_records == 8


def test_manifest_count_mismatch_is_an_inconsistency(tmp_path, corpus_writer, make_settings) -> None:
    manifest_path = corpus_writer.sharded(tmp_path)
    manifest = manifest_path.read_text(encoding="utf-8").replace('"hadithCount": 6', '"hadithCount": 5')
    manifest_path.write_text(manifest, encoding="utf-8")

    with pytest.raises(InternalInconsistencyError):
        CorpusLoader(make_settings(tmp_path)).load_sharded()


def test_missing_shard_abandons_sharded_strategy(tmp_path, corpus_writer, make_settings) -> None:
    corpus_writer.sharded(tmp_path)
    corpus_writer.unified(tmp_path)
    (tmp_path / "collections" / "muslim.json").unlink()

    corpus, report = CorpusLoader(make_settings(tmp_path)).load()

    assert report.strategy == "unified"
    assert len(corpus.collections) == 2


def test_broken_sharded_source_without_unified_fails(tmp_path, corpus_writer, make_settings) -> None:
    corpus_writer.sharded(tmp_path)
    (tmp_path / "collections" / "bukhari.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(LoadError) as excinfo:
        CorpusLoader(make_settings(tmp_path)).load()

    assert "sharded" in str(excinfo.value)
    assert "unified" in str(excinfo.value)


def test_no_source_at_all_is_a_load_error(tmp_path, make_settings) -> None:
    with pytest.raises(LoadError):
        CorpusLoader(make_settings(tmp_path)).load()


def test_empty_manifest_falls_back_to_unified(tmp_path, corpus_writer, make_settings) -> None:
    corpus_writer.unified(tmp_path)
    (tmp_path / "collections").mkdir()
    corpus_writer.json(tmp_path / "collections-manifest.json", {"version": "1.0.0", "files": []})

    corpus, report = CorpusLoader(make_settings(tmp_path)).load()

    assert report.strategy == "unified"
    assert report.records_count == 8
    assert len(corpus.collections) == 2


def test_empty_sources_are_a_load_error(tmp_path, corpus_writer, make_settings) -> None:
    (tmp_path / "collections").mkdir()
    corpus_writer.json(tmp_path / "collections-manifest.json", {"files": []})
    corpus_writer.unified(tmp_path, [])

    with pytest.raises(LoadError) as excinfo:
        CorpusLoader(make_settings(tmp_path)).load()

    assert "lists no collections" in str(excinfo.value)
    assert "empty corpus" in str(excinfo.value)


def test_sharded_metadata_carries_source_format(sharded_dir, make_settings) -> None:
    corpus, report = CorpusLoader(make_settings(sharded_dir)).load()

    assert report.strategy == "sharded"
    assert corpus.metadata["sourceFormat"] == "CSV"
    assert corpus.metadata["encoding"] == "UTF-8"


def test_declared_variant_count_must_match(tmp_path, corpus_writer, make_settings, collections_payload) -> None:
    collections_payload[1]["files"][0]["count"] = 5
    corpus_writer.unified(tmp_path, collections_payload)

    with pytest.raises(InternalInconsistencyError):
        CorpusLoader(make_settings(tmp_path)).load_unified()


def test_duplicate_collection_ids_are_rejected(tmp_path, corpus_writer, make_settings, collections_payload) -> None:
    collections_payload[1]["collectionId"] = "bukhari"
    corpus_writer.unified(tmp_path, collections_payload)

    with pytest.raises(LoadError, match="Duplicate collection id"):
        CorpusLoader(make_settings(tmp_path)).load()


def test_unknown_file_type_is_rejected(tmp_path, corpus_writer, make_settings, collections_payload) -> None:
    collections_payload[0]["files"][0]["fileType"] = "audio"
    corpus_writer.unified(tmp_path, collections_payload)

    with pytest.raises(LoadError):
        CorpusLoader(make_settings(tmp_path)).load()


def test_schema_violation_is_a_load_error(tmp_path, corpus_writer, make_settings) -> None:
    corpus_writer.json(tmp_path / "hadith-data.json", {"collections": [{"files": []}]})

    with pytest.raises(LoadError):
        CorpusLoader(make_settings(tmp_path)).load()


def test_stored_derived_fields_are_recomputed(corpus) -> None:
    bukhari = corpus.collections[0]
    regular, diacritized = bukhari.variants

    assert regular.tag is VariantTag.REGULAR
    assert diacritized.tag is VariantTag.FULLY_DIACRITIZED
    for record in regular.records:
        assert record.text_length == len(record.text)
        assert record.has_full_diacritics is False
    assert all(record.has_full_diacritics for record in diacritized.records)


def test_numeric_record_ids_are_read_as_strings(tmp_path, corpus_writer, make_settings, collections_payload) -> None:
    for item in collections_payload[1]["files"][0]["hadiths"]:
        item["id"] = int(item["id"])
    corpus_writer.unified(tmp_path, collections_payload)

    corpus, _ = CorpusLoader(make_settings(tmp_path)).load()

    assert [r.record_id for r in corpus.collections[1].variants[0].records] == ["1", "2"]


def test_load_report_serializes_camel_case(unified_dir, make_settings) -> None:
    _, report = CorpusLoader(make_settings(unified_dir)).load()

    payload = report.to_dict()

    assert payload["strategy"] == "unified"
    assert payload["recordsCount"] == 8
    assert payload["memoryMb"] > 0
    assert "loadedAt" in payload
