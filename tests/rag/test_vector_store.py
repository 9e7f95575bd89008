"""Unit tests for embedding store module."""

import json
import math
from unittest.mock import patch

import numpy as np
import pytest

from doc_assistant.rag.types import EmbeddingRecord, SimilarityResult
from doc_assistant.rag.vector_store import (
    DuplicateIDError,
    EmbeddingStore,
    IndexNotFoundError,
    IndexParseError,
    cosine_similarity,
)


@pytest.fixture
def populated_store(tmp_path):
    """Store with a few 2-d records at known angles."""
    store = EmbeddingStore(tmp_path / "embeddings.json")
    store.append("east", "points east", [1.0, 0.0])
    store.append("north-east", "points north-east", [1.0, 1.0])
    store.append("north", "points north", [0.0, 1.0])
    store.append("west", "points west", [-1.0, 0.0])
    return store


class TestCosineSimilarity:
    """Tests for cosine_similarity function."""

    def test_identical_vectors(self):
        for vector in ([1.0, 2.0, 3.0], [0.1, -0.7], np.array([5.0]), [1e-8, 3e-8]):
            assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_orthogonal_and_opposite(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)

    def test_scale_invariant(self):
        assert cosine_similarity([1, 2], [10, 20]) == pytest.approx(1.0)

    def test_zero_vector(self):
        assert cosine_similarity([0, 0], [1, 1]) == 0.0
        assert cosine_similarity([1, 1], [0, 0]) == 0.0
        assert cosine_similarity([0, 0], [0, 0]) == 0.0

    def test_dimension_mismatch(self):
        with pytest.raises(ValueError, match="dimensions differ"):
            cosine_similarity([1, 0], [1, 0, 0])


class TestEmbeddingStoreRecords:
    """Tests for append and reset."""

    def test_append(self):
        store = EmbeddingStore()
        record = store.append("a-chunk-1", "text", np.array([0.5, 0.25]))

        assert record == EmbeddingRecord(id="a-chunk-1", content="text", embedding=[0.5, 0.25])
        assert len(store) == 1
        assert "a-chunk-1" in store
        assert store.ids() == ["a-chunk-1"]

    def test_append_duplicate_id(self):
        store = EmbeddingStore()
        store.append("a", "text", [1.0])

        with pytest.raises(DuplicateIDError, match="already in store"):
            store.append("a", "other", [2.0])
        assert len(store) == 1
        assert store.records[0].content == "text"

    def test_append_empty_embedding(self):
        with pytest.raises(ValueError, match="empty"):
            EmbeddingStore().append("a", "text", [])

    def test_reset_idempotent(self, populated_store):
        populated_store.reset()
        populated_store.reset()

        assert len(populated_store) == 0
        # ids are free again after reset
        populated_store.append("east", "again", [1.0, 0.0])
        assert populated_store.ids() == ["east"]

    def test_reset_empty_store(self):
        store = EmbeddingStore()
        store.reset()
        assert len(store) == 0


class TestEmbeddingStoreSearch:
    """Tests for similarity search."""

    def test_empty_store(self):
        store = EmbeddingStore()

        for threshold in (-1.0, 0.0, 0.7, 1.0):
            assert store.search([1.0, 0.0], threshold) == []

    def test_threshold_and_order(self, populated_store):
        results = populated_store.search([1.0, 0.0], threshold=0.5)

        assert [r.id for r in results] == ["east", "north-east"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(math.sqrt(0.5))
        assert all(isinstance(r, SimilarityResult) for r in results)

    def test_results_never_below_threshold(self, populated_store):
        for threshold in (-1.0, -0.5, 0.0, 0.3, 0.71, 0.99):
            results = populated_store.search([0.8, 0.3], threshold)

            assert all(r.score >= threshold for r in results)
            scores = [r.score for r in results]
            assert scores == sorted(scores, reverse=True)

    def test_ties_keep_insertion_order(self):
        store = EmbeddingStore()
        store.append("first", "one", [1.0, 0.0])
        store.append("second", "two", [2.0, 0.0])
        store.append("third", "three", [3.0, 0.0])

        results = store.search([1.0, 0.0], threshold=0.0)

        assert [r.id for r in results] == ["first", "second", "third"]

    def test_limit(self, populated_store):
        results = populated_store.search([1.0, 0.0], threshold=-1.0, limit=2)

        assert [r.id for r in results] == ["east", "north-east"]

    def test_zero_query_vector(self, populated_store):
        assert populated_store.search([0.0, 0.0], threshold=0.1) == []


class TestEmbeddingStorePersistence:
    """Tests for persist and load."""

    def test_round_trip(self, populated_store, tmp_path):
        path = tmp_path / "out" / "index.json"
        populated_store.persist(path)

        loaded = EmbeddingStore()
        count = loaded.load(path)

        assert count == 4
        original = {r.id: r for r in populated_store}
        restored = {r.id: r for r in loaded}
        assert original == restored

    def test_file_format(self, populated_store):
        path = populated_store.persist()
        data = json.loads(path.read_text(encoding="utf-8"))

        assert isinstance(data, list)
        assert data[0] == {"id": "east", "content": "points east", "embedding": [1.0, 0.0]}

    def test_persist_overwrites(self, populated_store, tmp_path):
        path = tmp_path / "embeddings.json"
        path.write_text("old content", encoding="utf-8")

        populated_store.persist(path)

        assert len(json.loads(path.read_text(encoding="utf-8"))) == 4
        assert not (tmp_path / "embeddings.json.tmp").exists()

    def test_persist_failure_keeps_previous_file(self, populated_store, tmp_path):
        path = tmp_path / "embeddings.json"
        path.write_text("[]", encoding="utf-8")

        with patch("doc_assistant.rag.vector_store.json.dump", side_effect=OSError("disk full")):
            with pytest.raises(OSError, match="disk full"):
                populated_store.persist(path)

        assert path.read_text(encoding="utf-8") == "[]"
        assert not (tmp_path / "embeddings.json.tmp").exists()

    def test_persist_without_path(self):
        with pytest.raises(ValueError, match="No index path"):
            EmbeddingStore().persist()

    def test_load_replaces_records(self, populated_store, tmp_path):
        path = tmp_path / "small.json"
        path.write_text(json.dumps([{"id": "x", "content": "y", "embedding": [1, 2]}]), encoding="utf-8")

        populated_store.load(path)

        assert populated_store.ids() == ["x"]
        assert populated_store.records[0].embedding == [1.0, 2.0]

    def test_load_missing_file(self, tmp_path):
        store = EmbeddingStore()

        with pytest.raises(IndexNotFoundError):
            store.load(tmp_path / "missing.json")
        # Missing index is also a FileNotFoundError for generic callers
        with pytest.raises(FileNotFoundError):
            store.load(tmp_path / "missing.json")

    def test_load_ignores_unknown_fields(self, tmp_path):
        path = tmp_path / "index.json"
        path.write_text(json.dumps([
            {"id": "a", "content": "text", "embedding": [0.1], "metadata": {"source": "a.md"}},
        ]), encoding="utf-8")

        store = EmbeddingStore()
        store.load(path)

        assert store.records == [EmbeddingRecord(id="a", content="text", embedding=[0.1])]

    @pytest.mark.parametrize("content", [
        "not json",
        json.dumps({"id": "a"}),
        json.dumps([{"id": "a", "content": "text"}]),
        json.dumps([{"id": "a", "content": "text", "embedding": ["x"]}]),
        json.dumps(["string entry"]),
        json.dumps([
            {"id": "a", "content": "one", "embedding": [1]},
            {"id": "a", "content": "two", "embedding": [2]},
        ]),
    ])
    def test_load_malformed(self, tmp_path, content):
        path = tmp_path / "index.json"
        path.write_text(content, encoding="utf-8")
        store = EmbeddingStore()
        store.append("keep", "me", [1.0])

        with pytest.raises(IndexParseError):
            store.load(path)
        # Failed load leaves existing records alone
        assert store.ids() == ["keep"]


class TestEmbeddingStoreStats:
    """Tests for stats."""

    def test_stats(self, populated_store, tmp_path):
        stats = populated_store.stats()

        assert stats["total_records"] == 4
        assert stats["dimensions"] == [2]
        assert stats["index_path"] == str(tmp_path / "embeddings.json")
