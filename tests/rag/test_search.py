"""Unit tests for similarity search module."""

from unittest.mock import Mock, patch

import pytest

from doc_assistant.rag.config import RAGConfig
from doc_assistant.rag.document_chunker import MarkdownHierarchy
from doc_assistant.rag.indexer import DocumentIndexer
from doc_assistant.rag.search import SearchUnavailableError, SimilaritySearch, search
from doc_assistant.rag.vector_store import EmbeddingStore, IndexParseError


@pytest.fixture
def config(tmp_path):
    return RAGConfig(index_path=tmp_path / "embeddings.json", similarity_threshold=0.5)


@pytest.fixture
def built_index(config, docs_dir, fake_embedding_fn):
    """Index the sample docs into config.index_path."""
    store = EmbeddingStore(config.index_path)
    DocumentIndexer(store).build_index(docs_dir, "md", MarkdownHierarchy(), fake_embedding_fn)
    return config.index_path


class TestSimilaritySearch:
    """Tests for SimilaritySearch class."""

    def test_default_threshold(self):
        searcher = SimilaritySearch(EmbeddingStore(), Mock())

        assert searcher.threshold == 0.7
        assert SimilaritySearch(EmbeddingStore(), Mock(), threshold=0).threshold == 0.7
        assert SimilaritySearch(EmbeddingStore(), Mock(), threshold=0.4).threshold == 0.4

    def test_empty_store_skips_embedding(self):
        embedding_fn = Mock()
        searcher = SimilaritySearch(EmbeddingStore(), embedding_fn, threshold=0.1)

        assert searcher.search("anything") == []
        embedding_fn.assert_not_called()

    def test_blank_query(self):
        store = EmbeddingStore()
        store.append("a", "text", [1.0])
        embedding_fn = Mock()

        assert SimilaritySearch(store, embedding_fn).search("   ") == []
        embedding_fn.assert_not_called()

    def test_search_with_scores(self):
        store = EmbeddingStore()
        store.append("a", "alpha", [1.0, 0.0])
        store.append("b", "beta", [0.6, 0.8])
        store.append("c", "gamma", [0.0, 1.0])
        embedding_fn = Mock(return_value=[1.0, 0.0])

        results = SimilaritySearch(store, embedding_fn, threshold=0.5).search_with_scores("q")

        assert [(r.id, r.content) for r in results] == [("a", "alpha"), ("b", "beta")]
        assert results[1].score == pytest.approx(0.6)
        embedding_fn.assert_called_once_with("q")

    def test_each_query_embedded(self):
        store = EmbeddingStore()
        store.append("a", "alpha", [1.0, 0.0])
        embedding_fn = Mock(return_value=[1.0, 0.0])
        searcher = SimilaritySearch(store, embedding_fn)

        searcher.search("same question")
        searcher.search("same question")

        assert embedding_fn.call_count == 2

    def test_max_results(self):
        store = EmbeddingStore()
        for i in range(5):
            store.append(f"id-{i}", f"text {i}", [1.0, i * 0.01])

        searcher = SimilaritySearch(store, lambda q: [1.0, 0.0], threshold=0.5, max_results=2)

        assert searcher.search("q") == ["text 0", "text 1"]

    def test_embedding_failure(self):
        store = EmbeddingStore()
        store.append("a", "alpha", [1.0])
        embedding_fn = Mock(side_effect=RuntimeError("connection refused"))

        with pytest.raises(SearchUnavailableError, match="connection refused"):
            SimilaritySearch(store, embedding_fn).search("q")

    def test_dimension_mismatch(self):
        store = EmbeddingStore()
        store.append("a", "alpha", [1.0, 0.0, 0.0, 0.0])
        embedding_fn = Mock(return_value=[1.0, 0.0])

        with pytest.raises(SearchUnavailableError, match="dimensions differ"):
            SimilaritySearch(store, embedding_fn).search("q")

    def test_from_config_without_index(self, config):
        assert SimilaritySearch.from_config(config, Mock()) is None

    def test_from_config(self, config, built_index, fake_embedding_fn):
        searcher = SimilaritySearch.from_config(config, fake_embedding_fn)

        assert len(searcher.store) == 4
        assert searcher.threshold == 0.5


class TestSearchFunction:
    """Tests for the search() entry point."""

    def test_missing_index_returns_empty(self, config):
        embedding_fn = Mock()

        assert search("how do I install python?", config, embedding_fn) == []
        embedding_fn.assert_not_called()

    @patch("doc_assistant.rag.search.create_embedding_function")
    def test_missing_index_does_not_create_provider(self, mock_factory, config):
        assert search("question", config) == []
        mock_factory.assert_not_called()

    def test_relevant_chunks(self, config, built_index, fake_embedding_fn):
        results = search("install python", config, fake_embedding_fn)

        assert results
        assert results[0].startswith("TITLE: Install")
        assert not any("Garden" in r for r in results)

    def test_results_sorted_and_above_threshold(self, config, built_index, fake_embedding_fn):
        searcher = SimilaritySearch.from_config(config, fake_embedding_fn)

        for query in ("python", "garden cooking", "config python install", "rust"):
            results = searcher.search_with_scores(query)
            scores = [r.score for r in results]
            assert scores == sorted(scores, reverse=True)
            assert all(score >= config.similarity_threshold for score in scores)

    def test_malformed_index(self, config):
        config.index_path.write_text("{broken", encoding="utf-8")

        with pytest.raises(IndexParseError):
            search("question", config, Mock(return_value=[1.0]))

    @patch("doc_assistant.rag.search.create_embedding_function")
    def test_default_provider_from_config(self, mock_factory, config, built_index, fake_embedding_fn):
        mock_factory.return_value = fake_embedding_fn

        results = search("garden", config)

        mock_factory.assert_called_once_with(config)
        assert results and "Garden" in results[0]

    @patch("doc_assistant.rag.search.create_embedding_function")
    def test_provider_creation_failure(self, mock_factory, config, built_index):
        mock_factory.side_effect = RuntimeError("no model")

        with pytest.raises(SearchUnavailableError, match="no model"):
            search("garden", config)
