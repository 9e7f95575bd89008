"""Similarity search over a persisted embedding store.

RAG is optional: a missing index gives empty results, never an error. A
failing embedding provider is reported as SearchUnavailableError so callers
can log a warning and answer without augmentation.
"""

import logging
from typing import Callable, List, Optional, Sequence

from .config import DEFAULT_SIMILARITY_THRESHOLD, RAGConfig
from .embedding_service import create_embedding_function
from .types import SimilarityResult
from .vector_store import EmbeddingStore, IndexNotFoundError

logger = logging.getLogger(__name__)

EmbeddingFunction = Callable[[str], Sequence[float]]


class SearchUnavailableError(RuntimeError):
    """Raised when the query cannot be embedded."""


class SimilaritySearch:
    """Query interface over a loaded, read-only embedding store.

    Attributes:
        store: Embedding store holding the indexed chunks
        embedding_fn: Function returning the embedding vector for a text
        threshold: Minimum cosine similarity for a result
        max_results: Maximum number of results (None for no limit)
    """

    def __init__(
        self,
        store: EmbeddingStore,
        embedding_fn: EmbeddingFunction,
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
    ):
        self.store = store
        self.embedding_fn = embedding_fn
        self.threshold = threshold or DEFAULT_SIMILARITY_THRESHOLD
        self.max_results = max_results

    @classmethod
    def from_config(
        cls,
        config: RAGConfig,
        embedding_fn: EmbeddingFunction,
    ) -> Optional["SimilaritySearch"]:
        """Load the configured index once for a session.

        Returns:
            SimilaritySearch, or None if no index has been built yet

        Raises:
            IndexParseError: If the index file is malformed
        """
        store = EmbeddingStore(config.index_path)
        try:
            store.load()
        except IndexNotFoundError:
            logger.debug(f"No index at {config.index_path}, search disabled")
            return None

        return cls(
            store=store,
            embedding_fn=embedding_fn,
            threshold=config.similarity_threshold,
            max_results=config.max_results,
        )

    def search_with_scores(self, query: str) -> List[SimilarityResult]:
        """Find stored chunks similar to the query.

        Returns:
            SimilarityResult list, highest score first

        Raises:
            SearchUnavailableError: If the query embedding fails or its
                dimension does not match the indexed vectors
        """
        if not query or not query.strip() or len(self.store) == 0:
            return []

        try:
            query_embedding = self.embedding_fn(query)
        except Exception as e:
            raise SearchUnavailableError(f"Could not embed query: {e}") from e

        try:
            results = self.store.search(query_embedding, self.threshold, self.max_results)
        except ValueError as e:
            # Index built with a different embedding model
            raise SearchUnavailableError(f"Could not score query against index: {e}") from e

        logger.info(f"Found {len(results)} relevant chunks (threshold {self.threshold})")
        return results

    def search(self, query: str) -> List[str]:
        """Find stored chunk texts similar to the query, most similar first."""
        return [result.content for result in self.search_with_scores(query)]


def search(
    query: str,
    config: RAGConfig,
    embedding_fn: Optional[EmbeddingFunction] = None,
) -> List[str]:
    """Search the configured index for chunks relevant to a query.

    Args:
        query: Free-text query
        config: Supplies threshold, result limit and index location
        embedding_fn: Embedding provider (default: built from config)

    Returns:
        Matching chunk texts, most similar first; empty if no index exists

    Raises:
        SearchUnavailableError: If the query embedding fails
        IndexParseError: If the index file is malformed
    """
    if not config.index_path.is_file():
        logger.debug(f"No index at {config.index_path}, skipping search")
        return []

    if embedding_fn is None:
        try:
            embedding_fn = create_embedding_function(config)
        except Exception as e:
            raise SearchUnavailableError(f"Could not create embedding provider: {e}") from e

    searcher = SimilaritySearch.from_config(config, embedding_fn)
    if searcher is None:
        return []
    return searcher.search(query)
