"""RAG (Retrieval-Augmented Generation) infrastructure for doc-assistant.

This package turns a directory of documents into a searchable embedding index
and finds the chunks relevant to a question.

Core Components:
- config: Configuration loading (config file, environment, .env)
- document_chunker: Chunking strategies and option validation
- embedding_service: Local sentence-transformers and HTTP embedding providers
- vector_store: JSON-persisted embedding store with cosine similarity search
- indexer: Builds the store from a docs directory
- search: Query-time similarity search
- augmenter: Splices search results into chat messages
"""

from .config import RAGConfig, load_config
from .document_chunker import (
    DEFAULT_STRATEGY,
    ChunkingConfigError,
    ChunkStrategy,
    Delimiter,
    DocumentChunker,
    FixedSize,
    MarkdownHierarchy,
    MarkdownSections,
    WholeFile,
    chunk,
    resolve_strategy,
)
from .embedding_service import EmbeddingService, OpenAIEmbeddingClient, create_embedding_function
from .vector_store import (
    DuplicateIDError,
    EmbeddingStore,
    IndexNotFoundError,
    IndexParseError,
    cosine_similarity,
)
from .indexer import DocumentIndexer, build_index
from .search import SearchUnavailableError, SimilaritySearch, search
from .augmenter import augment_messages, build_context_message, strip_rag_prefix
from .types import Chunk, EmbeddingRecord, IndexReport, SimilarityResult

__all__ = [
    "RAGConfig",
    "load_config",
    "DEFAULT_STRATEGY",
    "ChunkingConfigError",
    "ChunkStrategy",
    "Delimiter",
    "DocumentChunker",
    "FixedSize",
    "MarkdownHierarchy",
    "MarkdownSections",
    "WholeFile",
    "chunk",
    "resolve_strategy",
    "EmbeddingService",
    "OpenAIEmbeddingClient",
    "create_embedding_function",
    "DuplicateIDError",
    "EmbeddingStore",
    "IndexNotFoundError",
    "IndexParseError",
    "cosine_similarity",
    "DocumentIndexer",
    "build_index",
    "SearchUnavailableError",
    "SimilaritySearch",
    "search",
    "augment_messages",
    "build_context_message",
    "strip_rag_prefix",
    "Chunk",
    "EmbeddingRecord",
    "IndexReport",
    "SimilarityResult",
]
