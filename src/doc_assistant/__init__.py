"""doc-assistant package exports."""

from .rag import EmbeddingStore, RAGConfig, build_index, load_config, search

__all__ = [
    "__version__",
    "EmbeddingStore",
    "RAGConfig",
    "build_index",
    "load_config",
    "search",
]

__version__ = "0.1.0"
