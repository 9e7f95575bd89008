"""Configuration management for RAG features.

Configuration is built in three layers: dataclass defaults, then an optional
JSON config file, then environment variables (a ``.env`` file is loaded
first with python-dotenv).
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from dotenv import find_dotenv, load_dotenv


DEFAULT_SIMILARITY_THRESHOLD = 0.7
DEFAULT_CONFIG_FILE = Path(".doc-assistant") / "config.json"

# JSON config file key -> RAGConfig field
CONFIG_FILE_KEYS = {
    "embedding-model": "embedding_model",
    "baseURL": "base_url",
    "api-key": "api_key",
    "cosine-limit": "similarity_threshold",
    "max-results": "max_results",
    "index-path": "index_path",
    "docs-path": "docs_path",
    "max-workers": "max_workers",
    "request-timeout": "request_timeout",
    "model-cache-dir": "model_cache_dir",
}

# RAGConfig fields read from the config file as numbers
NUMERIC_FIELDS = {
    "similarity_threshold": float,
    "max_results": int,
    "max_workers": int,
    "request_timeout": float,
}


@dataclass
class RAGConfig:
    """Configuration for the RAG system.

    Attributes:
        embedding_model: Embedding model identifier passed to the provider
        base_url: OpenAI-compatible API base URL; local sentence-transformers when unset
        api_key: Optional bearer token for the API
        similarity_threshold: Minimum cosine similarity for search results
        max_results: Maximum search results (None for no limit)
        index_path: JSON file holding the persisted embeddings
        docs_path: Default directory of documents to index
        max_workers: Concurrent embedding calls during indexing
        request_timeout: HTTP timeout in seconds for the API provider
        model_cache_dir: Directory to cache sentence-transformer models
    """

    embedding_model: str = "all-MiniLM-L6-v2"
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD
    max_results: Optional[int] = None
    index_path: Path = Path(".doc-assistant") / "embeddings.json"
    docs_path: Path = Path(".doc-assistant") / "docs"
    max_workers: int = 1
    request_timeout: float = 30.0
    model_cache_dir: Optional[Path] = None

    def __post_init__(self):
        """Normalize paths and apply the default threshold."""
        if not isinstance(self.index_path, Path):
            self.index_path = Path(self.index_path)
        if not isinstance(self.docs_path, Path):
            self.docs_path = Path(self.docs_path)
        if self.model_cache_dir is not None and not isinstance(self.model_cache_dir, Path):
            self.model_cache_dir = Path(self.model_cache_dir)
        # Zero or missing means "not configured"
        if not self.similarity_threshold:
            self.similarity_threshold = DEFAULT_SIMILARITY_THRESHOLD
        if self.max_results is not None and self.max_results <= 0:
            self.max_results = None


def str_to_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    """Convert string to float, returning default when missing or invalid."""
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def str_to_int(value: Optional[str], default: Optional[int]) -> Optional[int]:
    """Convert string to int, returning default when missing or invalid."""
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _to_number(value: Any, kind: type, config_file: Path, key: str):
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(
            f"Malformed config file {config_file}: '{key}' must be a number, got {value!r}"
        )
    if kind is int and value != int(value):
        raise ValueError(
            f"Malformed config file {config_file}: '{key}' must be a whole number, got {value!r}"
        )
    return kind(value)


def read_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON config file and map its keys to RAGConfig fields.

    Unknown keys are ignored.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a JSON object or a value has the wrong type
    """
    config_file = Path(config_file)
    with open(config_file, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed config file {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_file} must contain a JSON object")

    values = {}
    for key, field_name in CONFIG_FILE_KEYS.items():
        value = data.get(key)
        if value is None:
            continue
        if field_name in NUMERIC_FIELDS:
            value = _to_number(value, NUMERIC_FIELDS[field_name], config_file, key)
        elif not isinstance(value, str):
            raise ValueError(f"Malformed config file {config_file}: '{key}' must be a string")
        values[field_name] = value
    return values


def config_to_file_data(config: RAGConfig) -> Dict[str, Any]:
    """Map a RAGConfig to JSON config file keys, leaving out unset values."""
    data: Dict[str, Any] = {}
    for key, field_name in CONFIG_FILE_KEYS.items():
        value = getattr(config, field_name)
        if value is None:
            continue
        data[key] = value.as_posix() if isinstance(value, Path) else value
    return data


def load_config_from_env(values: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Overlay environment variables on a dict of RAGConfig values.

    Environment variables:
        DOC_ASSISTANT_EMBEDDING_MODEL: Embedding model identifier
        DOC_ASSISTANT_BASE_URL: OpenAI-compatible API base URL
        DOC_ASSISTANT_API_KEY: API key (OPENAI_API_KEY is used as a fallback)
        DOC_ASSISTANT_SIMILARITY_THRESHOLD: Minimum similarity score
        DOC_ASSISTANT_MAX_RESULTS: Maximum search results
        DOC_ASSISTANT_INDEX_PATH: Embeddings file
        DOC_ASSISTANT_DOCS_PATH: Docs directory
        DOC_ASSISTANT_MAX_WORKERS: Concurrent embedding calls
        DOC_ASSISTANT_MODEL_CACHE_DIR: Sentence-transformers cache directory
    """
    values = dict(values or {})

    for env_name, field_name in (
        ('DOC_ASSISTANT_EMBEDDING_MODEL', 'embedding_model'),
        ('DOC_ASSISTANT_BASE_URL', 'base_url'),
        ('DOC_ASSISTANT_INDEX_PATH', 'index_path'),
        ('DOC_ASSISTANT_DOCS_PATH', 'docs_path'),
        ('DOC_ASSISTANT_MODEL_CACHE_DIR', 'model_cache_dir'),
    ):
        if os.getenv(env_name):
            values[field_name] = os.getenv(env_name)

    api_key = os.getenv('DOC_ASSISTANT_API_KEY') or os.getenv('OPENAI_API_KEY')
    if api_key and not values.get('api_key'):
        values['api_key'] = api_key

    threshold = str_to_float(os.getenv('DOC_ASSISTANT_SIMILARITY_THRESHOLD'), None)
    if threshold is not None:
        values['similarity_threshold'] = threshold
    max_results = str_to_int(os.getenv('DOC_ASSISTANT_MAX_RESULTS'), None)
    if max_results is not None:
        values['max_results'] = max_results
    max_workers = str_to_int(os.getenv('DOC_ASSISTANT_MAX_WORKERS'), None)
    if max_workers is not None:
        values['max_workers'] = max_workers

    return values


def load_config(config_file: Optional[Union[str, Path]] = None) -> RAGConfig:
    """Load RAG configuration.

    Args:
        config_file: JSON config file; when None, DEFAULT_CONFIG_FILE is used
            if it exists

    Returns:
        RAGConfig with defaults, file values and environment overrides applied

    Raises:
        FileNotFoundError: If an explicit config_file does not exist
        ValueError: If the config file is malformed
    """
    load_dotenv(find_dotenv(usecwd=True))

    values: Dict[str, Any] = {}
    if config_file is not None:
        values = read_config_file(config_file)
    elif DEFAULT_CONFIG_FILE.is_file():
        values = read_config_file(DEFAULT_CONFIG_FILE)

    values = load_config_from_env(values)
    return RAGConfig(**values)
