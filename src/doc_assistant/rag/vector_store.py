"""In-memory embedding store persisted as a JSON document list.

This module provides an ordered collection of (id, content, embedding)
records with append, reset, JSON persistence and cosine similarity search.
Search is a linear scan, which is fine for thousands of chunks.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

import numpy as np

from .types import EmbeddingRecord, SimilarityResult


logger = logging.getLogger(__name__)

Vector = Union[Sequence[float], np.ndarray]


class DuplicateIDError(ValueError):
    """Raised when appending a record whose id is already in the store."""


class IndexNotFoundError(FileNotFoundError):
    """Raised when loading an index file that does not exist."""


class IndexParseError(ValueError):
    """Raised when an index file cannot be parsed."""


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Compute cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]; 0.0 if either vector has zero magnitude

    Raises:
        ValueError: If the vectors have different dimensions
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimensions differ: {a.shape} vs {b.shape}")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(a, b) / (norm_a * norm_b))
    # Rounding can push identical vectors slightly past 1
    return max(-1.0, min(1.0, score))


class EmbeddingStore:
    """Ordered collection of embedding records.

    All records are expected to come from the same embedding model, so every
    vector has the same length. Mixing models is a caller error and is not
    detected on append.

    Attributes:
        index_path: Default location used by persist() and load()
    """

    def __init__(self, index_path: Optional[Union[str, Path]] = None):
        """Initialize an empty store.

        Args:
            index_path: Default file for persist() and load()
        """
        self.index_path = Path(index_path) if index_path else None
        self._records: List[EmbeddingRecord] = []
        self._ids: set = set()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EmbeddingRecord]:
        return iter(list(self._records))

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._ids

    @property
    def records(self) -> List[EmbeddingRecord]:
        """Copy of the records in insertion order."""
        return list(self._records)

    def ids(self) -> List[str]:
        return [record.id for record in self._records]

    def reset(self) -> None:
        """Remove all records. Safe to call on an empty store."""
        self._records = []
        self._ids = set()
        logger.debug("Embedding store reset")

    def append(self, record_id: str, content: str, embedding: Vector) -> EmbeddingRecord:
        """Add a record to the end of the store.

        Args:
            record_id: Unique identifier
            content: Exact text that was embedded
            embedding: Embedding vector

        Returns:
            The stored EmbeddingRecord

        Raises:
            DuplicateIDError: If record_id is already present
            ValueError: If the embedding is empty
        """
        if record_id in self._ids:
            raise DuplicateIDError(f"Record id already in store: {record_id}")

        vector = [float(x) for x in np.asarray(embedding, dtype=float).ravel()]
        if not vector:
            raise ValueError(f"Embedding for {record_id} is empty")

        record = EmbeddingRecord(id=record_id, content=content, embedding=vector)
        self._records.append(record)
        self._ids.add(record_id)
        return record

    def _resolve_path(self, path: Optional[Union[str, Path]]) -> Path:
        if path is not None:
            return Path(path)
        if self.index_path is None:
            raise ValueError("No index path given and store has no default index_path")
        return self.index_path

    def persist(self, path: Optional[Union[str, Path]] = None) -> Path:
        """Write all records to a JSON file, replacing any existing file.

        The file is written to a temporary sibling first and then renamed, so
        a failed write leaves the previous index in place.

        Args:
            path: Target file (default: index_path)

        Returns:
            Path that was written

        Raises:
            OSError: If the file cannot be written
        """
        target = self._resolve_path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        temp_file = target.with_name(target.name + '.tmp')
        try:
            with open(temp_file, 'w', encoding='utf-8') as f:
                json.dump([record.to_dict() for record in self._records], f)
            temp_file.replace(target)
        except OSError as e:
            logger.error(f"Failed to persist embedding store to {target}: {e}")
            if temp_file.exists():
                temp_file.unlink()
            raise

        logger.info(f"Persisted {len(self._records)} records to {target}")
        return target

    def load(self, path: Optional[Union[str, Path]] = None) -> int:
        """Replace in-memory records with the content of a JSON index file.

        Args:
            path: Index file (default: index_path)

        Returns:
            Number of records loaded

        Raises:
            IndexNotFoundError: If the file does not exist
            IndexParseError: If the file is not a valid index
        """
        source = self._resolve_path(path)
        if not source.is_file():
            raise IndexNotFoundError(f"Index file not found: {source}")

        try:
            with open(source, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise IndexParseError(f"Malformed index file {source}: {e}") from e

        if not isinstance(data, list):
            raise IndexParseError(f"Index file {source} must contain a JSON array")

        records = []
        seen = set()
        for position, entry in enumerate(data):
            record = self._parse_entry(entry, position, source)
            if record.id in seen:
                raise IndexParseError(f"Duplicate record id {record.id!r} in {source}")
            seen.add(record.id)
            records.append(record)

        self._records = records
        self._ids = seen
        logger.info(f"Loaded {len(records)} records from {source}")
        return len(records)

    @staticmethod
    def _parse_entry(entry: Any, position: int, source: Path) -> EmbeddingRecord:
        if not isinstance(entry, dict):
            raise IndexParseError(f"Entry {position} in {source} is not an object")
        try:
            return EmbeddingRecord.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            raise IndexParseError(f"Entry {position} in {source} is invalid: {e}") from e

    def search(
        self,
        query_embedding: Vector,
        threshold: float,
        limit: Optional[int] = None,
    ) -> List[SimilarityResult]:
        """Score every record against a query vector.

        Args:
            query_embedding: Query vector
            threshold: Minimum cosine similarity to keep a record
            limit: Maximum number of results (default: all)

        Returns:
            Results with score >= threshold, highest score first; ties keep
            insertion order
        """
        if not self._records:
            return []

        query = np.asarray(query_embedding, dtype=float)
        results = []
        for record in self._records:
            score = cosine_similarity(query, record.embedding)
            if score >= threshold:
                results.append(SimilarityResult(id=record.id, content=record.content, score=score))

        # sort() is stable, so equal scores stay in insertion order
        results.sort(key=lambda result: result.score, reverse=True)
        if limit is not None and limit > 0:
            results = results[:limit]

        logger.debug(f"Found {len(results)} records with similarity >= {threshold}")
        return results

    def stats(self) -> Dict[str, Any]:
        """Get statistics about the store.

        Returns:
            Dictionary with record count, vector dimensions and index path
        """
        dimensions = sorted({len(record.embedding) for record in self._records})
        return {
            "total_records": len(self._records),
            "dimensions": dimensions,
            "index_path": str(self.index_path) if self.index_path else None,
        }
