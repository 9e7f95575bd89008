"""
Common data types for RAG modules.

These types are shared by the chunker, the embedding store, the indexer and
the similarity search.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


HIERARCHY_SEPARATOR = " > "


@dataclass
class Chunk:
    """A contiguous fragment of a source document.

    Attributes:
        text: Fragment content (never empty)
        title: Nearest heading text, if the strategy tracks headings
        hierarchy: Ancestor heading titles, root first
        level: Heading depth of ``title`` (0 when there is no heading)
        source_extension: File type hint of the source document
        structured: Render with TITLE/HIERARCHY/CONTENT labels (hierarchy chunks)
    """

    text: str
    title: Optional[str] = None
    hierarchy: List[str] = field(default_factory=list)
    level: int = 0
    source_extension: str = ""
    structured: bool = False

    def __post_init__(self):
        """Validate chunk."""
        if not self.text:
            raise ValueError("text cannot be empty")

    def render(self) -> str:
        """Return the text that gets embedded and stored for this chunk."""
        if not self.structured:
            return self.text
        return (
            f"TITLE: {self.title or ''}\n"
            f"HIERARCHY: {HIERARCHY_SEPARATOR.join(self.hierarchy)}\n"
            f"CONTENT: {self.text}"
        )


@dataclass
class EmbeddingRecord:
    """A persisted (id, content, embedding) triple."""

    id: str
    content: str
    embedding: List[float]

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to the on-disk JSON object."""
        return {
            'id': self.id,
            'content': self.content,
            'embedding': self.embedding,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmbeddingRecord":
        """Build a record from an on-disk JSON object, ignoring unknown fields."""
        return cls(
            id=str(data['id']),
            content=str(data['content']),
            embedding=[float(x) for x in data['embedding']],
        )


@dataclass
class SimilarityResult:
    """A stored record scored against a query."""

    id: str
    content: str
    score: float


@dataclass
class IndexReport:
    """Result from an indexing run."""

    index_path: str
    files_found: int = 0
    files_indexed: int = 0
    chunks_indexed: int = 0
    skipped_files: List[Tuple[str, str]] = field(default_factory=list)
    failed_chunks: List[Tuple[str, str]] = field(default_factory=list)
    processing_time_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            'index_path': self.index_path,
            'files_found': self.files_found,
            'files_indexed': self.files_indexed,
            'chunks_indexed': self.chunks_indexed,
            'skipped_files': len(self.skipped_files),
            'failed_chunks': len(self.failed_chunks),
            'processing_time_seconds': self.processing_time_seconds,
        }
