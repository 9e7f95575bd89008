"""
Indexer for building the embedding store from a docs directory.

Each run is a fresh build:
1. Reset the in-memory store
2. Find all files with the requested extension
3. Read and chunk each file
4. Embed each chunk (one batch per file for a local model)
5. Append records to the store
6. Persist the store once at the end

Unreadable files and failed embeddings are logged and skipped. Only a
missing docs directory or a failed persist stops the run, and since nothing
is written until the end, the previous index on disk survives a crash.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .document_chunker import ChunkStrategy, DocumentChunker, normalize_extension
from .embedding_service import EmbeddingService
from .file_discovery import find_files as default_find_files
from .file_discovery import read_text_file as default_read_text_file
from .types import Chunk, IndexReport
from .vector_store import EmbeddingStore

logger = logging.getLogger(__name__)

EmbeddingFunction = Callable[[str], Sequence[float]]


def chunk_id(file_path: Union[str, Path], index: int) -> str:
    """Build the record id for the index-th (1-based) chunk of a file."""
    return f"{Path(file_path).name}-chunk-{index}"


class DocumentIndexer:
    """
    Builds an embedding store from a directory of documents.

    Features:
    - Fresh build on every run (no stale records from deleted files)
    - Per-file and per-chunk failures don't fail the run
    - Optional worker pool for embedding calls, with appends on one thread
    """

    def __init__(
        self,
        store: EmbeddingStore,
        index_path: Optional[Union[str, Path]] = None,
        chunker: Optional[DocumentChunker] = None,
        find_files: Callable[[Union[str, Path], str], List[Path]] = default_find_files,
        read_text_file: Callable[[Union[str, Path]], str] = default_read_text_file,
        max_workers: int = 1,
    ):
        """
        Initialize the indexer.

        Args:
            store: Embedding store to fill (reset at the start of each run)
            index_path: Where to persist the store (default: store.index_path)
            chunker: Optional document chunker (created if None)
            find_files: File discovery helper
            read_text_file: File reading helper
            max_workers: Concurrent embedding calls per file (1 = sequential)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        self.store = store
        self.index_path = Path(index_path) if index_path else store.index_path
        if self.index_path is None:
            raise ValueError("index_path is required when the store has none")

        self.chunker = chunker or DocumentChunker()
        self.find_files = find_files
        self.read_text_file = read_text_file
        self.max_workers = max_workers

    def build_index(
        self,
        docs_path: Union[str, Path],
        extension: str,
        strategy: ChunkStrategy,
        embedding_fn: EmbeddingFunction,
    ) -> IndexReport:
        """
        Index every matching file under docs_path and persist the store.

        Args:
            docs_path: Root directory of the documents
            extension: File extension to index ('md' or '.md')
            strategy: Chunking strategy
            embedding_fn: Function returning the embedding vector for a text

        Returns:
            IndexReport with counts and skipped files/chunks

        Raises:
            FileNotFoundError: If docs_path is not a directory
            OSError: If the store cannot be persisted
        """
        start_time = time.time()
        docs_path = Path(docs_path)
        extension = normalize_extension(extension)

        if not docs_path.is_dir():
            raise FileNotFoundError(f"Docs directory does not exist: {docs_path}")

        report = IndexReport(index_path=str(self.index_path))
        self.store.reset()

        files = self.find_files(docs_path, extension)
        report.files_found = len(files)
        logger.info(f"Found {len(files)} files with extension {extension} in {docs_path}")
        logger.info(f"Using {strategy.describe()}")

        for file_path in files:
            self._index_file(Path(file_path), extension, strategy, embedding_fn, report)

        self.store.persist(self.index_path)

        report.processing_time_seconds = time.time() - start_time
        logger.info(
            f"Indexed {report.chunks_indexed} chunks from {report.files_indexed} files "
            f"({len(report.skipped_files)} files skipped, "
            f"{len(report.failed_chunks)} chunks failed) in "
            f"{report.processing_time_seconds:.2f}s"
        )
        logger.debug(f"Index report: {report.to_dict()}")
        return report

    def _index_file(
        self,
        file_path: Path,
        extension: str,
        strategy: ChunkStrategy,
        embedding_fn: EmbeddingFunction,
        report: IndexReport,
    ) -> None:
        logger.debug(f"Processing: {file_path}")

        try:
            content = self.read_text_file(file_path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading file {file_path}: {e}")
            report.skipped_files.append((str(file_path), str(e)))
            return

        chunks = self.chunker.chunk(content, strategy, extension)
        logger.debug(f"  Created {len(chunks)} chunks from {file_path.name}")

        indexed = 0
        for record_id, text, result in self._embed_chunks(file_path, chunks, embedding_fn):
            if isinstance(result, Exception):
                logger.error(f"Error creating embedding for chunk {record_id}: {result}")
                report.failed_chunks.append((record_id, str(result)))
                continue
            try:
                self.store.append(record_id, text, result)
            except ValueError as e:
                logger.error(f"Error storing chunk {record_id}: {e}")
                report.failed_chunks.append((record_id, str(e)))
                continue
            indexed += 1

        report.files_indexed += 1
        report.chunks_indexed += indexed

    def _embed_chunks(
        self,
        file_path: Path,
        chunks: List[Chunk],
        embedding_fn: EmbeddingFunction,
    ) -> List[Tuple[str, str, object]]:
        """Embed a file's chunks, returning (id, text, vector-or-exception) in chunk order."""
        jobs = [
            (chunk_id(file_path, index), chunk.render())
            for index, chunk in enumerate(chunks, 1)
        ]

        def embed(text: str):
            try:
                return embedding_fn(text)
            except Exception as e:
                return e

        if isinstance(embedding_fn, EmbeddingService) and len(jobs) > 1:
            try:
                vectors = embedding_fn.embed_batch([text for _, text in jobs])
                return [(record_id, text, vector) for (record_id, text), vector in zip(jobs, vectors)]
            except (ValueError, RuntimeError) as e:
                logger.warning(f"Batch embedding failed for {file_path.name}, embedding chunks one by one: {e}")

        if self.max_workers == 1 or len(jobs) < 2:
            return [(record_id, text, embed(text)) for record_id, text in jobs]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            vectors = list(executor.map(embed, [text for _, text in jobs]))
        return [(record_id, text, vector) for (record_id, text), vector in zip(jobs, vectors)]


def build_index(
    docs_path: Union[str, Path],
    extension: str,
    strategy: ChunkStrategy,
    embedding_fn: EmbeddingFunction,
    store: EmbeddingStore,
    index_path: Optional[Union[str, Path]] = None,
) -> int:
    """Build and persist an index, returning the number of chunks indexed."""
    indexer = DocumentIndexer(store, index_path=index_path)
    return indexer.build_index(docs_path, extension, strategy, embedding_fn).chunks_indexed
