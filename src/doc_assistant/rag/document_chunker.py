"""Document chunking for RAG indexing.

This module splits raw document text into chunks using one of five
interchangeable strategies: markdown hierarchy, markdown sections, delimiter
split, fixed-size sliding window and whole-file.

A strategy is a small frozen dataclass validated at construction, so the
chunker itself never has to re-check flag combinations.
"""

import logging
import re
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional, Tuple

from .types import Chunk


logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".md"
MARKDOWN_EXTENSIONS = (".md", ".markdown")

HEADING_PATTERN = re.compile(r'^(#{1,6})[ \t]+(.+?)[ \t]*$')
FENCE_PATTERN = re.compile(r'^\s*(```|~~~)')


class ChunkingConfigError(ValueError):
    """Raised when chunking options are invalid or conflict with each other."""


@dataclass(frozen=True)
class ChunkStrategy:
    """Base class for chunking strategies."""

    name: ClassVar[str] = "strategy"

    def describe(self) -> str:
        """Human readable description for logs."""
        return self.name


@dataclass(frozen=True)
class MarkdownHierarchy(ChunkStrategy):
    """One chunk per markdown section, annotated with title and ancestor headings."""

    name: ClassVar[str] = "markdown-hierarchy"

    def describe(self) -> str:
        return "markdown hierarchy chunking"


@dataclass(frozen=True)
class MarkdownSections(ChunkStrategy):
    """One chunk per markdown section, without hierarchy metadata."""

    name: ClassVar[str] = "markdown-sections"

    def describe(self) -> str:
        return "markdown sections chunking"


@dataclass(frozen=True)
class Delimiter(ChunkStrategy):
    """Split on every literal occurrence of ``delimiter``."""

    delimiter: str
    name: ClassVar[str] = "delimiter"

    def __post_init__(self):
        if not self.delimiter:
            raise ChunkingConfigError("delimiter cannot be empty")

    def describe(self) -> str:
        return f"delimiter-based chunking with delimiter: {self.delimiter!r}"


@dataclass(frozen=True)
class FixedSize(ChunkStrategy):
    """Windows of ``chunk_size`` characters, each repeating ``overlap`` characters of the previous one."""

    chunk_size: int
    overlap: int = 0
    name: ClassVar[str] = "fixed-size"

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ChunkingConfigError(f"chunk size must be positive, got {self.chunk_size}")
        if self.overlap < 0:
            raise ChunkingConfigError(f"overlap cannot be negative, got {self.overlap}")
        if self.overlap >= self.chunk_size:
            raise ChunkingConfigError(
                f"overlap ({self.overlap}) must be less than chunk size ({self.chunk_size})"
            )

    @property
    def step(self) -> int:
        return self.chunk_size - self.overlap

    def describe(self) -> str:
        if self.overlap:
            return f"fixed-size text chunking with size: {self.chunk_size}, overlap: {self.overlap}"
        return f"fixed-size text chunking with size: {self.chunk_size}"


@dataclass(frozen=True)
class WholeFile(ChunkStrategy):
    """The whole file is a single chunk."""

    name: ClassVar[str] = "files"

    def describe(self) -> str:
        return "whole-file chunking (each file is one chunk)"


DEFAULT_STRATEGY = MarkdownHierarchy()


def normalize_extension(extension: Optional[str]) -> str:
    """Return a lower-case extension with a leading dot ('md' -> '.md')."""
    extension = (extension or "").strip().lower()
    if not extension:
        return ""
    if not extension.startswith("."):
        extension = "." + extension
    return extension


def default_strategy_for(extension: str) -> ChunkStrategy:
    """Pick the default chunking strategy for a file extension."""
    if normalize_extension(extension) in MARKDOWN_EXTENSIONS:
        return DEFAULT_STRATEGY
    return WholeFile()


def resolve_strategy(
    markdown_hierarchy: bool = False,
    markdown_sections: bool = False,
    delimiter: Optional[str] = None,
    chunk_size: int = 0,
    overlap: int = 0,
    files: bool = False,
    extension: Optional[str] = None,
) -> Tuple[ChunkStrategy, str]:
    """Validate chunking options and turn them into a strategy and file extension.

    Mirrors the indexing command flags. At most one strategy may be selected;
    with none selected the markdown hierarchy strategy is used.

    Args:
        markdown_hierarchy: Use markdown hierarchy chunking
        markdown_sections: Use markdown sections chunking
        delimiter: Split on this delimiter
        chunk_size: Use fixed-size chunking with this many characters
        overlap: Characters repeated between fixed-size chunks
        files: Treat every file as a single chunk
        extension: File extension to index (only with delimiter, chunk size or files)

    Returns:
        Tuple of (strategy, normalized file extension)

    Raises:
        ChunkingConfigError: If the options conflict
    """
    selected = [
        name for name, enabled in (
            ("--markdown-hierarchy", markdown_hierarchy),
            ("--markdown-sections", markdown_sections),
            ("--delimiter", bool(delimiter)),
            ("--chunk-size", chunk_size > 0),
            ("--files", files),
        )
        if enabled
    ]
    if len(selected) > 1:
        raise ChunkingConfigError(
            f"cannot use multiple chunking methods simultaneously ({', '.join(selected)})"
        )

    if overlap > 0 and chunk_size <= 0:
        raise ChunkingConfigError("--overlap requires --chunk-size to be specified")
    if chunk_size > 0 and overlap >= chunk_size:
        raise ChunkingConfigError(
            f"--overlap ({overlap}) must be less than --chunk-size ({chunk_size})"
        )

    generic = bool(delimiter) or chunk_size > 0 or files
    if extension and not generic:
        raise ChunkingConfigError(
            "--extension can only be used with --delimiter, --chunk-size or --files"
        )

    if files:
        strategy: ChunkStrategy = WholeFile()
    elif chunk_size > 0:
        strategy = FixedSize(chunk_size=chunk_size, overlap=overlap)
    elif delimiter:
        strategy = Delimiter(delimiter=delimiter)
    elif markdown_sections:
        strategy = MarkdownSections()
    else:
        strategy = DEFAULT_STRATEGY

    file_extension = normalize_extension(extension) if extension else DEFAULT_EXTENSION
    return strategy, file_extension


class DocumentChunker:
    """Chunks documents for RAG indexing.

    The chunker is stateless; the strategy is passed per call.
    """

    def __init__(self):
        self._dispatch = {
            MarkdownHierarchy: self._chunk_hierarchy,
            MarkdownSections: self._chunk_sections,
            Delimiter: self._chunk_delimiter,
            FixedSize: self._chunk_fixed_size,
            WholeFile: self._chunk_whole_file,
        }

    def chunk(
        self,
        content: str,
        strategy: Optional[ChunkStrategy] = None,
        source_extension: str = "",
    ) -> List[Chunk]:
        """Split content into chunks.

        Args:
            content: Raw document text
            strategy: Chunking strategy (default: for the source extension)
            source_extension: File type hint of the document

        Returns:
            List of Chunk objects, empty for empty input
        """
        source_extension = normalize_extension(source_extension)
        if strategy is None:
            strategy = default_strategy_for(source_extension or DEFAULT_EXTENSION)

        handler = self._dispatch.get(type(strategy))
        if handler is None:
            raise ChunkingConfigError(f"Unsupported chunking strategy: {strategy!r}")

        if not content:
            return []

        chunks = handler(content, strategy, source_extension)
        logger.debug(f"Created {len(chunks)} chunks using {strategy.name}")
        return chunks

    def _split_markdown(self, content: str) -> List[Dict[str, object]]:
        """Split markdown into sections at heading lines.

        Returns a list of dicts with 'level', 'title', 'heading' and 'body'
        keys. Text before the first heading is a section with level 0. Lines
        inside fenced code blocks are never headings.
        """
        sections: List[Dict[str, object]] = []
        current: Dict[str, object] = {'level': 0, 'title': None, 'heading': None, 'lines': []}
        in_fence = False
        fence_marker = None

        for line in content.splitlines():
            fence = FENCE_PATTERN.match(line)
            if fence:
                marker = fence.group(1)
                if not in_fence:
                    in_fence, fence_marker = True, marker
                elif marker == fence_marker:
                    in_fence, fence_marker = False, None
                current['lines'].append(line)
                continue

            match = None if in_fence else HEADING_PATTERN.match(line)
            if match:
                sections.append(current)
                title = re.sub(r'[ \t]+#+$', '', match.group(2)).strip()
                current = {
                    'level': len(match.group(1)),
                    'title': title,
                    'heading': line.strip(),
                    'lines': [],
                }
            else:
                current['lines'].append(line)

        sections.append(current)

        for section in sections:
            section['body'] = "\n".join(section.pop('lines')).strip()
        return sections

    def _chunk_hierarchy(self, content: str, strategy: ChunkStrategy, ext: str) -> List[Chunk]:
        chunks = []
        stack: List[Tuple[int, str]] = []

        for section in self._split_markdown(content):
            level = section['level']
            body = section['body']

            if level == 0:
                if body:
                    chunks.append(Chunk(text=body, source_extension=ext))
                continue

            # Ancestors are the open headings strictly above this level
            while stack and stack[-1][0] >= level:
                stack.pop()
            hierarchy = [title for _, title in stack]
            stack.append((level, section['title']))

            if not body:
                continue

            chunks.append(Chunk(
                text=body,
                title=section['title'],
                hierarchy=hierarchy,
                level=level,
                source_extension=ext,
                structured=True,
            ))

        return chunks

    def _chunk_sections(self, content: str, strategy: ChunkStrategy, ext: str) -> List[Chunk]:
        chunks = []

        for section in self._split_markdown(content):
            if section['level'] == 0:
                text = section['body']
            else:
                text = f"{section['heading']}\n{section['body']}".strip()
            if not text:
                continue
            chunks.append(Chunk(
                text=text,
                title=section['title'],
                level=section['level'],
                source_extension=ext,
            ))

        return chunks

    def _chunk_delimiter(self, content: str, strategy: Delimiter, ext: str) -> List[Chunk]:
        pieces = (piece.strip() for piece in content.split(strategy.delimiter))
        return [Chunk(text=piece, source_extension=ext) for piece in pieces if piece]

    def _chunk_fixed_size(self, content: str, strategy: FixedSize, ext: str) -> List[Chunk]:
        chunks = []
        start = 0

        while True:
            end = start + strategy.chunk_size
            chunks.append(Chunk(text=content[start:end], source_extension=ext))
            if end >= len(content):
                break
            start += strategy.step

        return chunks

    def _chunk_whole_file(self, content: str, strategy: ChunkStrategy, ext: str) -> List[Chunk]:
        if not content.strip():
            return []
        return [Chunk(text=content, source_extension=ext)]


_default_chunker = DocumentChunker()


def chunk(
    content: str,
    strategy: Optional[ChunkStrategy] = None,
    source_extension: str = "",
) -> List[Chunk]:
    """Split content into chunks with a shared DocumentChunker."""
    return _default_chunker.chunk(content, strategy, source_extension)
