"""
Command-line interface for doc-assistant.

Usage:
    doc-assistant init
    doc-assistant index [--docs DIR] [--markdown-sections | --delimiter STR |
                         --chunk-size N [--overlap N] | --files] [--extension EXT]
    doc-assistant search "question"
    doc-assistant messages "question" [--rag] [--system FILE]
"""

import argparse
import inspect
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .rag.augmenter import augment_messages, strip_rag_prefix
from .rag.config import DEFAULT_CONFIG_FILE, RAGConfig, config_to_file_data, load_config
from .rag.document_chunker import ChunkingConfigError, resolve_strategy
from .rag.embedding_service import create_embedding_function
from .rag.indexer import DocumentIndexer
from .rag.search import SearchUnavailableError, SimilaritySearch
from .rag.vector_store import EmbeddingStore, IndexParseError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

DOCS_README = """# Documentation

Put the documents you want to search in this directory, then build the index:

    doc-assistant index

Markdown files are split by heading. Use --delimiter, --chunk-size or --files
together with --extension to index other file types.
"""


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (from the rag package) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        # Find the caller that issued the logging call
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Send loguru output to stderr and optionally to a log file."""
    level = "DEBUG" if verbose else "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{message}</level>")
    if log_file:
        logger.add(log_file, format=LOG_FORMAT, level="DEBUG", enqueue=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=logging.DEBUG if verbose else logging.INFO, force=True)


def _load_config(args) -> RAGConfig:
    config = load_config(args.config)
    if getattr(args, "index_path", None):
        config.index_path = Path(args.index_path)
    if getattr(args, "threshold", None):
        config.similarity_threshold = args.threshold
    if getattr(args, "max_results", None):
        config.max_results = args.max_results
    return config


def run_init(args) -> int:
    """Create the project directory with a default config file and docs directory."""
    project_dir = DEFAULT_CONFIG_FILE.parent
    if project_dir.exists():
        logger.error(f"{project_dir} directory already exists")
        return EXIT_FAILURE

    config = RAGConfig()
    readme_path = config.docs_path / "README.md"
    try:
        config.docs_path.mkdir(parents=True)
        DEFAULT_CONFIG_FILE.write_text(
            json.dumps(config_to_file_data(config), indent=2) + "\n", encoding="utf-8"
        )
        readme_path.write_text(DOCS_README, encoding="utf-8")
    except OSError as e:
        logger.error(f"Error initializing {project_dir}: {e}")
        return EXIT_FAILURE

    logger.success(f"Initialized doc-assistant project in {project_dir}")
    print("Created:")
    print(f"  {DEFAULT_CONFIG_FILE}")
    print(f"  {config.docs_path}/")
    print(f"  {readme_path}")
    print()
    print("Next steps:")
    print(f"  1. Add your documentation to {config.docs_path}/")
    print("  2. Build the index: doc-assistant index")
    print("  3. Search it: doc-assistant search \"your question\"")
    return EXIT_OK


def run_index(args) -> int:
    """Build the embedding index from the docs directory."""
    try:
        strategy, extension = resolve_strategy(
            markdown_hierarchy=args.markdown_hierarchy,
            markdown_sections=args.markdown_sections,
            delimiter=args.delimiter,
            chunk_size=args.chunk_size,
            overlap=args.overlap,
            files=args.files,
            extension=args.extension,
        )
    except ChunkingConfigError as e:
        logger.error(f"Invalid chunking options: {e}")
        return EXIT_USAGE

    config = _load_config(args)
    docs_path = Path(args.docs) if args.docs else config.docs_path
    workers = args.workers or config.max_workers

    logger.info(f"Generating embeddings from docs in: {docs_path}")
    logger.info(f"Using embedding model: {config.embedding_model}")

    store = EmbeddingStore(config.index_path)
    try:
        indexer = DocumentIndexer(store, max_workers=workers)
        embedding_fn = create_embedding_function(config)
        report = indexer.build_index(docs_path, extension, strategy, embedding_fn)
    except FileNotFoundError as e:
        logger.error(str(e))
        return EXIT_FAILURE
    except (OSError, ValueError) as e:
        logger.error(f"Indexing failed: {e}")
        return EXIT_FAILURE

    for path, reason in report.skipped_files:
        logger.warning(f"Skipped {path}: {reason}")

    logger.success(
        f"Successfully generated {report.chunks_indexed} embeddings and saved to {report.index_path}"
    )
    return EXIT_OK


def _find_similar(question: str, config: RAGConfig) -> List[str]:
    """Search the index, degrading to no results on embedding failures."""
    if not config.index_path.is_file():
        logger.info("No index found, answering without documentation context")
        return []

    try:
        searcher = SimilaritySearch.from_config(config, create_embedding_function(config))
        if searcher is None:
            return []
        return searcher.search(question)
    except SearchUnavailableError as e:
        logger.warning(f"Error searching similarities: {e}")
    except IndexParseError as e:
        logger.warning(f"Error loading index: {e}")
    except RuntimeError as e:
        logger.warning(f"Error creating embedding provider: {e}")
    return []


def display_similarities(similarities: List[str]) -> None:
    """Print search results, one numbered block per chunk."""
    if not similarities:
        print("No relevant documentation found")
        return

    print(f"Found {len(similarities)} relevant documentation chunks:\n")
    for i, similarity in enumerate(similarities, 1):
        lines = [line.strip() for line in similarity.strip().splitlines() if line.strip()]
        print(f"{i}. {lines[0] if lines else ''}")
        for line in lines[1:]:
            print(f"   {line}")
        print()


def run_search(args) -> int:
    """Print the chunks relevant to a question."""
    config = _load_config(args)
    similarities = _find_similar(args.query, config)

    if args.json:
        print(json.dumps(similarities, indent=2))
    else:
        display_similarities(similarities)
    return EXIT_OK


def run_messages(args) -> int:
    """Print the chat messages for a question, augmented with relevant context."""
    config = _load_config(args)
    requested, question = strip_rag_prefix(args.question)
    requested = requested or args.rag

    messages = []
    if args.system:
        try:
            messages.append({"role": "system", "content": Path(args.system).read_text(encoding="utf-8")})
        except OSError as e:
            logger.error(f"Error reading system instructions file: {e}")
            return EXIT_FAILURE
    messages.append({"role": "user", "content": question})

    similarities = _find_similar(question, config) if requested else []
    messages = augment_messages(messages, similarities, requested=requested)

    print(json.dumps(messages, indent=2))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doc-assistant",
        description="Index documentation and retrieve relevant context for LLM questions",
    )
    parser.add_argument("--config", "-c", help="Path to JSON configuration file")
    parser.add_argument("--index-path", help="Embeddings file (overrides config)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create .doc-assistant/ with a default config and docs directory")
    init.set_defaults(handler=run_init)

    index = subparsers.add_parser(
        "index", aliases=["generate-embeddings"], help="Build the embeddings index"
    )
    index.add_argument("--docs", "-d", help="Docs directory (default: from config)")
    index.add_argument("--markdown-hierarchy", action="store_true",
                       help="Chunk markdown by sections with title/hierarchy context (default)")
    index.add_argument("--markdown-sections", action="store_true",
                       help="Chunk markdown by sections without hierarchy")
    index.add_argument("--delimiter", help="Split documents on this delimiter")
    index.add_argument("--chunk-size", type=int, default=0, help="Fixed-size chunks of N characters")
    index.add_argument("--overlap", type=int, default=0, help="Characters shared by consecutive fixed-size chunks")
    index.add_argument("--extension", help="File extension to index (with --delimiter, --chunk-size or --files)")
    index.add_argument("--files", action="store_true", help="Each file is one chunk")
    index.add_argument("--workers", "-w", type=int, help="Concurrent embedding requests (default: from config)")
    index.set_defaults(handler=run_index)

    search_cmd = subparsers.add_parser("search", help="Show documentation chunks relevant to a question")
    search_cmd.add_argument("query", help="Question to search for")
    search_cmd.add_argument("--threshold", "-t", type=float, help="Minimum similarity (default: 0.7)")
    search_cmd.add_argument("--max-results", "-n", type=int, help="Maximum number of results")
    search_cmd.add_argument("--json", action="store_true", help="Print results as a JSON array")
    search_cmd.set_defaults(handler=run_search)

    messages = subparsers.add_parser("messages", help="Print chat messages augmented with relevant context")
    messages.add_argument("question", help="User question; a '#rag ' prefix enables augmentation")
    messages.add_argument("--rag", action="store_true", help="Augment with documentation context")
    messages.add_argument("--system", "-s", help="System instructions file")
    messages.add_argument("--threshold", "-t", type=float, help="Minimum similarity (default: 0.7)")
    messages.add_argument("--max-results", "-n", type=int, help="Maximum number of results")
    messages.set_defaults(handler=run_messages)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_file)

    try:
        return args.handler(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
