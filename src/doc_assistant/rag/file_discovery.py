"""File discovery and reading helpers used by the indexer."""

import logging
from pathlib import Path
from typing import List, Union

from .document_chunker import normalize_extension


logger = logging.getLogger(__name__)


def find_files(root_dir: Union[str, Path], extension: str) -> List[Path]:
    """Recursively find files under root_dir with the given extension.

    Matching is case-insensitive and 'md' is the same as '.md'.

    Args:
        root_dir: Directory to search
        extension: File extension to match

    Returns:
        Sorted list of matching file paths

    Raises:
        FileNotFoundError: If root_dir is not a directory
    """
    root = Path(root_dir)
    if not root.is_dir():
        raise FileNotFoundError(f"Docs directory does not exist: {root}")

    wanted = normalize_extension(extension)
    files = sorted(
        path for path in root.rglob("*")
        if path.is_file() and path.suffix.lower() == wanted
    )
    logger.debug(f"Found {len(files)} files with extension {wanted} under {root}")
    return files


def read_text_file(path: Union[str, Path]) -> str:
    """Read a UTF-8 text file.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If the file is not valid UTF-8
    """
    return Path(path).read_text(encoding='utf-8')
