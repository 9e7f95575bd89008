"""
Pytest configuration and fixtures for doc-assistant tests.
"""
import sys
from pathlib import Path

import pytest

# Add src to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))


KEYWORDS = ["python", "rust", "cooking", "garden", "install", "config"]


def keyword_embedding(text):
    """Deterministic embedding: one dimension per keyword, counting occurrences."""
    lowered = text.lower()
    return [float(lowered.count(word)) for word in KEYWORDS]


@pytest.fixture
def fake_embedding_fn():
    """Embedding function that needs no model."""
    return keyword_embedding


@pytest.fixture
def docs_dir(tmp_path):
    """Create a small docs tree with markdown and text files."""
    docs = tmp_path / "docs"
    (docs / "guides").mkdir(parents=True)

    (docs / "python.md").write_text(
        "# Python\n"
        "Python is a programming language.\n"
        "## Install\n"
        "Install python with your package manager.\n"
        "## Config\n"
        "Python config lives in pyproject files.\n",
        encoding="utf-8",
    )
    (docs / "guides" / "garden.MD").write_text(
        "# Garden\n"
        "Notes about the garden and cooking vegetables from the garden.\n",
        encoding="utf-8",
    )
    (docs / "notes.txt").write_text("rust---cooking---garden", encoding="utf-8")
    return docs


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch, tmp_path):
    """Isolate tests from the developer's environment and config files."""
    for name in (
        "DOC_ASSISTANT_EMBEDDING_MODEL",
        "DOC_ASSISTANT_BASE_URL",
        "DOC_ASSISTANT_API_KEY",
        "DOC_ASSISTANT_SIMILARITY_THRESHOLD",
        "DOC_ASSISTANT_MAX_RESULTS",
        "DOC_ASSISTANT_INDEX_PATH",
        "DOC_ASSISTANT_DOCS_PATH",
        "DOC_ASSISTANT_MAX_WORKERS",
        "DOC_ASSISTANT_MODEL_CACHE_DIR",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
