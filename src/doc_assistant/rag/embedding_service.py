"""Text embedding providers.

Two providers are available, both callable as ``embedding_fn(text) -> vector``:

- EmbeddingService: local sentence-transformers model with lazy loading
  and CPU/GPU detection
- OpenAIEmbeddingClient: any OpenAI-compatible ``/embeddings`` endpoint
  (OpenAI, Ollama, Docker Model Runner, llama.cpp server, ...)
"""

import logging
from typing import List, Optional

import numpy as np
import requests
from sentence_transformers import SentenceTransformer
import torch

from .config import RAGConfig


logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for generating text embeddings using sentence-transformers.

    Attributes:
        model_name: Name of the sentence-transformer model
        cache_dir: Directory to cache downloaded models
        device: Compute device (cuda, mps, or cpu)
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        cache_dir: Optional[str] = None,
        device: Optional[str] = None,
    ):
        """Initialize the embedding service.

        Args:
            model_name: Sentence-transformer model name (default: all-MiniLM-L6-v2)
            cache_dir: Directory to cache models (default: None, uses default cache)
            device: Device to run model on (default: None, auto-detect)
        """
        self.model_name = model_name
        self.cache_dir = cache_dir
        self._model: Optional[SentenceTransformer] = None

        if device is None:
            if torch.cuda.is_available():
                self.device = "cuda"
            elif torch.backends.mps.is_available():
                self.device = "mps"
            else:
                self.device = "cpu"
        else:
            self.device = device

        logger.info(f"EmbeddingService initialized with model={model_name}, device={self.device}")

    @property
    def model(self) -> SentenceTransformer:
        """Lazy-load the sentence-transformer model.

        Raises:
            RuntimeError: If model fails to load
        """
        if self._model is None:
            try:
                logger.info(f"Loading sentence-transformer model: {self.model_name}")
                self._model = SentenceTransformer(
                    self.model_name,
                    cache_folder=self.cache_dir,
                    device=self.device,
                )
                logger.info(f"Model loaded successfully on device: {self.device}")
            except Exception as e:
                logger.error(f"Failed to load model {self.model_name}: {e}")
                raise RuntimeError(f"Could not load embedding model: {e}") from e

        return self._model

    def embed_text(self, text: str) -> np.ndarray:
        """Generate embedding for a single text.

        Raises:
            ValueError: If text is empty
            RuntimeError: If embedding generation fails
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        try:
            return self.model.encode(
                text,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise RuntimeError(f"Embedding generation failed: {e}") from e

    def __call__(self, text: str) -> np.ndarray:
        return self.embed_text(text)

    def embed_batch(
        self,
        texts: List[str],
        batch_size: int = 32,
        show_progress: bool = False,
    ) -> np.ndarray:
        """Generate embeddings for multiple texts efficiently.

        Args:
            texts: List of texts to embed
            batch_size: Batch size for processing (default: 32)
            show_progress: Show progress bar (default: False)

        Returns:
            Numpy array of shape (n_texts, embedding_dim)

        Raises:
            ValueError: If texts is empty or contains empty entries
            RuntimeError: If embedding generation fails
        """
        if not texts:
            raise ValueError("Texts list cannot be empty")
        if any(not text or not text.strip() for text in texts):
            raise ValueError("Texts cannot contain empty entries")

        try:
            return self.model.encode(
                texts,
                batch_size=batch_size,
                convert_to_numpy=True,
                show_progress_bar=show_progress,
            )
        except Exception as e:
            logger.error(f"Failed to generate batch embeddings: {e}")
            raise RuntimeError(f"Batch embedding generation failed: {e}") from e


class OpenAIEmbeddingClient:
    """Embedding client for OpenAI-compatible HTTP APIs.

    Attributes:
        base_url: API base URL, e.g. http://localhost:12434/engines/llama.cpp/v1
        model: Embedding model identifier passed through to the server
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ValueError("base_url cannot be empty")
        if not model:
            raise ValueError("model cannot be empty")

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

        logger.info(f"OpenAIEmbeddingClient initialized with model={model}, base_url={self.base_url}")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/embeddings"

    def embed_text(self, text: str) -> List[float]:
        """Request the embedding for a single text.

        Raises:
            ValueError: If text is empty
            RuntimeError: If the request fails or the response is malformed
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        try:
            response = self.session.post(
                self.endpoint,
                json={"model": self.model, "input": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Embedding request to {self.endpoint} failed: {e}")
            raise RuntimeError(f"Embedding request failed: {e}") from e

        try:
            return [float(x) for x in payload["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RuntimeError(f"Malformed embedding response: {e}") from e

    def __call__(self, text: str) -> List[float]:
        return self.embed_text(text)


def create_embedding_function(config: RAGConfig):
    """Create the embedding provider described by the configuration.

    Uses the HTTP client when a base URL is configured, otherwise a local
    sentence-transformers model.
    """
    if config.base_url:
        return OpenAIEmbeddingClient(
            base_url=config.base_url,
            model=config.embedding_model,
            api_key=config.api_key,
            timeout=config.request_timeout,
        )
    return EmbeddingService(
        model_name=config.embedding_model,
        cache_dir=str(config.model_cache_dir) if config.model_cache_dir else None,
    )
