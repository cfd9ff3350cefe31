"""
Embedding API Client Module

Provides a synchronous HTTP client for getting text embeddings from a local
OpenAI-compatible inference server.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests
from tqdm import tqdm

from ..errors import EmbeddingError, ModelLoadError
from ..providers import EmbeddingProvider

logger = logging.getLogger(__name__)


class EmbeddingClient(EmbeddingProvider):
    """
    Client for getting embeddings from an inference server.

    Supports OpenAI-compatible API format (``/v1/embeddings``).
    """

    name = "http-embedding"

    def __init__(
        self,
        api_url: str,
        model_name: str,
        api_key: Optional[str] = None,
        batch_size: int = 32,
        max_retries: int = 3,
        timeout: int = 60,
        expected_dim: Optional[int] = None,
        show_progress: bool = False
    ):
        """
        Initialize embedding client.

        Args:
            api_url: API endpoint URL (e.g., "http://localhost:8080/v1/embeddings")
            model_name: Model name or path sent with each request
            api_key: Optional API key for authentication
            batch_size: Number of texts to embed in one request
            max_retries: Maximum number of attempts per request
            timeout: Request timeout in seconds
            expected_dim: Dimension the server must produce, checked by load()
            show_progress: Show a progress bar for multi-request batches
        """
        self.api_url = api_url
        self.model_name = model_name
        self.api_key = api_key
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.timeout = timeout
        self.expected_dim = expected_dim
        self.show_progress = show_progress

        # Set after first successful call
        self.embedding_dim = None

    def load(self) -> None:
        """Probe the server once and check the vector size."""
        try:
            probe = self._embed_batch_sync(["ping"])[0]
        except EmbeddingError as e:
            raise ModelLoadError(
                f"Embedding server at {self.api_url} is unavailable: {e}",
                original_error=e.original_error or e
            ) from e

        self.embedding_dim = len(probe)
        if self.expected_dim is not None and self.embedding_dim != self.expected_dim:
            raise ModelLoadError(
                f"Embedding model '{self.model_name}' produces {self.embedding_dim}-d "
                f"vectors, expected {self.expected_dim}"
            )
        logger.debug(
            "Embedding server ready",
            extra={"api_url": self.api_url, "embedding_dim": self.embedding_dim}
        )

    def embed(self, text: str) -> List[float]:
        return self._embed_batch_sync([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed multiple texts, one request per ``batch_size`` texts.

        Args:
            texts: List of texts to embed

        Returns:
            One vector per text, in input order
        """
        all_embeddings: List[List[float]] = []

        starts = range(0, len(texts), self.batch_size)
        for i in tqdm(
            starts,
            desc="Embedding texts",
            disable=not self.show_progress or len(starts) <= 1
        ):
            batch = list(texts[i:i + self.batch_size])
            all_embeddings.extend(self._embed_batch_sync(batch))

        if self.embedding_dim is None and all_embeddings:
            self.embedding_dim = len(all_embeddings[0])

        return all_embeddings

    def _embed_batch_sync(self, texts: List[str]) -> List[List[float]]:
        """Embed a batch of texts synchronously."""
        payload = {
            "input": texts,
            "model": self.model_name
        }

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        for attempt in range(self.max_retries):
            try:
                response = requests.post(
                    self.api_url,
                    json=payload,
                    headers=headers,
                    timeout=self.timeout
                )
                response.raise_for_status()
                data = response.json()
            except (requests.RequestException, ValueError) as e:
                if attempt == self.max_retries - 1:
                    raise EmbeddingError(
                        f"Failed to get embeddings after {self.max_retries} attempts: {e}",
                        original_error=e
                    ) from e
                logger.warning(
                    "Retry %d/%d after error: %s", attempt + 1, self.max_retries, e,
                    extra={"api_url": self.api_url}
                )
                continue

            return self._parse_embeddings(data, len(texts))

        raise EmbeddingError("max_retries must be at least 1")

    def _parse_embeddings(self, data: Dict[str, Any], expected: int) -> List[List[float]]:
        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            embeddings = [item["embedding"] for item in items]
        except (KeyError, TypeError, AttributeError) as e:
            raise EmbeddingError(f"Malformed embedding response: {e}", original_error=e) from e

        if len(embeddings) != expected:
            raise EmbeddingError(
                f"Embedding response has {len(embeddings)} vectors for {expected} inputs"
            )
        return embeddings

    def get_info(self) -> Dict[str, Any]:
        """Get client information."""
        return {
            "api_url": self.api_url,
            "model_name": self.model_name,
            "batch_size": self.batch_size,
            "embedding_dim": self.embedding_dim,
            "has_api_key": self.api_key is not None
        }
