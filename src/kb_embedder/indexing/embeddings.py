"""
Embedding Service for Code Blocks

This module requests vector embeddings from OpenAI's embeddings endpoint
(text-embedding-3-small by default). It only knows about text; building the
canonical embedding input from a block happens in the block model.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import requests

OPENAI_EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"
DEFAULT_MODEL = "text-embedding-3-small"


class EmbeddingError(Exception):
    """Raised when the provider call fails or returns an unusable payload."""


class EmbeddingService:
    """Client for generating embeddings from text."""

    def __init__(self,
                 api_key: Optional[str],
                 model: str = DEFAULT_MODEL,
                 api_url: str = OPENAI_EMBEDDINGS_URL,
                 request_timeout: float = 60,
                 logger: Optional[logging.Logger] = None):
        if not api_key:
            raise ValueError("OpenAI API key required for embedding service")

        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.request_timeout = request_timeout
        self.logger = logger or logging.getLogger(__name__)

    def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """Generate an embedding for a single text."""
        data = self._request(text, timeout)
        items = data.get("data") or []
        if not items:
            raise EmbeddingError("empty response from embeddings API")
        return self._vector(items[0])

    def embed_batch(self, texts: List[str], timeout: Optional[float] = None) -> List[List[float]]:
        """Generate embeddings for several texts, returned in input order."""
        if not texts:
            return []

        data = self._request(texts, timeout)
        items = data.get("data") or []
        if len(items) != len(texts):
            raise EmbeddingError(f"expected {len(texts)} embeddings, got {len(items)}")

        items = sorted(items, key=lambda item: item.get("index", 0))
        return [self._vector(item) for item in items]

    def _request(self, payload, timeout: Optional[float]) -> Dict:
        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                },
                json={
                    "model": self.model,
                    "input": payload
                },
                timeout=timeout or self.request_timeout
            )
        except requests.exceptions.RequestException as e:
            raise EmbeddingError(f"API request failed: {e}") from e

        if not response.ok:
            raise EmbeddingError(f"API error: {response.status_code} - {response.text[:500]}")

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingError(f"failed to decode API response: {e}") from e

        if not isinstance(data, dict):
            raise EmbeddingError(f"unexpected API response: {type(data).__name__}")
        return data

    @staticmethod
    def _vector(item: Dict) -> List[float]:
        embedding = item.get("embedding")
        if not embedding:
            raise EmbeddingError("response item has no embedding")
        return [float(x) for x in embedding]


def embedding_stats(embeddings: List[List[float]]) -> Dict[str, float]:
    """Get statistics about a set of embeddings."""
    if not embeddings:
        return {}

    embed_array = np.array(embeddings, dtype=float)
    magnitudes = np.linalg.norm(embed_array, axis=1)

    return {
        "count": len(embeddings),
        "dimensions": embed_array.shape[1],
        "mean_magnitude": float(np.mean(magnitudes)),
        "std_magnitude": float(np.std(magnitudes)),
    }
