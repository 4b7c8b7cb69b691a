"""Text embedding using sentence-transformers."""

import asyncio
import logging
from typing import Any, Callable

import numpy as np

from ..config import EmbeddingConfig
from ..errors import ProviderError

logger = logging.getLogger(__name__)


def _to_lists(embeddings: Any) -> list[list[float]]:
    """Convert an encode() result to plain float lists."""
    arr = np.asarray(embeddings, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    return arr.tolist()


class Embedder:
    """Maps text to dense vectors with a local sentence-transformers model."""

    def __init__(self, config: EmbeddingConfig):
        self.model_name = config.model
        self.timeout = config.timeout
        self._model = None

    @property
    def model(self):
        """Lazy-load the embedding model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    @property
    def _is_e5(self) -> bool:
        # e5 models need "passage: " / "query: " prefixes
        return "e5" in self.model_name.lower()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of passages. Output order matches input order."""
        if not texts:
            return []
        if self._is_e5:
            texts = [f"passage: {t}" for t in texts]
        vectors = await self._run(lambda: self.model.encode(texts))
        if len(vectors) != len(texts):
            raise ProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors

    async def embed_query(self, text: str) -> list[float]:
        """Embed a single search query."""
        if self._is_e5:
            text = f"query: {text}"
        vectors = await self._run(lambda: self.model.encode([text]))
        return vectors[0]

    async def _run(self, fn: Callable[[], Any]) -> list[list[float]]:
        try:
            result = await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Embedding timed out after {self.timeout}s", cause=e) from e
        except Exception as e:
            raise ProviderError(f"Embedding failed: {e}", context={"model": self.model_name}, cause=e) from e
        return _to_lists(result)
