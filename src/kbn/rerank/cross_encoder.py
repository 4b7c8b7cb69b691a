"""Cross-encoder reranking with sentence-transformers."""

import asyncio

from ..config import RerankerConfig
from ..errors import ProviderError
from .base import RerankerBase


class CrossEncoderReranker(RerankerBase):
    """Scores (query, passage) pairs jointly; higher scores are more relevant."""

    def __init__(self, config: RerankerConfig):
        self.model_name = config.model
        self.timeout = config.timeout
        self._model = None  # lazy-loaded, the model is large

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import CrossEncoder
            self._model = CrossEncoder(self.model_name)
        return self._model

    def _score(self, query: str, documents: list[str]) -> list[float]:
        pairs = [(query, d) for d in documents]
        return [float(s) for s in self.model.predict(pairs)]

    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[int]:
        if not documents or top_n <= 0:
            return []
        try:
            scores = await asyncio.wait_for(
                asyncio.to_thread(self._score, query, documents), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Reranking timed out after {self.timeout}s", cause=e) from e
        except Exception as e:
            raise ProviderError(f"Reranking failed: {e}", context={"model": self.model_name}, cause=e) from e
        order = sorted(range(len(documents)), key=lambda i: scores[i], reverse=True)
        return order[:top_n]
