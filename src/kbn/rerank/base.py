"""Reranker interface and factory."""

from abc import ABC, abstractmethod

from ..config import RerankerConfig


class RerankerBase(ABC):
    """Orders candidate passages by relevance to a query."""

    @abstractmethod
    async def rerank(self, query: str, documents: list[str], top_n: int) -> list[int]:
        """Return up to top_n indices into documents, most relevant first.

        Raises ProviderError on failure; callers fall back to the original order.
        """


def get_reranker(config: RerankerConfig) -> RerankerBase | None:
    """Factory: None when reranking is switched off."""
    if not config.enabled:
        return None
    from .cross_encoder import CrossEncoderReranker
    return CrossEncoderReranker(config)
