"""Second-pass relevance ranking of retrieved candidates."""

from .base import RerankerBase, get_reranker

__all__ = ["RerankerBase", "get_reranker"]
