"""Semantic retrieval with optional cross-encoder reranking."""

import logging

from ..config import RetrievalConfig
from ..embeddings.embedder import Embedder
from ..models import RetrievedDocument
from ..rerank import RerankerBase
from ..storage import VectorStoreBase

logger = logging.getLogger(__name__)

# Candidates fetched per result when a reranker gets to choose among them.
RERANK_CANDIDATE_FACTOR = 4


class RetrievalEngine:
    """Embeds a query, searches the vector index and reranks the hits."""

    def __init__(
        self,
        config: RetrievalConfig,
        embedder: Embedder,
        vector_store: VectorStoreBase,
        reranker: RerankerBase | None = None,
    ):
        self.default_top_k = config.top_k
        self.embedder = embedder
        self.vector_store = vector_store
        self.reranker = reranker

    async def rerank_documents(
        self, query: str, documents: list[RetrievedDocument], top_k: int
    ) -> list[RetrievedDocument]:
        """Reorder documents by relevance to query and keep the best top_k.

        Never raises for reranker problems: without a reranker, or when it
        fails, the first top_k documents are returned in their given order.
        """
        if self.reranker is None or not documents:
            return documents[:top_k]

        try:
            order = await self.reranker.rerank(
                query, [d.content for d in documents], min(top_k, len(documents))
            )
        except Exception as e:
            logger.warning("Reranking failed, using original order: %s", e)
            return documents[:top_k]

        reranked = []
        for index in dict.fromkeys(order):
            if 0 <= index < len(documents):
                doc = documents[index]
                doc.rank = len(reranked) + 1
                reranked.append(doc)
        return reranked[:top_k]

    async def retrieve(
        self,
        query: str,
        notebook_id: str | None = None,
        top_k: int | None = None,
        use_reranking: bool = True,
    ) -> list[RetrievedDocument]:
        """Return at most top_k documents for query, best first.

        Args:
            query: Natural language query (or a hypothetical answer).
            notebook_id: Restrict the search to one notebook.
            top_k: Number of documents to return.
            use_reranking: Rerank a wider candidate set when a reranker exists.
        """
        top_k = top_k or self.default_top_k
        rerank = use_reranking and self.reranker is not None
        n_candidates = top_k * RERANK_CANDIDATE_FACTOR if rerank else top_k

        embedding = await self.embedder.embed_query(query)
        where = {"notebookId": notebook_id} if notebook_id else None
        documents = await self.vector_store.query(embedding, n_results=n_candidates, where=where)
        logger.debug("Vector search returned %d candidate(s)", len(documents))

        if rerank and documents:
            return await self.rerank_documents(query, documents, top_k)
        return documents[:top_k]
