"""Tests for the retrieval engine."""

import pytest

from kbn.config import RetrievalConfig
from kbn.models import RetrievedDocument
from kbn.rag.retrieval import RetrievalEngine
from kbn.rerank import RerankerBase

from conftest import FakeEmbedder, FakeReranker, MemoryVectorStore


async def _seed(store: MemoryVectorStore, notebook_id: str, texts: list[str]):
    embedder = FakeEmbedder()
    vectors = await embedder.embed(texts)
    await store.upsert(
        ids=[f"{notebook_id}_k_{i}" for i in range(len(texts))],
        embeddings=vectors,
        documents=texts,
        metadatas=[{"notebookId": notebook_id, "chunkIndex": i} for i in range(len(texts))],
    )


TEXTS = [f"document number {i} about {'abcdefghijklmnopqrstuvwxyz'[i] * (i + 1)}" for i in range(20)]


@pytest.mark.asyncio
async def test_results_bounded_and_ordered(vector_store, retrieval):
    await _seed(vector_store, "nb", TEXTS)

    docs = await retrieval.retrieve("document about ccc", notebook_id="nb", top_k=5)

    assert len(docs) == 5
    distances = [d.distance for d in docs]
    assert distances == sorted(distances)
    assert vector_store.queries[-1] == (5, {"notebookId": "nb"})


@pytest.mark.asyncio
async def test_filters_by_notebook(vector_store, retrieval):
    await _seed(vector_store, "nb1", TEXTS[:3])
    await _seed(vector_store, "nb2", ["unrelated text"])

    docs = await retrieval.retrieve("document", notebook_id="nb2", top_k=10)

    assert [d.content for d in docs] == ["unrelated text"]


@pytest.mark.asyncio
async def test_reranking_fetches_four_times_top_k(embedder, vector_store):
    await _seed(vector_store, "nb", TEXTS)
    reranker = FakeReranker()
    engine = RetrievalEngine(RetrievalConfig(), embedder, vector_store, reranker)

    docs = await engine.retrieve("document", notebook_id="nb", top_k=3)

    assert vector_store.queries[-1][0] == 12
    (query, candidates, top_n), = reranker.calls
    assert query == "document" and len(candidates) == 12 and top_n == 3
    # the fake reranker reverses the candidate order
    assert [d.content for d in docs] == candidates[::-1][:3]
    assert [d.rank for d in docs] == [1, 2, 3]


@pytest.mark.asyncio
async def test_reranking_disabled_per_call(embedder, vector_store):
    await _seed(vector_store, "nb", TEXTS)
    reranker = FakeReranker()
    engine = RetrievalEngine(RetrievalConfig(), embedder, vector_store, reranker)

    docs = await engine.retrieve("document", notebook_id="nb", top_k=4, use_reranking=False)

    assert len(docs) == 4
    assert reranker.calls == []
    assert vector_store.queries[-1][0] == 4


@pytest.mark.asyncio
async def test_reranker_failure_degrades_to_vector_order(embedder, vector_store):
    await _seed(vector_store, "nb", TEXTS)
    plain = RetrievalEngine(RetrievalConfig(), embedder, vector_store, None)
    broken = RetrievalEngine(RetrievalConfig(), embedder, vector_store, FakeReranker(fail=True))

    expected = await plain.retrieve("document about eee", notebook_id="nb", top_k=6)
    docs = await broken.retrieve("document about eee", notebook_id="nb", top_k=6)

    assert [d.id for d in docs] == [d.id for d in expected]
    assert all(d.rank is None for d in docs)


@pytest.mark.asyncio
async def test_empty_index_returns_nothing(embedder, vector_store):
    engine = RetrievalEngine(RetrievalConfig(), embedder, vector_store, FakeReranker())
    assert await engine.retrieve("anything", notebook_id="nb") == []


@pytest.mark.asyncio
async def test_rerank_documents_without_reranker_truncates(retrieval):
    docs = [RetrievedDocument(id=str(i), content=f"doc {i}") for i in range(5)]
    assert await retrieval.rerank_documents("q", docs, 2) == docs[:2]
    assert await retrieval.rerank_documents("q", [], 2) == []


class CrashingReranker(RerankerBase):
    async def rerank(self, query, documents, top_n):
        raise RuntimeError("unexpected reranker bug")


@pytest.mark.asyncio
async def test_unexpected_reranker_exception_still_degrades(embedder, vector_store):
    await _seed(vector_store, "nb", TEXTS)
    plain = RetrievalEngine(RetrievalConfig(), embedder, vector_store, None)
    crashing = RetrievalEngine(RetrievalConfig(), embedder, vector_store, CrashingReranker())

    expected = await plain.retrieve("document about ddd", notebook_id="nb", top_k=3)
    docs = await crashing.retrieve("document about ddd", notebook_id="nb", top_k=3)

    assert [d.id for d in docs] == [d.id for d in expected]
