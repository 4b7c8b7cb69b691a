"""In-memory stand-ins for the embedding, index, reranker and LLM providers."""

import math
from typing import Any

import pytest

from kbn.config import ChunkingConfig, RetrievalConfig
from kbn.errors import ProviderError
from kbn.models import CollectionStatus, RetrievedDocument
from kbn.notebooks.store import NotebookStore
from kbn.rag.ingestion import IngestionPipeline
from kbn.rag.retrieval import RetrievalEngine
from kbn.rerank import RerankerBase
from kbn.storage import VectorStoreBase
from kbn.storage.base import check_parallel


def letter_vector(text: str) -> list[float]:
    counts = [0.0] * 26
    for ch in text.lower():
        if "a" <= ch <= "z":
            counts[ord(ch) - ord("a")] += 1
    norm = math.sqrt(sum(c * c for c in counts)) or 1.0
    return [c / norm for c in counts]


class FakeEmbedder:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.batches: list[list[str]] = []
        self.queries: list[str] = []

    async def embed(self, texts):
        if self.fail:
            raise ProviderError("embedding service unavailable")
        self.batches.append(list(texts))
        return [letter_vector(t) for t in texts]

    async def embed_query(self, text):
        self.queries.append(text)
        return letter_vector(text)


class MemoryVectorStore(VectorStoreBase):
    """Dict-backed index; distance is 1 - cosine similarity."""

    def __init__(self):
        self.entries: dict[str, dict[str, Any]] = {}
        self.upsert_calls = 0
        self.queries: list[tuple[int, dict | None]] = []
        self.status_calls = 0

    async def ensure_collection(self):
        self.status_calls += 1
        return CollectionStatus.EXISTS if self.status_calls > 1 else CollectionStatus.CREATED

    async def upsert(self, ids, embeddings, documents, metadatas):
        check_parallel(ids, embeddings, documents, metadatas)
        self.upsert_calls += 1
        for i, doc_id in enumerate(ids):
            self.entries[doc_id] = {
                "embedding": embeddings[i],
                "document": documents[i],
                "metadata": dict(metadatas[i]),
            }

    @staticmethod
    def _matches(metadata, where):
        for key, expected in (where or {}).items():
            value = metadata.get(key)
            if isinstance(expected, dict):
                if value is None or value < expected["$gte"]:
                    return False
            elif value != expected:
                return False
        return True

    def _distance(self, a, b):
        return 1.0 - sum(x * y for x, y in zip(a, b))

    async def query(self, query_embedding, n_results=15, where=None):
        self.queries.append((n_results, where))
        hits = [
            RetrievedDocument(
                id=doc_id,
                content=e["document"],
                metadata=dict(e["metadata"]),
                distance=self._distance(query_embedding, e["embedding"]),
            )
            for doc_id, e in self.entries.items()
            if self._matches(e["metadata"], where)
        ]
        hits.sort(key=lambda d: d.distance)
        return hits[:n_results]

    async def delete(self, where):
        for doc_id in [i for i, e in self.entries.items() if self._matches(e["metadata"], where)]:
            del self.entries[doc_id]

    async def count(self, where=None):
        return sum(1 for e in self.entries.values() if self._matches(e["metadata"], where))


class FakeReranker(RerankerBase):
    """Reverses the candidate order, or fails on demand."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, list[str], int]] = []

    async def rerank(self, query, documents, top_n):
        self.calls.append((query, list(documents), top_n))
        if self.fail:
            raise ProviderError("reranker down")
        return list(reversed(range(len(documents))))[:top_n]


class FakeLLM:
    """Returns scripted replies in order and records every prompt."""

    def __init__(self, *replies, error: Exception | None = None):
        self.replies = list(replies)
        self.error = error
        self.prompts: list[str] = []

    async def prompt(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""


@pytest.fixture
def store(tmp_path):
    return NotebookStore(tmp_path / "data")


@pytest.fixture
def notebook(store):
    return store.create_notebook("Physics")


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return MemoryVectorStore()


@pytest.fixture
def pipeline(store, embedder, vector_store):
    return IngestionPipeline(ChunkingConfig(), store, embedder, vector_store)


@pytest.fixture
def retrieval(embedder, vector_store):
    return RetrievalEngine(RetrievalConfig(), embedder, vector_store, reranker=None)
