"""Abstract base class for vector stores and factory function."""

from abc import ABC, abstractmethod
from typing import Any

from ..config import VectorStoreConfig
from ..errors import ValidationError
from ..models import CollectionStatus, IndexedVector, RetrievedDocument


class VectorStoreBase(ABC):
    """Common interface for vector storage backends.

    ``add``-style writes are upserts keyed by id, so re-ingesting a knowledge
    item overwrites its previous vectors instead of duplicating them.
    """

    @abstractmethod
    async def ensure_collection(self) -> CollectionStatus:
        """Create the backing collection if needed. Safe to call repeatedly."""

    @abstractmethod
    async def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Insert or overwrite entries by id. All arrays are parallel."""

    @abstractmethod
    async def query(
        self,
        query_embedding: list[float],
        n_results: int = 15,
        where: dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        """Nearest neighbours matching the filter, by ascending distance."""

    @abstractmethod
    async def delete(self, where: dict[str, Any]) -> None:
        """Delete every entry matching the filter.

        Filter values are matched for equality, except ``{"$gte": n}`` which
        matches numbers greater than or equal to n.
        """

    @abstractmethod
    async def count(self, where: dict[str, Any] | None = None) -> int:
        """Count entries, optionally restricted by an equality filter."""

    async def add_vectors(self, vectors: list[IndexedVector]) -> None:
        if not vectors:
            return
        await self.upsert(
            ids=[v.id for v in vectors],
            embeddings=[v.embedding for v in vectors],
            documents=[v.text for v in vectors],
            metadatas=[v.metadata for v in vectors],
        )

    async def delete_by_notebook(self, notebook_id: str) -> None:
        await self.delete({"notebookId": notebook_id})

    async def delete_by_knowledge_item(self, notebook_id: str, knowledge_id: str) -> None:
        await self.delete({"notebookId": notebook_id, "knowledgeId": knowledge_id})

    async def delete_chunks_from(self, notebook_id: str, knowledge_id: str, start_index: int) -> None:
        """Drop an item's chunks at or past start_index, left over from longer content."""
        await self.delete({
            "notebookId": notebook_id,
            "knowledgeId": knowledge_id,
            "chunkIndex": {"$gte": start_index},
        })


def check_parallel(
    ids: list[str],
    embeddings: list[list[float]],
    documents: list[str],
    metadatas: list[dict[str, Any]],
) -> None:
    """Raise ValidationError unless the upsert arrays line up."""
    lengths = {len(ids), len(embeddings), len(documents), len(metadatas)}
    if len(lengths) != 1:
        raise ValidationError(
            "ids, embeddings, documents and metadatas must have equal length",
            context={
                "ids": len(ids),
                "embeddings": len(embeddings),
                "documents": len(documents),
                "metadatas": len(metadatas),
            },
        )
    if len(set(ids)) != len(ids):
        raise ValidationError("Duplicate ids in a single upsert")


def get_vector_store(config: VectorStoreConfig) -> VectorStoreBase:
    """Factory: return the vector store described by config."""
    from .chromadb import ChromaVectorStore
    return ChromaVectorStore(config)
