"""ChromaDB vector store backend."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, TypeVar

import chromadb

from ..config import VectorStoreConfig
from ..errors import KbnError, ProviderError, ValidationError
from ..models import CollectionStatus, RetrievedDocument
from .base import VectorStoreBase, check_parallel

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_where(where: dict[str, Any] | None) -> dict[str, Any] | None:
    """Translate a flat equality filter into Chroma's where syntax."""
    if not where:
        return None
    if len(where) == 1:
        return dict(where)
    return {"$and": [{k: v} for k, v in where.items()]}


class ChromaVectorStore(VectorStoreBase):
    """ChromaDB-backed vector store, local (persistent) or remote (HTTP)."""

    def __init__(self, config: VectorStoreConfig, client: Any = None):
        self.config = config
        self.collection_name = config.collection
        self.timeout = config.timeout
        self._client = client
        self._collection = None

    @property
    def client(self) -> Any:
        if self._client is None:
            if self.config.host:
                self._client = chromadb.HttpClient(host=self.config.host, port=self.config.port)
            else:
                chroma_path = Path(self.config.chroma_path).expanduser()
                chroma_path.mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=str(chroma_path))
        return self._client

    def _open_collection(self) -> tuple[Any, CollectionStatus]:
        try:
            return self.client.get_collection(name=self.collection_name), CollectionStatus.EXISTS
        except Exception:
            # Missing collections raise ValueError or NotFoundError depending on the chromadb release.
            logger.debug("Collection %s not found, creating it", self.collection_name)
        try:
            collection = self.client.create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine", "description": "kbn document embeddings"},
            )
            return collection, CollectionStatus.CREATED
        except Exception as e:
            # Another writer may have created it in between.
            logger.debug("create_collection failed (%s), retrying get", e)
            return self.client.get_collection(name=self.collection_name), CollectionStatus.EXISTS

    async def ensure_collection(self) -> CollectionStatus:
        collection, status = await self._call(self._open_collection, "ensure_collection")
        self._collection = collection
        logger.info("Vector collection %s: %s", self.collection_name, status.value)
        return status

    async def _get_collection(self) -> Any:
        if self._collection is None:
            await self.ensure_collection()
        return self._collection

    async def _call(self, fn: Callable[[], T], op: str) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Vector store {op} timed out after {self.timeout}s", cause=e) from e
        except KbnError:
            raise
        except Exception as e:
            raise ProviderError(f"Vector store {op} failed: {e}", cause=e) from e

    async def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        check_parallel(ids, embeddings, documents, metadatas)
        if not ids:
            return
        collection = await self._get_collection()
        await self._call(
            lambda: collection.upsert(ids=ids, embeddings=embeddings, documents=documents, metadatas=metadatas),
            "upsert",
        )

    async def query(
        self,
        query_embedding: list[float],
        n_results: int = 15,
        where: dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        if n_results <= 0:
            return []
        collection = await self._get_collection()

        def _query():
            total = collection.count()
            if total == 0:
                return None
            return collection.query(
                query_embeddings=[query_embedding],
                n_results=min(n_results, total),
                where=build_where(where),
                include=["documents", "metadatas", "distances"],
            )

        results = await self._call(_query, "query")
        if not results or not results["ids"] or not results["ids"][0]:
            return []

        ids = results["ids"][0]
        documents = (results.get("documents") or [[]])[0] or []
        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []
        output = []
        for i, doc_id in enumerate(ids):
            output.append(RetrievedDocument(
                id=doc_id,
                content=documents[i] if i < len(documents) else "",
                metadata=dict(metadatas[i] or {}) if i < len(metadatas) else {},
                distance=float(distances[i]) if i < len(distances) else None,
            ))
        return output

    async def delete(self, where: dict[str, Any]) -> None:
        if not where:
            raise ValidationError("Refusing to delete without a filter")
        collection = await self._get_collection()
        await self._call(lambda: collection.delete(where=build_where(where)), "delete")

    async def count(self, where: dict[str, Any] | None = None) -> int:
        collection = await self._get_collection()
        if not where:
            return await self._call(collection.count, "count")
        result = await self._call(lambda: collection.get(where=build_where(where), include=[]), "count")
        return len(result["ids"])
