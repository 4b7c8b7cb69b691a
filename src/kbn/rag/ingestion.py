"""Ingestion: knowledge item -> chunks -> embeddings -> vector index."""

import logging

from ..config import ChunkingConfig
from ..embeddings.embedder import Embedder
from ..errors import ConfigurationError, KbnError, NotFoundError, ProviderError, ValidationError
from ..ingest.chunker import build_chunks
from ..ingest.loader import DocumentLoader
from ..models import IndexedVector, IngestResult, KnowledgeItem, vector_id
from ..notebooks.store import NotebookStore
from ..storage import VectorStoreBase

logger = logging.getLogger(__name__)

# Raised as-is; anything else is wrapped with the ingestion context.
_PASSTHROUGH = (ConfigurationError, ValidationError, NotFoundError)


class IngestionPipeline:
    """Indexes knowledge items for semantic search.

    Batches run one after another so chunk indices stay deterministic and a
    single item never has more than one provider call in flight.
    """

    def __init__(
        self,
        config: ChunkingConfig,
        store: NotebookStore,
        embedder: Embedder,
        vector_store: VectorStoreBase,
        loader: DocumentLoader | None = None,
    ):
        self.chunk_size = config.chunk_size
        self.chunk_overlap = config.chunk_overlap
        self.respect_boundaries = config.respect_boundaries
        self.batch_size = config.batch_size
        self.store = store
        self.embedder = embedder
        self.vector_store = vector_store
        self.loader = loader or DocumentLoader()

    async def ingest(
        self,
        notebook_id: str,
        knowledge_id: str,
        item: KnowledgeItem | None = None,
    ) -> IngestResult:
        """Chunk, embed and index one knowledge item, then mark it embedded.

        Re-running on the same item overwrites the same vector ids and drops
        any chunks past the new end. The embedded flag is only set once every
        batch has been stored.

        Raises:
            ValidationError: notebook_id or knowledge_id missing.
            NotFoundError: the item is not in the store.
            ConfigurationError: provider credentials are missing.
            ProviderError: extraction, embedding or indexing failed.
        """
        if not notebook_id or not knowledge_id:
            raise ValidationError("Notebook ID and knowledge ID are required")
        if item is None:
            item = self.store.get_item(notebook_id, knowledge_id)

        try:
            chunk_count = await self._index(notebook_id, knowledge_id, item)
            self.store.update_item(notebook_id, knowledge_id, embedded=True)
        except _PASSTHROUGH:
            raise
        except KbnError as e:
            raise ProviderError(
                f"Failed to ingest knowledge item: {e.message}",
                context={"notebookId": notebook_id, "knowledgeId": knowledge_id, **e.context},
                cause=e,
            ) from e
        except Exception as e:
            raise ProviderError(
                f"Failed to ingest knowledge item: {e}",
                context={"notebookId": notebook_id, "knowledgeId": knowledge_id},
                cause=e,
            ) from e

        return IngestResult(knowledge_id=knowledge_id, chunk_count=chunk_count, embedded=True)

    async def _index(self, notebook_id: str, knowledge_id: str, item: KnowledgeItem) -> int:
        extracted = await self.loader.extract(item)
        if not extracted.text or not extracted.text.strip():
            raise ProviderError("No text content found in knowledge item")

        chunks = build_chunks(
            extracted.text,
            {"notebookId": notebook_id, "knowledgeId": knowledge_id, **extracted.metadata},
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            respect_boundaries=self.respect_boundaries,
        )
        if not chunks:
            raise ProviderError("No chunks created from document")

        n_batches = (len(chunks) + self.batch_size - 1) // self.batch_size
        logger.info("Processing %d chunk(s) for %s", len(chunks), item.title or knowledge_id)

        for b, start in enumerate(range(0, len(chunks), self.batch_size), 1):
            batch = chunks[start:start + self.batch_size]
            logger.info("Processing batch %d/%d", b, n_batches)

            embeddings = await self.embedder.embed([c.content for c in batch])
            # Chroma metadata values must be str, int, float or bool
            vectors = [
                IndexedVector(
                    id=vector_id(notebook_id, knowledge_id, chunk.index),
                    embedding=embedding,
                    text=chunk.content,
                    metadata={
                        "notebookId": str(notebook_id),
                        "knowledgeId": str(knowledge_id),
                        "chunkIndex": chunk.index,
                        "title": str(item.title or ""),
                        "type": item.type.value,
                    },
                )
                for chunk, embedding in zip(batch, embeddings)
            ]
            await self.vector_store.add_vectors(vectors)

        # content may have shrunk since the last run
        await self.vector_store.delete_chunks_from(notebook_id, knowledge_id, len(chunks))
        return len(chunks)

    async def reingest_all(self, notebook_id: str) -> list[IngestResult]:
        """Ingest every item of a notebook; one item's failure does not stop the rest."""
        results = []
        for item in self.store.list_items(notebook_id):
            try:
                results.append(await self.ingest(notebook_id, item.id, item))
            except KbnError as e:
                logger.warning("Ingestion of %s failed: %s", item.id, e)
                results.append(IngestResult(knowledge_id=item.id, error=e.message))
        return results

    async def remove_item(self, notebook_id: str, knowledge_id: str) -> KnowledgeItem:
        """Delete a knowledge item together with its vectors and stored file."""
        self.store.get_item(notebook_id, knowledge_id)
        await self.vector_store.delete_by_knowledge_item(notebook_id, knowledge_id)
        return self.store.delete_item(notebook_id, knowledge_id)

    async def remove_notebook(self, notebook_id: str) -> None:
        self.store.get_notebook(notebook_id)
        await self.vector_store.delete_by_notebook(notebook_id)
        self.store.delete_notebook(notebook_id)
