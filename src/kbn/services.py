"""Builds the component graph from one Settings value."""

from dataclasses import dataclass

from .config import Settings
from .embeddings.embedder import Embedder
from .ingest.loader import DocumentLoader
from .llm import LLMClient
from .notebooks.store import NotebookStore
from .rag.chat import ChatEngine
from .rag.expansion import QueryExpander
from .rag.ingestion import IngestionPipeline
from .rag.retrieval import RetrievalEngine
from .rerank import RerankerBase, get_reranker
from .storage import VectorStoreBase, get_vector_store


@dataclass
class Services:
    settings: Settings
    store: NotebookStore
    embedder: Embedder
    vector_store: VectorStoreBase
    reranker: RerankerBase | None
    llm: LLMClient
    ingestion: IngestionPipeline
    retrieval: RetrievalEngine
    chat: ChatEngine


def build_services(settings: Settings) -> Services:
    """Wire every component. Nothing is loaded or contacted until first use."""
    store = NotebookStore(settings.data_path)
    embedder = Embedder(settings.embedding)
    vector_store = get_vector_store(settings.vector_store)
    reranker = get_reranker(settings.reranker)
    llm = LLMClient(settings.llm)

    ingestion = IngestionPipeline(settings.chunking, store, embedder, vector_store, DocumentLoader())
    retrieval = RetrievalEngine(settings.retrieval, embedder, vector_store, reranker)
    expander = QueryExpander(llm, history_limit=settings.retrieval.history_limit)
    chat = ChatEngine(settings.retrieval, llm, retrieval, expander)

    return Services(
        settings=settings,
        store=store,
        embedder=embedder,
        vector_store=vector_store,
        reranker=reranker,
        llm=llm,
        ingestion=ingestion,
        retrieval=retrieval,
        chat=chat,
    )
