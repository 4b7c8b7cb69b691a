"""Grounded question answering over a notebook's indexed content."""

import logging

from ..config import RetrievalConfig
from ..errors import ConfigurationError, KbnError, ProviderError, ValidationError
from ..llm import API_KEY_MESSAGE, LLMClient
from ..models import DetailLevel, RetrievedDocument, Role
from ..notebooks.store import NotebookStore
from .expansion import QueryExpander
from .prompts import ANSWER_PROMPT, NO_CONTEXT, detail_instruction, render_history
from .retrieval import RetrievalEngine

logger = logging.getLogger(__name__)


def build_context(documents: list[RetrievedDocument]) -> str:
    """Number documents in ranked order; an explicit marker when there are none."""
    if not documents:
        return NO_CONTEXT
    return "\n\n".join(f"[Document {i}]\n{doc.content}" for i, doc in enumerate(documents, 1))


def build_answer_prompt(
    question: str,
    documents: list[RetrievedDocument],
    history: list,
    detail_level: "str | DetailLevel | None" = DetailLevel.NORMAL,
) -> str:
    history_text = render_history(history, separator="\n\n")
    return ANSWER_PROMPT.format(
        context=build_context(documents),
        chat_history=f"Previous conversation:\n{history_text}\n\n" if history_text else "",
        question=question.strip(),
        detail_level=detail_instruction(detail_level),
    )


def merge_unique(batches: list[list[RetrievedDocument]]) -> list[RetrievedDocument]:
    """Concatenate result lists, keeping the first occurrence of each document id."""
    seen: set[str] = set()
    merged = []
    for batch in batches:
        for doc in batch:
            if doc.id not in seen:
                seen.add(doc.id)
                merged.append(doc)
    return merged


class ChatEngine:
    """Expands the query, retrieves context and asks the LLM for an answer."""

    def __init__(
        self,
        config: RetrievalConfig,
        llm: LLMClient,
        retrieval: RetrievalEngine,
        expander: QueryExpander | None = None,
    ):
        self.default_top_k = config.top_k
        self.default_multi_query = config.use_multi_query
        self.history_limit = config.history_limit
        self.llm = llm
        self.retrieval = retrieval
        self.expander = expander or QueryExpander(llm, history_limit=config.history_limit)

    async def _multi_query_documents(
        self, query: str, notebook_id: str | None, top_k: int, history: list
    ) -> list[RetrievedDocument]:
        queries = await self.expander.generate_query_variations(query, history)
        logger.debug("Multi-query: %s", queries)

        batches = []
        for q in queries:
            batches.append(await self.retrieval.retrieve(
                q, notebook_id=notebook_id, top_k=top_k * 2, use_reranking=False
            ))
        candidates = merge_unique(batches)
        return await self.retrieval.rerank_documents(query, candidates, top_k)

    async def _hyde_documents(
        self, query: str, notebook_id: str | None, top_k: int, history: list
    ) -> list[RetrievedDocument]:
        hypothetical = await self.expander.generate_hypothetical_answer(query, history)
        return await self.retrieval.retrieve(hypothetical, notebook_id=notebook_id, top_k=top_k)

    async def chat(
        self,
        query: str,
        notebook_id: str | None = None,
        top_k: int | None = None,
        use_multi_query: bool | None = None,
        chat_history: list | None = None,
        detail_level: "str | DetailLevel | None" = DetailLevel.NORMAL,
    ) -> str:
        """Answer query from the notebook's indexed content.

        Args:
            query: The user's question.
            notebook_id: Notebook whose documents ground the answer.
            top_k: Number of documents placed in the prompt.
            use_multi_query: Multi-query expansion if True, hypothetical answer if False.
            chat_history: Earlier messages; only the most recent ones are used.
            detail_level: brief, normal, detailed or meticulous.

        Returns:
            The model's answer text, unmodified.

        Raises:
            ValidationError: query is missing or blank.
            ConfigurationError: LLM credentials are not configured.
            ProviderError: any other failure, wrapped.
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required")

        top_k = top_k or self.default_top_k
        if use_multi_query is None:
            use_multi_query = self.default_multi_query
        history = list(chat_history or [])[-self.history_limit:] if self.history_limit else []

        try:
            if use_multi_query:
                documents = await self._multi_query_documents(query, notebook_id, top_k, history)
            else:
                documents = await self._hyde_documents(query, notebook_id, top_k, history)

            logger.debug("Including %d previous message(s) in all stages", len(history))
            prompt = build_answer_prompt(query, documents, history, detail_level)
            logger.debug("Prompt:\n%s", prompt)
            return await self.llm.prompt(prompt)
        except ConfigurationError as e:
            raise ConfigurationError(API_KEY_MESSAGE, context=e.context, cause=e) from e
        except KbnError as e:
            raise ProviderError(f"Failed to process chat query: {e.message}", cause=e) from e
        except Exception as e:
            raise ProviderError(f"Failed to process chat query: {e}", cause=e) from e

    async def ask(
        self,
        store: NotebookStore,
        notebook_id: str,
        query: str,
        detail_level: "str | DetailLevel | None" = DetailLevel.NORMAL,
        use_multi_query: bool | None = None,
        top_k: int | None = None,
    ) -> str:
        """Answer within a notebook's conversation and record both turns."""
        if not isinstance(query, str) or not query.strip():
            raise ValidationError("Query is required")
        history = store.get_chat_history(notebook_id)
        answer = await self.chat(
            query,
            notebook_id=notebook_id,
            top_k=top_k,
            use_multi_query=use_multi_query,
            chat_history=history,
            detail_level=detail_level,
        )
        store.add_message(notebook_id, Role.USER, query.strip())
        store.add_message(notebook_id, Role.ASSISTANT, answer or "(empty answer)")
        return answer
