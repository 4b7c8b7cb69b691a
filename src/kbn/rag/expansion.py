"""Query rewriting: multi-query variations and hypothetical answers (HyDE)."""

import logging
import re

from ..llm import LLMClient
from .prompts import HYPOTHETICAL_ANSWER_PROMPT, QUERY_VARIATIONS_PROMPT, history_block

logger = logging.getLogger(__name__)

_NUMBERED = re.compile(r"^\d+\.")
_NUMBER_PREFIX = re.compile(r"^\d+\.\s*")

NUM_VARIATIONS = 4


def parse_variations(text: str) -> list[str]:
    """Keep the numbered lines of an LLM reply, without their numbers."""
    variations = []
    for line in text.split("\n"):
        line = line.strip()
        if not _NUMBERED.match(line):
            continue
        variation = _NUMBER_PREFIX.sub("", line).strip()
        if variation:
            variations.append(variation)
    return variations


class QueryExpander:
    """Generates alternative retrieval queries with one LLM call per strategy."""

    def __init__(self, llm: LLMClient, history_limit: int = 20):
        self.llm = llm
        self.history_limit = history_limit

    def _recent(self, history: list | None) -> list:
        if not history or self.history_limit <= 0:
            return []
        return list(history)[-self.history_limit:]

    async def generate_query_variations(self, query: str, history: list | None = None) -> list[str]:
        """Return the original query followed by the parsed variations.

        The prompt ends with "1." so the first variation usually comes back
        without its number; lines the parser cannot recognise are dropped.
        """
        prompt = QUERY_VARIATIONS_PROMPT.format(
            chat_context=history_block(self._recent(history)),
            query=query,
        )
        reply = await self.llm.prompt(prompt)
        variations = parse_variations(reply)[:NUM_VARIATIONS]
        logger.debug("Query variations: %s", variations)
        return [query, *variations]

    async def generate_hypothetical_answer(self, query: str, history: list | None = None) -> str:
        prompt = HYPOTHETICAL_ANSWER_PROMPT.format(
            chat_context=history_block(self._recent(history)),
            query=query,
        )
        answer = await self.llm.prompt(prompt)
        logger.debug("Hypothetical answer: %s", answer)
        return answer
