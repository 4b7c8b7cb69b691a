"""Prompt templates for query expansion and grounded answers."""

from ..models import DetailLevel

NO_CONTEXT = "No relevant context found."

QUERY_VARIATIONS_PROMPT = """Generate 4 alternative phrasings of this question that would help find relevant information. Consider the conversation context to make the variations more specific and relevant.{chat_context}

Original: {query}

1."""

HYPOTHETICAL_ANSWER_PROMPT = """Generate a brief, factual answer to the following question. Write as if you're providing information from a document.{chat_context}

Question: {query}

Hypothetical answer:"""

ANSWER_PROMPT = """You are a helpful assistant that answers questions based on the following context from the user's knowledge base.

Context:
{context}

{chat_history}
Question: {question}

Response detail level: {detail_level}

IMPORTANT: Provide your answer in PLAIN TEXT ONLY. Do NOT use any formatting such as:
- Markdown (no **, *, #, [], (), `, etc.)
- HTML tags (no <b>, <i>, <p>, etc.)
- XML or other markup languages
- Bullet points or numbered lists with special characters
- Code blocks or inline code formatting

Simply write your answer as natural, unformatted text. If the context doesn't contain enough information to answer the question, say so."""

DETAIL_LEVEL_INSTRUCTIONS = {
    DetailLevel.BRIEF: (
        "Provide a compact answer that directly addresses the request with minimal setup. "
        "Prefer one clear conclusion and only the most essential supporting points. "
        "When listing examples, include just a few representative items rather than trying to be exhaustive. "
        "If quantities matter, summarize them (e.g., \"several key factors\") instead of enumerating every item."
    ),
    DetailLevel.NORMAL: (
        "Provide a clear, complete answer that covers the main points a typical user would expect. "
        "Include enough context to understand the reasoning, but avoid long digressions. "
        "Use short lists when they improve readability, and include a handful of examples when helpful. "
        "If the topic is complex, mention the most important tradeoffs or caveats without exploring every edge case."
    ),
    DetailLevel.DETAILED: (
        "Provide a comprehensive answer that covers all relevant aspects and includes detailed explanations. "
        "Include multiple supporting points, examples, and tradeoffs when appropriate. "
        "If quantities matter, enumerate every item in the list. "
        "When listing examples, include a few representative items rather than trying to be exhaustive."
    ),
    DetailLevel.METICULOUS: (
        "Provide an exhaustive, carefully organized response that aims to anticipate follow-up questions. "
        "Enumerate items as fully as possible (within the user's constraints), and only collapse lists into "
        "counts when repetition would add no value. State assumptions explicitly, explore alternative "
        "interpretations, and address edge cases, counterexamples, and failure modes. Use precise terminology, "
        "include validation steps or checks when applicable, and end with a concise recap of key takeaways "
        "and any remaining uncertainties."
    ),
}


def detail_instruction(level: "str | DetailLevel | None") -> str:
    return DETAIL_LEVEL_INSTRUCTIONS[DetailLevel.parse(level)]


def _speaker(message) -> tuple[str, str]:
    if isinstance(message, dict):
        role, content = message.get("role"), message.get("content", "")
    else:
        role, content = message.role, message.content
    return ("User" if role == "user" else "Assistant"), content


def render_history(messages: list, separator: str = "\n") -> str:
    """Render chat messages as alternating "User:" / "Assistant:" lines."""
    lines = []
    for message in messages:
        speaker, content = _speaker(message)
        lines.append(f"{speaker}: {content}")
    return separator.join(lines)


def history_block(messages: list) -> str:
    """Labelled conversation block for expansion prompts, empty without history."""
    if not messages:
        return ""
    return f"\n\nConversation context:\n{render_history(messages)}\n"
