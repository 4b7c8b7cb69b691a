"""Tests for query expansion."""

import pytest

from kbn.models import ChatMessage, Role
from kbn.rag.expansion import QueryExpander, parse_variations

from conftest import FakeLLM


def test_parse_variations_keeps_numbered_lines():
    reply = (
        "Here are some options:\n"
        "1. What makes the sky blue?\n"
        "  2.   Why does the sky look blue  \n"
        "not numbered\n"
        "3.\n"
        "10. Rayleigh scattering and sky colour"
    )
    assert parse_variations(reply) == [
        "What makes the sky blue?",
        "Why does the sky look blue",
        "Rayleigh scattering and sky colour",
    ]


def test_parse_variations_of_garbage_is_empty():
    assert parse_variations("I cannot help with that.") == []


@pytest.mark.asyncio
async def test_variations_include_original_first():
    llm = FakeLLM("1. a\n2. b\n3. c\n4. d\n5. e")
    expander = QueryExpander(llm)

    queries = await expander.generate_query_variations("why is the sky blue")

    assert queries == ["why is the sky blue", "a", "b", "c", "d"]
    assert "Original: why is the sky blue" in llm.prompts[0]
    assert "Conversation context" not in llm.prompts[0]


@pytest.mark.asyncio
async def test_history_is_limited_and_rendered():
    history = [
        ChatMessage(role=Role.USER if i % 2 == 0 else Role.ASSISTANT, content=f"message {i}")
        for i in range(25)
    ]
    llm = FakeLLM("1. x")
    expander = QueryExpander(llm, history_limit=20)

    await expander.generate_query_variations("and then?", history)

    prompt = llm.prompts[0]
    assert "Conversation context:\n" in prompt
    assert "message 4\n" not in prompt
    assert "Assistant: message 5\nUser: message 6" in prompt
    assert "User: message 24" in prompt


@pytest.mark.asyncio
async def test_hypothetical_answer_is_returned_verbatim():
    llm = FakeLLM("The sky appears blue due to Rayleigh scattering of sunlight.")
    expander = QueryExpander(llm)

    answer = await expander.generate_hypothetical_answer(
        "why is the sky blue", [{"role": "user", "content": "hi"}]
    )

    assert answer == "The sky appears blue due to Rayleigh scattering of sunlight."
    assert "Question: why is the sky blue" in llm.prompts[0]
    assert "User: hi" in llm.prompts[0]
