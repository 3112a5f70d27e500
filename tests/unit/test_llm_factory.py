"""Tests for the LangChain/LiteLLM chat model factory."""

from __future__ import annotations

from enjambre.llm.factory import get_llm


def test_get_llm_builds_litellm_chat_model():
    get_llm.cache_clear()
    llm = get_llm("gpt-4o-mini", 0.3)
    assert type(llm).__name__ == "ChatLiteLLM"
    assert llm.model == "gpt-4o-mini"
    assert llm.temperature == 0.3


def test_get_llm_is_cached_per_arguments():
    get_llm.cache_clear()
    first = get_llm("ollama/llama3", 0.0, "http://localhost:11434")
    assert get_llm("ollama/llama3", 0.0, "http://localhost:11434") is first
    assert get_llm("ollama/llama3", 0.5, "http://localhost:11434") is not first


def test_get_llm_forwards_extra_kwargs():
    get_llm.cache_clear()
    llm = get_llm("vertex_ai/gemini-1.5-flash", 0.0, None, vertex_project="p", vertex_location="l")
    assert llm.model_kwargs == {"vertex_project": "p", "vertex_location": "l"}
