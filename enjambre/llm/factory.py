"""LLM factory: returns a LangChain BaseChatModel backed by LiteLLM."""

from __future__ import annotations

from functools import lru_cache

from langchain_core.language_models import BaseChatModel


@lru_cache(maxsize=32)
def get_llm(
    model_name: str = "gemini/gemini-1.5-flash",
    temperature: float = 0.0,
    api_base: str | None = None,
    **model_kwargs: str,
) -> BaseChatModel:
    """Return a cached LangChain chat model via LiteLLM.

    Supports any model string that LiteLLM understands:
      - "gemini/gemini-1.5-flash" / "vertex_ai/gemini-1.5-pro"
      - "claude-sonnet-4-6"
      - "gpt-4o" / "gpt-4o-mini"
      - "ollama/llama3" (with ``api_base``)

    Extra keyword arguments (``api_key``, ``vertex_project``, ...) are
    forwarded verbatim to ``litellm.completion``.
    """
    try:
        from langchain_litellm import ChatLiteLLM  # type: ignore[import-untyped]
    except ImportError:
        from langchain_community.chat_models import ChatLiteLLM  # type: ignore[no-redef]

    kwargs: dict[str, object] = {"model": model_name, "temperature": temperature}
    if api_base:
        kwargs["api_base"] = api_base
    if model_kwargs:
        kwargs["model_kwargs"] = dict(model_kwargs)
    return ChatLiteLLM(**kwargs)  # type: ignore[return-value]
