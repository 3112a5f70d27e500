"""LLM construction helpers."""
