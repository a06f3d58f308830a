"""LLM helpers for chaos-lab."""

from .text_client import TextLLMClient, text_llm_client, LLMGenerationError

__all__ = [
    "TextLLMClient",
    "text_llm_client",
    "LLMGenerationError",
]
