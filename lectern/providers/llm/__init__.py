"""LLM provider adapters.

Two concrete implementations of ILLMProvider (lectern/interfaces/llm_provider.py):
    - OpenAILLMProvider    -- gpt-4o-mini or any OpenAI-compatible endpoint
    - AnthropicLLMProvider -- Claude via the Messages API

main.py picks the first provider with a configured API key.
"""

from lectern.providers.llm.anthropic_provider import AnthropicLLMProvider
from lectern.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
