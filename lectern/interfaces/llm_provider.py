"""Abstract base class for LLM service providers.

Defines the contract for the generative model that turns page text into
structured sections.  The pipeline makes exactly one call per ingestion
run, so providers only need a single-round-trip completion.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider
# Located in: lectern/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by the structured extractor."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        json_mode: bool = False,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The user-facing prompt containing the document text.
        temperature:
            Sampling temperature (0.0 = deterministic).
        max_tokens:
            Upper bound on the number of tokens in the response.
        json_mode:
            Ask the provider for a JSON-only response where it supports
            one.  Callers must still validate the result.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        lectern.utils.errors.LLMError
            If the API call fails or returns no content.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured (no network call)."""
