"""Abstract base class for document text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod

from lectern.models.document import Page


class ITextExtractor(ABC):
    """Converts raw document bytes into ordered page records."""

    @abstractmethod
    async def extract(self, file_bytes: bytes) -> list[Page]:
        """Return one :class:`Page` per page, numbered from 1.

        Raises
        ------
        lectern.utils.errors.TextExtractionError
            If the bytes cannot be opened as a document.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
