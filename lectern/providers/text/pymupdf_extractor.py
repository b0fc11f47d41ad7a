"""PDF text extraction with PyMuPDF.

Opens the upload from memory, reads plain text page by page and returns
1-based :class:`Page` records.  Pages without extractable text (scans,
blank separators) are skipped; an upload with no text at all yields an
empty list and the orchestrator reports it as an empty document.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF
import structlog

from lectern.interfaces.text_extractor import ITextExtractor
from lectern.models.document import Page
from lectern.utils.errors import TextExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PyMuPDFTextExtractor(ITextExtractor):
    """Extracts page text from PDF bytes.

    Parsing is CPU-bound, so it runs in a worker thread via
    ``asyncio.to_thread`` to keep the event loop responsive.
    """

    async def extract(self, file_bytes: bytes) -> list[Page]:
        pages = await asyncio.to_thread(self._extract_sync, file_bytes)
        logger.info("pdf_text_extracted", pages=len(pages), size_bytes=len(file_bytes))
        return pages

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _extract_sync(self, file_bytes: bytes) -> list[Page]:
        try:
            doc = fitz.open(stream=file_bytes, filetype="pdf")
        except (RuntimeError, ValueError) as exc:
            raise TextExtractionError(
                message=f"Could not open PDF: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        pages: list[Page] = []
        try:
            for page_index in range(len(doc)):
                text = doc[page_index].get_text("text").strip()
                if text:
                    pages.append(Page(page=page_index + 1, text=text))
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", size_bytes=len(file_bytes))
        return pages
