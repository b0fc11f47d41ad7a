"""Document text extractors."""

from lectern.providers.text.pymupdf_extractor import PyMuPDFTextExtractor

__all__ = ["PyMuPDFTextExtractor"]
