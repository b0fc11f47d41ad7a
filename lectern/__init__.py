"""Lectern: lecture document ingestion and knowledge extraction service."""

__version__ = "0.1.0"
