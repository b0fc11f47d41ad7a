"""Ingestion run orchestration and progress streaming."""

from lectern.pipeline.orchestrator import IngestionOrchestrator
from lectern.pipeline.progress_streamer import ProgressStreamer

__all__ = [
    "IngestionOrchestrator",
    "ProgressStreamer",
]
