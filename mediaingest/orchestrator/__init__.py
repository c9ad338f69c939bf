"""Orchestrator package - drives ingestion requests through the pipeline."""
from .pipeline import IngestionPipeline

__all__ = ["IngestionPipeline"]
