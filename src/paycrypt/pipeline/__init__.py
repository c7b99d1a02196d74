"""Pipeline entry point shared by all ingestion channels."""

from .service import NO_INTENT, MessagePipeline, PipelineReport

__all__ = ["MessagePipeline", "PipelineReport", "NO_INTENT"]
