"""Pipeline module: orchestrated runs and the command line."""

from gameweek_pipeline.pipeline.orchestrator import (
    PipelineAction,
    PipelineRunner,
    PipelineStatus,
)

__all__ = ["PipelineAction", "PipelineRunner", "PipelineStatus"]
