"""Team import orchestration: the cascade from team listing to match and player jobs."""

from src.pipeline.import_tracker import ImportRecord, ImportTracker
from src.pipeline.orchestrator import OrchestrationService

__all__ = [
    "ImportRecord",
    "ImportTracker",
    "OrchestrationService",
]
