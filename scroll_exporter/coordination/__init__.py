"""
Coordination module - export orchestration.
"""

from scroll_exporter.coordination.orchestrator import (
    ExportOrchestrator,
    ExportResult,
    ExportState,
    ALLOWED_TRANSITIONS,
)

__all__ = [
    "ExportOrchestrator",
    "ExportResult",
    "ExportState",
    "ALLOWED_TRANSITIONS",
]
