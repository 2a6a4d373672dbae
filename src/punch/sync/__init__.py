"""Sync module.

Reconciles the local session store with a remote, including conflict
detection and manual resolution in an editor.
"""

from .conflict import (
    ConflictRecord,
    ConflictType,
    DetectionResult,
    detect_conflicts,
)
from .editor import ResolutionMediator, interactive_edit, render_conflicts
from .orchestrator import SyncOrchestrator, SyncReport, SyncState
from .serialization import deserialize_sessions, serialize_sessions

__all__ = [
    # Conflict handling
    "ConflictRecord",
    "ConflictType",
    "DetectionResult",
    "detect_conflicts",
    # Resolution
    "ResolutionMediator",
    "interactive_edit",
    "render_conflicts",
    "serialize_sessions",
    "deserialize_sessions",
    # Orchestration
    "SyncOrchestrator",
    "SyncReport",
    "SyncState",
]
