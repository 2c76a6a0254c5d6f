"""
Fan-out research orchestrator.

Classifies a query, splits it into independent threads, researches each
thread in an isolated worker and merges the findings into a brief or report.
"""

from .config import ResearchConfig, configure_logging
from .errors import (
    ClassificationError,
    PlanOverflowCondition,
    ResearchError,
    StorageError,
    SynthesisGapCondition,
    WorkerFailure,
)
from .orchestrator import ResearchOrchestrator, RunResult
from .store import DirectoryFindingsStore, FindingsStore, InMemoryFindingsStore

__version__ = "0.1.0"

__all__ = [
    "ResearchConfig",
    "configure_logging",
    "ClassificationError",
    "PlanOverflowCondition",
    "ResearchError",
    "StorageError",
    "SynthesisGapCondition",
    "WorkerFailure",
    "ResearchOrchestrator",
    "RunResult",
    "DirectoryFindingsStore",
    "FindingsStore",
    "InMemoryFindingsStore",
]
