"""Orchestrator module for the fan-out research system."""

from .dispatcher import Dispatcher, StatusKind, TerminalStatus
from .orchestrator import ResearchOrchestrator, RunResult

__all__ = [
    "Dispatcher",
    "StatusKind",
    "TerminalStatus",
    "ResearchOrchestrator",
    "RunResult",
]
