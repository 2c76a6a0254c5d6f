"""Classifier, planner, worker and synthesizer agents."""

from .base_agent import Agent
from .classifier import (
    Classification,
    Complexity,
    OutputFormat,
    QueryClassifier,
    QueryType,
    classify_query,
)
from .planner import PlannerAgent, ResearchPlan, ThreadSpec
from .researcher import Claim, Finding, ResearchWorker, WorkerState
from .synthesizer import ClaimConflict, FinalOutput, SynthesizerAgent, decide_format

__all__ = [
    "Agent",
    "Classification",
    "Complexity",
    "OutputFormat",
    "QueryClassifier",
    "QueryType",
    "classify_query",
    "PlannerAgent",
    "ResearchPlan",
    "ThreadSpec",
    "Claim",
    "Finding",
    "ResearchWorker",
    "WorkerState",
    "ClaimConflict",
    "FinalOutput",
    "SynthesizerAgent",
    "decide_format",
]
