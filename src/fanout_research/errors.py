"""
Error taxonomy for the research orchestrator.

Only ClassificationError and StorageError ever reach the caller. Everything
else is recovered inside the thread or stage where it happens and recorded
as a condition on the run.
"""

from dataclasses import dataclass, field
from typing import List, Optional


class ResearchError(Exception):
    """Base class for orchestrator errors."""
    pass


class ClassificationError(ResearchError):
    """Raised when a query is empty or cannot be classified."""
    pass


class StorageError(ResearchError):
    """Raised when an artifact cannot be persisted or read back."""
    pass


class WorkerFailure(ResearchError):
    """
    Raised inside a worker when a capability keeps failing.

    The worker catches this itself and documents it in the Finding's gaps.
    """

    def __init__(self, thread_id: str, reason: str, capability: Optional[str] = None):
        self.thread_id = thread_id
        self.reason = reason
        self.capability = capability
        super().__init__(f"{thread_id}: {reason}")


@dataclass
class PlanOverflowCondition:
    """Decomposition produced more candidate threads than allowed."""
    requested: int
    allowed: int
    merged_questions: List[str] = field(default_factory=list)
    exceeded_maximum: bool = False

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "allowed": self.allowed,
            "merged_questions": self.merged_questions,
            "exceeded_maximum": self.exceeded_maximum
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlanOverflowCondition":
        return cls(
            requested=data["requested"],
            allowed=data["allowed"],
            merged_questions=list(data.get("merged_questions", [])),
            exceeded_maximum=data.get("exceeded_maximum", False)
        )


@dataclass
class SynthesisGapCondition:
    """One or more threads had no Finding at barrier time."""
    missing_threads: List[str]
    reasons: dict = field(default_factory=dict)

    def describe(self) -> List[str]:
        lines = []
        for thread_id in self.missing_threads:
            reason = self.reasons.get(thread_id)
            if reason:
                lines.append(f"No finding for thread `{thread_id}` ({reason})")
            else:
                lines.append(f"No finding for thread `{thread_id}`")
        return lines

    def to_dict(self) -> dict:
        return {
            "missing_threads": self.missing_threads,
            "reasons": self.reasons
        }
