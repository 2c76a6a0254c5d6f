"""
Synthesizer Agent - Merges the run's findings into one final output.

This agent:
1. Checks the barrier (every thread has a terminal status)
2. Indexes claims by sub-question and compares them across threads
3. Flags conflicting claims and applies the authority tie-break
4. Chooses Brief or Report and renders the body
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple
from dataclasses import dataclass, field

from .base_agent import Agent
from .classifier import Complexity, OutputFormat
from .planner import ResearchPlan
from .researcher import Claim, Finding, authority_rank, claims_conflict, claims_contradict
from ..errors import SynthesisGapCondition

logger = logging.getLogger(__name__)

MAX_KEY_POINTS = 5
MAX_RECOMMENDATIONS = 3
MAX_KEY_SOURCES = 5


def decide_format(
    complexity: Complexity,
    conflicts_detected: bool,
    all_threads_present: bool
) -> OutputFormat:
    """Brief only for a simple query with every thread present and nothing in dispute."""
    if complexity == Complexity.SIMPLE and not conflicts_detected and all_threads_present:
        return OutputFormat.BRIEF
    return OutputFormat.REPORT


@dataclass
class ClaimConflict:
    """Two claims that cannot both hold. Both are kept."""
    topic: str
    first: Claim
    second: Claim
    first_thread: str
    second_thread: str
    preferred: Optional[str] = None  # "first", "second" or None when undecided

    @classmethod
    def between(
        cls,
        first: Tuple[str, Claim],
        second: Tuple[str, Claim]
    ) -> "ClaimConflict":
        """Build a conflict and settle it by source authority where ranks differ."""
        first_thread, first_claim = first
        second_thread, second_claim = second

        first_rank = authority_rank(first_claim.source_type)
        second_rank = authority_rank(second_claim.source_type)
        if first_rank > second_rank:
            preferred = "first"
        elif second_rank > first_rank:
            preferred = "second"
        else:
            preferred = None

        return cls(
            topic=first_claim.topic,
            first=first_claim,
            second=second_claim,
            first_thread=first_thread,
            second_thread=second_thread,
            preferred=preferred
        )

    @property
    def preferred_claim(self) -> Optional[Claim]:
        if self.preferred == "first":
            return self.first
        if self.preferred == "second":
            return self.second
        return None

    def resolution(self) -> str:
        claim = self.preferred_claim
        if claim is None:
            return "Undecided: sources carry equal authority"
        return f"Preferred: {claim.source} ({claim.source_type} source)"

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "first": self.first.to_dict(),
            "second": self.second.to_dict(),
            "first_thread": self.first_thread,
            "second_thread": self.second_thread,
            "preferred": self.preferred
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ClaimConflict":
        return cls(
            topic=data["topic"],
            first=Claim.from_dict(data["first"]),
            second=Claim.from_dict(data["second"]),
            first_thread=data.get("first_thread", ""),
            second_thread=data.get("second_thread", ""),
            preferred=data.get("preferred")
        )


@dataclass
class FinalOutput:
    """The run's terminal artifact."""
    format: OutputFormat
    body: str
    low_confidence: bool = False
    missing_threads: List[str] = field(default_factory=list)
    conflicts: List[ClaimConflict] = field(default_factory=list)
    confidence_level: str = "Medium"

    def to_dict(self) -> dict:
        return {
            "format": self.format.value,
            "body": self.body,
            "low_confidence": self.low_confidence,
            "missing_threads": self.missing_threads,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "confidence_level": self.confidence_level
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FinalOutput":
        return cls(
            format=OutputFormat(data["format"]),
            body=data.get("body", ""),
            low_confidence=bool(data.get("low_confidence", False)),
            missing_threads=list(data.get("missing_threads", [])),
            conflicts=[ClaimConflict.from_dict(c) for c in data.get("conflicts", [])],
            confidence_level=data.get("confidence_level", "Medium")
        )


class SynthesizerAgent(Agent):
    """
    Specialized agent for merging findings.

    Capabilities:
    - Barrier enforcement
    - Topic indexing across threads
    - Conflict detection with authority tie-break
    - Brief and Report rendering
    """

    def __init__(self):
        super().__init__(
            name="Synthesizer",
            role="Merge thread findings into a single brief or report"
        )

    def synthesize(
        self,
        plan: ResearchPlan,
        statuses: Mapping[str, Any],
        store: Any
    ) -> FinalOutput:
        """
        Synthesize the findings of a run.

        Args:
            plan: The run's plan; thread order is the output order
            statuses: Terminal status per thread id (anything with a `reason`)
            store: Findings store to read findings from

        Returns:
            FinalOutput

        Raises:
            ValueError: if any planned thread has no terminal status yet
        """
        pending = [t.id for t in plan.threads if t.id not in statuses]
        if pending:
            raise ValueError(f"Barrier not reached; no terminal status for: {pending}")

        findings: List[Finding] = []
        missing: List[str] = []
        for thread in plan.threads:
            finding = store.get(thread.id)
            if finding is None:
                missing.append(thread.id)
            else:
                findings.append(finding)

        logger.info(
            f"Synthesizing {len(findings)}/{len(plan.threads)} findings "
            f"for query: {plan.query}"
        )

        gap_condition = None
        if missing:
            gap_condition = SynthesisGapCondition(
                missing_threads=missing,
                reasons={
                    t: getattr(statuses[t], "reason", None) or str(statuses[t])
                    for t in missing
                }
            )
            logger.warning(f"Synthesis gap: no finding for {missing}")

        if not findings:
            body = self._format_gaps_only(plan, gap_condition)
            return FinalOutput(
                format=OutputFormat.REPORT,
                body=body,
                low_confidence=True,
                missing_threads=missing,
                confidence_level="Low"
            )

        conflicts = self.detect_conflicts(self.build_topic_index(findings))
        if conflicts:
            logger.info(f"Detected {len(conflicts)} conflicting claim pairs")

        output_format = decide_format(
            plan.classification.complexity,
            conflicts_detected=bool(conflicts),
            all_threads_present=not missing
        )
        confidence = self._assess_confidence(plan, findings, conflicts)

        if output_format == OutputFormat.BRIEF:
            body = self._format_brief(plan, findings, gap_condition)
        else:
            body = self._format_report(plan, findings, conflicts, gap_condition, confidence)

        logger.info(
            f"Synthesis complete: format={output_format.value}, "
            f"confidence={confidence}, missing={len(missing)}"
        )
        return FinalOutput(
            format=output_format,
            body=body,
            low_confidence=confidence == "Low",
            missing_threads=missing,
            conflicts=conflicts,
            confidence_level=confidence
        )

    @staticmethod
    def build_topic_index(findings: List[Finding]) -> Dict[str, List[Tuple[str, Claim]]]:
        """Claims keyed by normalized sub-question, tagged with their thread id."""
        index: Dict[str, List[Tuple[str, Claim]]] = {}
        for finding in findings:
            for claim in finding.findings:
                index.setdefault(claim.topic_key, []).append((finding.thread_id, claim))
        return index

    @staticmethod
    def detect_conflicts(index: Dict[str, List[Tuple[str, Claim]]]) -> List[ClaimConflict]:
        """
        Pair up contradicting claims.

        Within a thread only claims on the same sub-question are compared. Threads
        phrase their own questions, so across threads any two claims are compared
        on their core terms.
        """
        entries = [entry for bucket in index.values() for entry in bucket]
        conflicts = []
        seen = set()
        for i, first in enumerate(entries):
            for second in entries[i + 1:]:
                if first[0] == second[0]:
                    clash = claims_conflict(first[1], second[1])
                else:
                    clash = claims_contradict(first[1], second[1])
                if not clash:
                    continue
                pair = frozenset({
                    (first[1].statement, first[1].source),
                    (second[1].statement, second[1].source),
                })
                if pair in seen:
                    continue
                seen.add(pair)
                conflicts.append(ClaimConflict.between(first, second))
        return conflicts

    @staticmethod
    def _assess_confidence(
        plan: ResearchPlan,
        findings: List[Finding],
        conflicts: List[ClaimConflict]
    ) -> str:
        """Assess overall confidence level."""
        score = 0

        present = len(findings) / len(plan.threads)
        if present == 1:
            score += 2
        elif present >= 0.5:
            score += 1

        complete = sum(1 for f in findings if f.complete)
        if complete * 2 >= len(findings):
            score += 1

        if not any(c.preferred is None for c in conflicts):
            score += 1

        if score >= 3:
            return "High"
        elif score >= 2:
            return "Medium"
        else:
            return "Low"

    @staticmethod
    def _sources(findings: List[Finding]) -> List[str]:
        return list(dict.fromkeys(s for f in findings for s in f.sources_consulted))

    @staticmethod
    def _limitations(
        findings: List[Finding],
        gap_condition: Optional[SynthesisGapCondition]
    ) -> List[str]:
        lines = gap_condition.describe() if gap_condition else []
        for finding in findings:
            lines.extend(f"`{finding.thread_id}`: {gap}" for gap in finding.gaps)
        return lines

    @staticmethod
    def _recommendations(findings: List[Finding]) -> List[str]:
        return list(dict.fromkeys(r for f in findings for r in f.suggested_follow_ups))

    def _format_gaps_only(
        self,
        plan: ResearchPlan,
        gap_condition: Optional[SynthesisGapCondition]
    ) -> str:
        output = ["## Limitations and Gaps\n"]
        output.append("No findings were available for this run; nothing is reported.\n")
        lines = gap_condition.describe() if gap_condition else []
        for line in lines:
            output.append(f"- {line}")
        return "\n".join(output)

    def _format_brief(
        self,
        plan: ResearchPlan,
        findings: List[Finding],
        gap_condition: Optional[SynthesisGapCondition]
    ) -> str:
        output = []
        output.append(f"# Research Brief: {plan.query}\n")

        leads = [f.findings[0].statement for f in findings if f.findings][:2]
        bottom_line = " ".join(leads) if leads else findings[0].summary
        output.append(f"**Bottom line:** {bottom_line}\n")

        output.append("## Key Points\n")
        points = [c for f in findings for c in f.findings][:MAX_KEY_POINTS]
        if points:
            for claim in points:
                output.append(f"- {claim.statement} ({claim.source})")
        else:
            output.append("- No specific claims were gathered.")

        output.append("\n## Recommendations\n")
        recommendations = self._recommendations(findings)[:MAX_RECOMMENDATIONS]
        if recommendations:
            for item in recommendations:
                output.append(f"- {item}")
        else:
            output.append("- No further research needed for this question.")

        limitations = self._limitations(findings, gap_condition)
        output.append("\n## Limitations\n")
        if limitations:
            for line in limitations:
                output.append(f"- {line}")
        else:
            output.append("- None identified.")

        output.append("\n## Key Sources\n")
        for source in self._sources(findings)[:MAX_KEY_SOURCES]:
            output.append(f"- {source}")

        return "\n".join(output)

    def _format_report(
        self,
        plan: ResearchPlan,
        findings: List[Finding],
        conflicts: List[ClaimConflict],
        gap_condition: Optional[SynthesisGapCondition],
        confidence: str
    ) -> str:
        """Format the long report; threads appear in plan order."""
        c = plan.classification
        sources = self._sources(findings)
        conflicted = {x.statement for k in conflicts for x in (k.first, k.second)}
        by_thread = {f.thread_id: f for f in findings}

        output = []
        output.append(f"# Research Report: {plan.query}\n")
        output.append(f"**Confidence Level:** {confidence}\n")

        output.append("## Executive Summary\n")
        output.append(
            f"{len(findings)} of {len(plan.threads)} research threads reported, "
            f"drawing on {len(sources)} sources."
        )
        if conflicts:
            output.append(
                f"{len(conflicts)} conflicting claim pairs were found; "
                f"see Analysis."
            )
        for finding in findings[:3]:
            output.append(f"\n{finding.summary}")

        output.append("\n## Background\n")
        output.append(
            f"Classified as a {c.complexity.value} {c.query_type.value} query "
            f"and split into {len(plan.threads)} threads:"
        )
        for thread in plan.threads:
            output.append(f"- `{thread.id}`: {thread.focus} [{thread.primary_capability}]")

        output.append("\n## Findings\n")
        for thread in plan.threads:
            output.append(f"### {thread.focus} (`{thread.id}`)\n")
            finding = by_thread.get(thread.id)
            if finding is None:
                output.append("_No finding was produced for this thread._\n")
                continue
            output.append(finding.summary + "\n")
            for claim in finding.findings:
                marker = " **[conflicting]**" if claim.statement in conflicted else ""
                output.append(f"- {claim.statement} ({claim.source}){marker}")
            output.append("")

        output.append("## Analysis\n")
        if conflicts:
            for conflict in conflicts:
                output.append(f"**Conflict on:** {conflict.topic}")
                output.append(
                    f"- `{conflict.first_thread}`: {conflict.first.statement} "
                    f"({conflict.first.source}, {conflict.first.source_type})"
                )
                output.append(
                    f"- `{conflict.second_thread}`: {conflict.second.statement} "
                    f"({conflict.second.source}, {conflict.second.source_type})"
                )
                output.append(f"- {conflict.resolution()}\n")
        else:
            output.append("No conflicting claims were found across threads.\n")

        output.append("## Recommendations\n")
        recommendations = self._recommendations(findings)
        if recommendations:
            for item in recommendations:
                output.append(f"- {item}")
        else:
            output.append("- No further research needed for this question.")

        output.append("\n## Limitations and Gaps\n")
        limitations = self._limitations(findings, gap_condition)
        if limitations:
            for line in limitations:
                output.append(f"- {line}")
        else:
            output.append("- None identified.")

        output.append(f"\n## Sources Consulted ({len(sources)})\n")
        for source in sources:
            output.append(f"- {source}")

        return "\n".join(output)
