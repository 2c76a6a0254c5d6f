"""
Planner Agent - Breaks a classified query into independent research threads.

This agent:
1. Splits the query into facets
2. Fills the remaining slots with research angles for the query type
3. Assigns each thread a primary capability from the capability table
4. Clamps overflow by merging extra facets into existing threads

The plan is deterministic: the same Classification always yields the same
threads, and no thread depends on another.
"""

import re
import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

from .base_agent import Agent
from .classifier import Classification, QueryType, MAX_WORKERS, split_facets
from ..errors import PlanOverflowCondition
from ..tools.capabilities import CapabilityTable

logger = logging.getLogger(__name__)


TECHNICAL_ANGLES: List[Tuple[str, Tuple[str, ...]]] = [
    ("core concepts and architecture", (
        "How does {subject} work internally?",
        "What are the core components of {subject}?",
    )),
    ("API and implementation details", (
        "What does the {subject} API look like in practice?",
        "What are common implementation patterns for {subject}?",
    )),
    ("performance and limitations", (
        "What are the known performance characteristics of {subject}?",
        "What are the main limitations of {subject}?",
    )),
    ("ecosystem and tooling", (
        "Which tools and libraries surround {subject}?",
        "How mature is the ecosystem around {subject}?",
    )),
    ("real-world usage", (
        "Who uses {subject} in production and for what?",
        "What lessons have teams reported from adopting {subject}?",
    )),
    ("recent changes and roadmap", (
        "What changed recently in {subject}?",
        "What is planned next for {subject}?",
    )),
]

DOMAIN_ANGLES: List[Tuple[str, Tuple[str, ...]]] = [
    ("definitions and background", (
        "What is {subject} and where did it come from?",
        "Which key terms are needed to understand {subject}?",
    )),
    ("current state and key players", (
        "What is the current state of {subject}?",
        "Who are the main players involved in {subject}?",
    )),
    ("trends and recent developments", (
        "What are the latest developments in {subject}?",
        "Which trends are shaping {subject}?",
    )),
    ("comparisons and alternatives", (
        "How does {subject} compare with its alternatives?",
        "Where do experts disagree about {subject}?",
    )),
    ("risks and criticisms", (
        "What are the main risks of {subject}?",
        "What criticisms have been raised about {subject}?",
    )),
    ("outlook and recommendations", (
        "What is the outlook for {subject}?",
        "What do practitioners recommend regarding {subject}?",
    )),
]

LEADING_INTERROGATIVE = re.compile(
    r"^(what|how|why|when|where|which|who)\s+(is|are|does|do|did|was|were|can|should|would)\s+"
    r"(the\s+|a\s+|an\s+)?",
    re.IGNORECASE
)
LEADING_VERB = re.compile(
    r"^(compare|analy[sz]e|explain|describe|summari[sz]e|research|investigate|evaluate)\s+(the\s+)?",
    re.IGNORECASE
)


def extract_subject(text: str, max_chars: int = 80) -> str:
    """Strip question scaffolding so the text reads as a noun phrase."""
    subject = text.strip().rstrip("?.! ")
    subject = LEADING_INTERROGATIVE.sub("", subject)
    subject = LEADING_VERB.sub("", subject)
    subject = subject.strip() or text.strip()
    if len(subject) > max_chars:
        subject = subject[:max_chars].rsplit(" ", 1)[0]
    return subject


def slugify(text: str, max_words: int = 4) -> str:
    words = re.findall(r"[a-z0-9]+", text.lower())
    return "-".join(words[:max_words]) or "thread"


def as_question(text: str) -> str:
    text = text.strip().rstrip(".! ")
    if not text.endswith("?"):
        text += "?"
    return text[0].upper() + text[1:]


@dataclass(frozen=True)
class ThreadSpec:
    """One independently researchable sub-task. Read-only once planned."""
    id: str
    focus: str
    primary_capability: str
    questions: Tuple[str, ...]
    fallback_capabilities: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "focus": self.focus,
            "primary_capability": self.primary_capability,
            "questions": list(self.questions),
            "fallback_capabilities": list(self.fallback_capabilities)
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ThreadSpec":
        return cls(
            id=data["id"],
            focus=data["focus"],
            primary_capability=data["primary_capability"],
            questions=tuple(data.get("questions", ())),
            fallback_capabilities=tuple(data.get("fallback_capabilities", ()))
        )


@dataclass
class ResearchPlan:
    """Complete research plan: the classification plus its threads, in order."""
    query: str
    classification: Classification
    threads: List[ThreadSpec]
    overflow: Optional[PlanOverflowCondition] = None

    @property
    def thread_ids(self) -> List[str]:
        return [t.id for t in self.threads]

    def get_thread(self, thread_id: str) -> Optional[ThreadSpec]:
        for thread in self.threads:
            if thread.id == thread_id:
                return thread
        return None

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "classification": self.classification.to_dict(),
            "threads": [t.to_dict() for t in self.threads],
            "overflow": self.overflow.to_dict() if self.overflow else None
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ResearchPlan":
        overflow = data.get("overflow")
        return cls(
            query=data["query"],
            classification=Classification.from_dict(data["classification"]),
            threads=[ThreadSpec.from_dict(t) for t in data.get("threads", [])],
            overflow=PlanOverflowCondition.from_dict(overflow) if overflow else None
        )


@dataclass
class _Draft:
    """Mutable thread under construction; frozen into a ThreadSpec at the end."""
    focus: str
    questions: List[str]


class PlannerAgent(Agent):
    """
    Specialized agent for query decomposition.

    Capabilities:
    - Facet extraction
    - Angle selection per query type
    - Capability assignment
    - Overflow clamping
    """

    def __init__(self, capability_table: Optional[CapabilityTable] = None):
        super().__init__(
            name="Planner",
            role="Decompose a classified query into independent research threads"
        )
        self.capability_table = capability_table or CapabilityTable()

    def plan(self, classification: Classification) -> ResearchPlan:
        """
        Create a research plan for a classified query.

        Args:
            classification: Output of the query classifier

        Returns:
            ResearchPlan with exactly classification.worker_count threads
        """
        query = classification.query
        worker_count = classification.worker_count
        logger.info(f"Planning research for: {query} ({worker_count} threads)")

        facets = split_facets(query)
        drafts: List[_Draft] = []
        overflow = None

        if len(facets) > 1:
            for facet in facets[:worker_count]:
                drafts.append(self._facet_draft(facet))

            extra = facets[worker_count:]
            if extra:
                overflow = self._merge_overflow(drafts, extra, len(facets), worker_count)

        subject = extract_subject(query)
        for focus, questions in self._angles(classification.query_type):
            if len(drafts) >= worker_count:
                break
            drafts.append(_Draft(
                focus=f"{subject}: {focus}",
                questions=[q.format(subject=subject) for q in questions]
            ))

        threads = [self._freeze(i, draft) for i, draft in enumerate(drafts, 1)]

        plan = ResearchPlan(
            query=query,
            classification=classification,
            threads=threads,
            overflow=overflow
        )

        logger.info(
            f"Plan created: {len(threads)} threads, "
            f"capabilities={[t.primary_capability for t in threads]}"
        )
        return plan

    def _facet_draft(self, facet: str) -> _Draft:
        subject = extract_subject(facet)
        return _Draft(
            focus=subject,
            questions=[
                as_question(facet),
                f"What do primary sources say about {subject}?",
                f"What is disputed or uncertain about {subject}?",
            ]
        )

    @staticmethod
    def _merge_overflow(
        drafts: List[_Draft],
        extra: List[str],
        requested: int,
        allowed: int
    ) -> PlanOverflowCondition:
        """Fold facets that did not get a thread into existing ones, round-robin."""
        merged = []
        for i, facet in enumerate(extra):
            question = as_question(facet)
            drafts[i % len(drafts)].questions.append(question)
            merged.append(question)

        condition = PlanOverflowCondition(
            requested=requested,
            allowed=allowed,
            merged_questions=merged,
            exceeded_maximum=requested > MAX_WORKERS
        )
        logger.warning(
            f"Plan overflow: {requested} facets for {allowed} threads, "
            f"merged {len(merged)} questions into existing threads"
        )
        return condition

    @staticmethod
    def _angles(query_type: QueryType) -> List[Tuple[str, Tuple[str, ...]]]:
        if query_type == QueryType.TECHNICAL:
            return list(TECHNICAL_ANGLES)
        if query_type == QueryType.DOMAIN:
            return list(DOMAIN_ANGLES)

        interleaved = []
        for technical, domain in zip(TECHNICAL_ANGLES, DOMAIN_ANGLES):
            interleaved.extend([technical, domain])
        return interleaved

    def _freeze(self, index: int, draft: _Draft) -> ThreadSpec:
        text = " ".join([draft.focus] + draft.questions)
        capability = self.capability_table.select(text)
        return ThreadSpec(
            id=f"t{index}-{slugify(draft.focus)}",
            focus=draft.focus,
            primary_capability=capability,
            questions=tuple(draft.questions),
            fallback_capabilities=self.capability_table.fallbacks_for(capability)
        )

    def format_plan(self, plan: ResearchPlan) -> str:
        """Format plan as readable text."""
        c = plan.classification
        output = []
        output.append(f"# Research Plan: {plan.query}\n")
        output.append(f"**Type:** {c.query_type.value}")
        output.append(f"**Complexity:** {c.complexity.value}")
        output.append(f"**Workers:** {c.worker_count}")
        output.append(f"**Format hint:** {c.format_hint.value}\n")

        output.append("## Threads\n")
        for thread in plan.threads:
            output.append(f"**{thread.id}** [{thread.primary_capability}]")
            output.append(f"- Focus: {thread.focus}")
            for question in thread.questions:
                output.append(f"- Q: {question}")
            output.append("")

        if plan.overflow:
            output.append(
                f"_Overflow: {plan.overflow.requested} facets merged into "
                f"{plan.overflow.allowed} threads_"
            )

        return "\n".join(output)
