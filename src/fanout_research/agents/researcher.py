"""
Research Worker - Researches one thread and reports a single Finding.

Each worker:
1. Searches its thread's primary capability
2. Evaluates whether the evidence is comprehensive
3. Deepens with follow-up queries (rotating fallback capabilities) when it is not
4. Finalizes: writes exactly one Finding under its own thread id

Raw search results stay inside the worker. Only curated Claims leave it.
"""

import re
import asyncio
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .base_agent import Agent
from .planner import ThreadSpec
from ..config import ResearchConfig
from ..errors import WorkerFailure

logger = logging.getLogger(__name__)


NEGATION_TERMS = frozenset({
    "not", "no", "never", "none", "cannot", "can't", "isn't", "aren't",
    "doesn't", "don't", "won't", "wasn't", "weren't", "without", "neither",
    "nor", "lacks", "false", "unsupported",
})

STOPWORDS = frozenset({
    "a", "an", "the", "of", "to", "in", "on", "for", "and", "or", "with", "by",
    "at", "it", "its", "this", "that", "be", "as", "from", "than", "has", "have",
    "is", "are", "was", "were", "do", "does", "did", "can", "will", "would",
    "should", "could", "may", "might", "been", "being", "which", "who", "what",
    "there", "their", "they", "also", "very", "more", "most",
})

# Higher wins the authority tie-break
AUTHORITY_RANK = {
    "primary": 6,
    "academic": 5,
    "government": 4,
    "news": 3,
    "reference": 2,
    "community": 1,
    "unknown": 0,
}

CONFLICT_OVERLAP = 0.5
MAX_STATEMENT_CHARS = 300


def _words(text: str) -> List[str]:
    return re.findall(r"[a-z0-9']+", (text or "").lower())


def normalize_topic(text: str) -> str:
    """Canonical key for a sub-question: lowercase words, single spaces."""
    return " ".join(_words(text))


def polarity(statement: str) -> bool:
    """True for an affirmative statement, False when negated an odd number of times."""
    negations = sum(1 for word in _words(statement) if word in NEGATION_TERMS)
    return negations % 2 == 0


def core_terms(statement: str) -> Set[str]:
    return {w for w in _words(statement) if w not in STOPWORDS and w not in NEGATION_TERMS}


def authority_rank(source_type: str) -> int:
    return AUTHORITY_RANK.get(source_type or "unknown", 0)


def first_sentence(text: str, limit: int = MAX_STATEMENT_CHARS) -> str:
    text = re.sub(r"\s+", " ", (text or "").strip())
    sentence = re.split(r"(?<=[.!?])\s+", text, maxsplit=1)[0]
    if len(sentence) > limit:
        sentence = sentence[:limit].rsplit(" ", 1)[0] + "..."
    return sentence


@dataclass
class Claim:
    """One assertion, tied to the sub-question it answers and where it came from."""
    topic: str
    statement: str
    source: str
    url: str = ""
    source_type: str = "unknown"

    @property
    def topic_key(self) -> str:
        return normalize_topic(self.topic)

    def to_dict(self) -> dict:
        return {
            "topic": self.topic,
            "statement": self.statement,
            "source": self.source,
            "url": self.url,
            "source_type": self.source_type
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Claim":
        return cls(
            topic=data["topic"],
            statement=data["statement"],
            source=data.get("source", ""),
            url=data.get("url", ""),
            source_type=data.get("source_type", "unknown")
        )


def claims_contradict(a: Claim, b: Claim) -> bool:
    """Opposite polarity about substantially the same terms, whatever question they answer."""
    if polarity(a.statement) == polarity(b.statement):
        return False

    terms_a = core_terms(a.statement)
    terms_b = core_terms(b.statement)
    if not terms_a or not terms_b:
        return False

    overlap = len(terms_a & terms_b) / len(terms_a | terms_b)
    return overlap >= CONFLICT_OVERLAP


def claims_conflict(a: Claim, b: Claim) -> bool:
    """Two claims conflict when they answer the same sub-question and contradict."""
    return a.topic_key == b.topic_key and claims_contradict(a, b)


def find_conflicts(claims: List[Claim]) -> List[Tuple[Claim, Claim]]:
    """All conflicting pairs, in input order."""
    pairs = []
    for i, first in enumerate(claims):
        for second in claims[i + 1:]:
            if claims_conflict(first, second):
                pairs.append((first, second))
    return pairs


@dataclass
class Finding:
    """The single artifact a worker produces for its thread."""
    thread_id: str
    summary: str
    findings: List[Claim] = field(default_factory=list)
    sources_consulted: List[str] = field(default_factory=list)
    gaps: List[str] = field(default_factory=list)
    suggested_follow_ups: List[str] = field(default_factory=list)
    iterations: int = 0
    complete: bool = False
    capabilities_used: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "thread_id": self.thread_id,
            "summary": self.summary,
            "findings": [c.to_dict() for c in self.findings],
            "sources_consulted": self.sources_consulted,
            "gaps": self.gaps,
            "suggested_follow_ups": self.suggested_follow_ups,
            "iterations": self.iterations,
            "complete": self.complete,
            "capabilities_used": self.capabilities_used
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Finding":
        return cls(
            thread_id=data["thread_id"],
            summary=data.get("summary", ""),
            findings=[Claim.from_dict(c) for c in data.get("findings", [])],
            sources_consulted=list(data.get("sources_consulted", [])),
            gaps=list(data.get("gaps", [])),
            suggested_follow_ups=list(data.get("suggested_follow_ups", [])),
            iterations=int(data.get("iterations", 0)),
            complete=bool(data.get("complete", False)),
            capabilities_used=list(data.get("capabilities_used", []))
        )


class WorkerState(Enum):
    SEARCHING = "searching"
    EVALUATING = "evaluating"
    DEEPENING = "deepening"
    FINALIZING = "finalizing"
    DONE = "done"


class ResearchWorker(Agent):
    """
    Isolated worker for one ThreadSpec.

    The worker's only side effect is writer.write(finding) for its own thread.
    It never sees other threads' keys and never returns raw results.

    Usage:
        worker = ResearchWorker(thread, tools, store.writer(thread.id), config)
        finding = await worker.run()
    """

    def __init__(
        self,
        thread: ThreadSpec,
        tools: Dict[str, Any],
        writer: Any,
        config: Optional[ResearchConfig] = None
    ):
        super().__init__(
            name=f"Worker[{thread.id}]",
            role=f"Research: {thread.focus}"
        )
        self.thread = thread
        self.writer = writer
        self.config = config or ResearchConfig()

        for capability in (thread.primary_capability,) + tuple(thread.fallback_capabilities):
            if capability in tools:
                self.register_tool(capability, tools[capability])

        self.state = WorkerState.SEARCHING
        self.history: List[WorkerState] = []
        self.rounds_used = 0

        self._claims: List[Claim] = []
        self._sources: List[str] = []
        self._failures: List[str] = []
        self._follow_ups: List[str] = []
        self._capabilities_used: List[str] = []
        self._complete = False
        self._lead_topic: Optional[str] = None

    async def run(self) -> Finding:
        """Drive the state machine to DONE and return the Finding that was written."""
        logger.info(f"{self.name}: Starting research on: {self.thread.focus}")
        finding = None

        while True:
            self.history.append(self.state)

            if self.state == WorkerState.SEARCHING:
                question = self.thread.questions[0] if self.thread.questions else self.thread.focus
                self.state = await self._query(self.thread.primary_capability, question)

            elif self.state == WorkerState.EVALUATING:
                self.state = self._evaluate()

            elif self.state == WorkerState.DEEPENING:
                self.rounds_used += 1
                capability, query = self._next_lead()
                self.state = await self._query(capability, query, topic=self._lead_topic)

            elif self.state == WorkerState.FINALIZING:
                finding = self._compose_finding()
                self.writer.write(finding)
                self.state = WorkerState.DONE

            elif self.state == WorkerState.DONE:
                break

        logger.info(
            f"{self.name}: Done after {self.rounds_used} deepening rounds "
            f"({len(finding.findings)} claims, {len(finding.gaps)} gaps)"
        )
        return finding

    async def _query(self, capability: str, question: str, topic: Optional[str] = None) -> WorkerState:
        """Run one search step; EVALUATING on success, FINALIZING when retries are exhausted."""
        query = self._compose_query(question)
        try:
            results = await self._call_capability(capability, query)
        except WorkerFailure as e:
            logger.warning(f"{self.name}: {e.reason}")
            self._failures.append(e.reason)
            self._follow_ups.append(f"Retry with a different source: {query}")
            return WorkerState.FINALIZING

        if capability not in self._capabilities_used:
            self._capabilities_used.append(capability)
        self._absorb(results, topic or question)
        return WorkerState.EVALUATING

    async def _call_capability(self, capability: str, query: str) -> List[Any]:
        """Call-and-await with a bounded number of retries."""
        attempts = self.config.max_retries + 1
        last_error = None

        for attempt in range(attempts):
            try:
                results = await self.execute_tool(capability, query=query)
                return list(results or [])
            except Exception as e:
                last_error = e
                logger.warning(
                    f"{self.name}: {capability} attempt {attempt + 1}/{attempts} failed: {e}"
                )
                if attempt < attempts - 1 and self.config.retry_delay_seconds > 0:
                    await asyncio.sleep(self.config.retry_delay_seconds * (attempt + 1))

        raise WorkerFailure(
            self.thread.id,
            f"{capability} failed after {attempts} attempts: {last_error}",
            capability
        )

    def _compose_query(self, question: str) -> str:
        subject = self.thread.focus.split(":")[0].strip()
        if subject and subject.lower() not in question.lower():
            return f"{subject} {question}"
        return question

    def _absorb(self, results: List[Any], topic: str) -> None:
        """Turn raw results into claims and drop the raw results."""
        known = {(c.topic_key, c.statement) for c in self._claims}
        for result in results:
            statement = first_sentence(getattr(result, "snippet", ""))
            if not statement:
                continue

            url = getattr(result, "url", "")
            source = getattr(result, "source", "") or url
            claim = Claim(
                topic=topic,
                statement=statement,
                source=source,
                url=url,
                source_type=getattr(result, "source_type", "unknown") or "unknown"
            )

            # A repeated statement still counts as corroboration from its source
            if source and source not in self._sources:
                self._sources.append(source)

            if (claim.topic_key, claim.statement) in known:
                continue
            known.add((claim.topic_key, claim.statement))
            self._claims.append(claim)

    def _unanswered(self) -> List[str]:
        answered = {c.topic_key for c in self._claims}
        return [q for q in self.thread.questions if normalize_topic(q) not in answered]

    def _evaluate(self) -> WorkerState:
        """Completeness heuristic for the evidence gathered so far."""
        unanswered = self._unanswered()
        conflicts = find_conflicts(self._claims)
        thin = len(self._sources) < self.config.min_sources

        if not unanswered and not conflicts and not thin:
            self._complete = True
            return WorkerState.FINALIZING

        if self.rounds_used < self.config.max_deepening_rounds:
            logger.debug(
                f"{self.name}: Deepening (unanswered={len(unanswered)}, "
                f"conflicts={len(conflicts)}, sources={len(self._sources)})"
            )
            return WorkerState.DEEPENING

        return WorkerState.FINALIZING

    def _next_lead(self) -> Tuple[str, str]:
        """Pick the capability and query for the next deepening round."""
        chain = [self.thread.primary_capability] + [
            c for c in self.thread.fallback_capabilities if self.has_tool(c)
        ]
        capability = chain[self.rounds_used % len(chain)]

        unanswered = self._unanswered()
        conflicts = find_conflicts(self._claims)

        if unanswered:
            self._lead_topic = unanswered[0]
            query = unanswered[0]
        elif conflicts:
            self._lead_topic = conflicts[0][0].topic
            query = f"{conflicts[0][0].topic} evidence"
        else:
            counts = {}
            for claim in self._claims:
                counts[claim.topic_key] = counts.get(claim.topic_key, 0) + 1
            self._lead_topic = min(
                self.thread.questions,
                key=lambda q: counts.get(normalize_topic(q), 0)
            ) if self.thread.questions else self.thread.focus
            query = f"{self._lead_topic} sources"

        return capability, query

    def _compose_finding(self) -> Finding:
        gaps = list(self._failures)
        follow_ups = list(self._follow_ups)

        for question in self._unanswered():
            gaps.append(f"Unanswered: {question}")
            follow_ups.append(question)

        if len(self._sources) < self.config.min_sources:
            gaps.append(
                f"Only {len(self._sources)} distinct sources "
                f"(wanted {self.config.min_sources})"
            )

        for first, second in find_conflicts(self._claims):
            gaps.append(f"Conflicting claims on: {first.topic}")
            follow_ups.append(f"Find a primary source settling: {first.topic}")

        if self._claims:
            lead = " ".join(c.statement for c in self._claims[:2])
            summary = (
                f"{self.thread.focus}: {len(self._claims)} claims from "
                f"{len(self._sources)} sources. {lead}"
            )
        else:
            summary = f"{self.thread.focus}: no evidence gathered."

        return Finding(
            thread_id=self.thread.id,
            summary=summary,
            findings=list(self._claims),
            sources_consulted=list(self._sources),
            gaps=gaps,
            suggested_follow_ups=list(dict.fromkeys(follow_ups)),
            iterations=self.rounds_used,
            complete=self._complete and not gaps,
            capabilities_used=list(self._capabilities_used)
        )
