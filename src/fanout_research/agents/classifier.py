"""
Query Classifier - Decides what kind of query this is and how many workers it gets.

Rules, in priority order:
1. Query type from vocabulary: technical terms -> Technical, market/trend/
   concept/comparison terms -> Domain, both -> Hybrid, neither -> Domain.
2. Complexity from a scope score (extra facets, comparison, cross-domain,
   broad-scope terms).
3. Worker count from the complexity tier, biased to the lower bound.
4. Format hint: Brief for Simple queries, Report otherwise.

Classification is a pure function of the query text and the capability table.
"""

import re
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..errors import ClassificationError
from ..tools.capabilities import CapabilityTable

logger = logging.getLogger(__name__)

MIN_WORKERS = 2
MAX_WORKERS = 6


class QueryType(Enum):
    TECHNICAL = "technical"
    DOMAIN = "domain"
    HYBRID = "hybrid"


class Complexity(Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class OutputFormat(Enum):
    BRIEF = "brief"
    REPORT = "report"


WORKER_RANGES: Dict[Complexity, Tuple[int, int]] = {
    Complexity.SIMPLE: (2, 3),
    Complexity.MODERATE: (3, 4),
    Complexity.COMPLEX: (5, 6),
}

TECHNICAL_TERMS = frozenset({
    "api", "apis", "sdk", "library", "libraries", "code", "coding", "function",
    "functions", "framework", "frameworks", "architecture", "architectures",
    "architectural", "database", "databases", "algorithm", "algorithms",
    "compiler", "runtime", "python", "javascript", "typescript", "rust", "golang",
    "java", "kubernetes", "docker", "microservice", "microservices", "backend",
    "frontend", "server", "protocol", "implementation", "implement", "endpoint",
    "async", "concurrency", "latency", "cache", "caching", "orm", "sql",
    "graphql", "rest", "http", "cli", "deployment", "debugging", "bug",
    "react", "django", "fastapi", "flask", "redis", "postgres", "postgresql",
    "kafka", "compile", "thread", "threads", "gpu", "cpu", "chip", "chips",
})

DOMAIN_TERMS = frozenset({
    "market", "markets", "trend", "trends", "concept", "concepts", "comparison",
    "compare", "comparing", "versus", "vs", "industry", "industries", "adoption",
    "business", "strategy", "economics", "economy", "history", "impact",
    "pricing", "customers", "regulation", "policy", "society", "ethics",
    "investment", "competitors", "competition", "landscape", "growth",
    "opportunity", "demand", "consumer", "consumers", "benefits", "drawbacks",
    "pros", "cons", "revenue", "workforce", "employment",
})

COMPARISON_TERMS = frozenset({
    "compare", "comparing", "comparison", "versus", "vs", "difference",
    "differences", "alternatives", "tradeoffs", "trade-offs", "better",
})

BROAD_SCOPE_TERMS = frozenset({
    "ecosystem", "landscape", "comprehensive", "end-to-end", "across",
    "future", "predict", "evolution", "overall", "holistic", "implications",
    "strategy", "roadmap",
})

FACET_SPLIT = re.compile(r",|;|\?|\band\b|\bor\b|\bvs\.?(?=\s|$)|\bversus\b", re.IGNORECASE)
TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9+#.\-]*")


def tokenize(text: str) -> List[str]:
    """Lowercased word tokens with trailing punctuation removed."""
    return [t.rstrip(".-") for t in TOKEN_PATTERN.findall(text.lower()) if t.rstrip(".-")]


def split_facets(query: str) -> List[str]:
    """Split a query into its independent parts (at least one)."""
    parts = [p.strip(" .!") for p in FACET_SPLIT.split(query)]
    facets = [p for p in parts if tokenize(p)]
    return facets or [query.strip()]


@dataclass(frozen=True)
class Classification:
    """Immutable classification of one query; created once per run."""
    query: str
    query_type: QueryType
    complexity: Complexity
    worker_count: int
    format_hint: OutputFormat
    signals: Tuple[str, ...] = field(default_factory=tuple)
    score: int = 0

    def __post_init__(self):
        low, high = WORKER_RANGES[self.complexity]
        if not low <= self.worker_count <= high:
            raise ValueError(
                f"worker_count {self.worker_count} outside {low}-{high} "
                f"for {self.complexity.value} query"
            )

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "query_type": self.query_type.value,
            "complexity": self.complexity.value,
            "worker_count": self.worker_count,
            "format_hint": self.format_hint.value,
            "signals": list(self.signals),
            "score": self.score
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Classification":
        return cls(
            query=data["query"],
            query_type=QueryType(data["query_type"]),
            complexity=Complexity(data["complexity"]),
            worker_count=int(data["worker_count"]),
            format_hint=OutputFormat(data["format_hint"]),
            signals=tuple(data.get("signals", ())),
            score=int(data.get("score", 0))
        )


class QueryClassifier:
    """
    Deterministic classifier for research queries.

    Usage:
        classification = QueryClassifier().classify("What is Redis?")
    """

    def __init__(self, capability_table: Optional[CapabilityTable] = None):
        self.capability_table = capability_table or CapabilityTable()

    def classify(self, query: str) -> Classification:
        """
        Classify a raw query.

        Raises:
            ClassificationError: if the query is not a string or has no words
        """
        if not isinstance(query, str):
            raise ClassificationError(f"Query must be a string, got {type(query).__name__}")

        query = query.strip()
        tokens = tokenize(query)
        if not tokens:
            raise ClassificationError("Query is empty or contains no words")

        query_type = self._detect_query_type(tokens)
        score = self._scope_score(query, tokens, query_type)
        complexity = self._complexity_for(score)
        signals = tuple(self.capability_table.detect_signals(query))
        worker_count = self._worker_count(complexity, score, signals)
        format_hint = OutputFormat.BRIEF if complexity == Complexity.SIMPLE else OutputFormat.REPORT

        classification = Classification(
            query=query,
            query_type=query_type,
            complexity=complexity,
            worker_count=worker_count,
            format_hint=format_hint,
            signals=signals,
            score=score
        )

        logger.info(
            f"Classified query: type={query_type.value}, "
            f"complexity={complexity.value}, workers={worker_count}, score={score}"
        )
        return classification

    @staticmethod
    def _detect_query_type(tokens: List[str]) -> QueryType:
        words = set(tokens)
        technical = bool(words & TECHNICAL_TERMS)
        domain = bool(words & DOMAIN_TERMS)

        if technical and domain:
            return QueryType.HYBRID
        if technical:
            return QueryType.TECHNICAL
        return QueryType.DOMAIN

    @staticmethod
    def _scope_score(query: str, tokens: List[str], query_type: QueryType) -> int:
        """
        Score the breadth of a query.

        extra facets + comparison (1) + cross-domain (1) + broad-scope terms (max 2)
        """
        words = set(tokens)
        extra_facets = len(split_facets(query)) - 1
        comparison = 1 if words & COMPARISON_TERMS else 0
        cross_domain = 1 if query_type == QueryType.HYBRID else 0
        broad = min(2, len(words & BROAD_SCOPE_TERMS))
        return extra_facets + comparison + cross_domain + broad

    @staticmethod
    def _complexity_for(score: int) -> Complexity:
        if score == 0:
            return Complexity.SIMPLE
        if score <= 3:
            return Complexity.MODERATE
        return Complexity.COMPLEX

    @staticmethod
    def _worker_count(complexity: Complexity, score: int, signals: Tuple[str, ...]) -> int:
        """Lower bound of the tier unless the signals clearly ask for more."""
        low, high = WORKER_RANGES[complexity]

        if complexity == Complexity.SIMPLE:
            strong = len(signals) >= 2
        elif complexity == Complexity.MODERATE:
            strong = score >= 3
        else:
            strong = score >= 7

        return high if strong else low


def classify_query(query: str) -> Classification:
    """Classify with the default capability table."""
    return QueryClassifier().classify(query)
