"""
Capability gateway: the uniform search interface workers depend on, and the
signal -> capability table the planner consults.

The table is configuration. Hosts can pass their own CapabilityTable and
their own tool mapping; the orchestrator never branches on a backend.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

SEMANTIC_SEARCH = "semantic_search"
CODE_CONTEXT = "code_context"
TRANSCRIPT = "transcript"
LIVE_SEARCH = "live_search"
URL_FETCH = "url_fetch"


@runtime_checkable
class SourceTool(Protocol):
    """Anything with search(query) returning a list of SearchResult (sync or async)."""

    def search(self, query: str) -> Any:
        ...


@dataclass(frozen=True)
class CapabilityRule:
    """One row of the selection table."""
    signal: str
    capability: str
    keywords: Tuple[str, ...] = ()
    pattern: Optional[str] = None

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        if self.pattern and re.search(self.pattern, text):
            return True
        words = set(re.findall(r"[a-z0-9+#.-]+", lowered))
        for keyword in self.keywords:
            if " " in keyword:
                if keyword in lowered:
                    return True
            elif keyword in words:
                return True
        return False


DEFAULT_RULES = (
    CapabilityRule(
        signal="known_url",
        capability=URL_FETCH,
        pattern=r"https?://\S+"
    ),
    CapabilityRule(
        signal="code_api",
        capability=CODE_CONTEXT,
        keywords=("api", "sdk", "library", "code", "function", "method", "class",
                  "endpoint", "implementation", "implement", "snippet", "package",
                  "module", "config", "configuration", "syntax", "error", "bug")
    ),
    CapabilityRule(
        signal="tutorial_video",
        capability=TRANSCRIPT,
        keywords=("tutorial", "video", "walkthrough", "talk", "conference",
                  "keynote", "podcast", "lecture", "demo", "how to")
    ),
    CapabilityRule(
        signal="recent_event",
        capability=LIVE_SEARCH,
        keywords=("latest", "recent", "recently", "today", "this week", "this month",
                  "news", "announced", "release", "released", "breaking", "new",
                  "current", "currently", "2025", "2026")
    ),
)

DEFAULT_FALLBACKS = {
    SEMANTIC_SEARCH: (TRANSCRIPT, LIVE_SEARCH),
    CODE_CONTEXT: (SEMANTIC_SEARCH, LIVE_SEARCH),
    TRANSCRIPT: (SEMANTIC_SEARCH, LIVE_SEARCH),
    LIVE_SEARCH: (SEMANTIC_SEARCH,),
    URL_FETCH: (SEMANTIC_SEARCH,),
}


@dataclass
class CapabilityTable:
    """
    Ordered signal -> capability rules; the first matching rule wins.

    Text with no matching signal is treated as conceptual/opinion material and
    goes to the default capability.
    """
    rules: Sequence[CapabilityRule] = DEFAULT_RULES
    default: str = SEMANTIC_SEARCH
    fallbacks: Dict[str, Tuple[str, ...]] = field(
        default_factory=lambda: dict(DEFAULT_FALLBACKS)
    )

    def detect_signals(self, text: str) -> List[str]:
        """All signals present in the text, in table order."""
        return [rule.signal for rule in self.rules if rule.matches(text)]

    def select(self, text: str) -> str:
        for rule in self.rules:
            if rule.matches(text):
                return rule.capability
        return self.default

    def fallbacks_for(self, capability: str) -> Tuple[str, ...]:
        return tuple(c for c in self.fallbacks.get(capability, ()) if c != capability)

    @property
    def capabilities(self) -> List[str]:
        names = [self.default]
        for rule in self.rules:
            if rule.capability not in names:
                names.append(rule.capability)
        return names


def build_default_tools(config) -> Dict[str, Any]:
    """
    Wire one backend per capability from the run configuration.

    Args:
        config: ResearchConfig

    Returns:
        Mapping capability name -> tool exposing search(query)
    """
    from .web_search import WebSearchTool
    from .url_fetch import UrlFetchTool

    provider = config.search_provider
    common = {
        "provider": provider,
        "timeout": config.search_timeout_seconds,
        "num_results": config.results_per_query,
    }

    tools = {
        SEMANTIC_SEARCH: WebSearchTool(
            description="General semantic web search", **common
        ),
        LIVE_SEARCH: WebSearchTool(
            search_depth="advanced",
            description="Live search for recent events",
            **common
        ),
        CODE_CONTEXT: WebSearchTool(
            include_domains=["github.com", "stackoverflow.com", "readthedocs.io",
                             "docs.python.org", "developer.mozilla.org"],
            description="Code and API context search",
            **common
        ),
        TRANSCRIPT: WebSearchTool(
            include_domains=["youtube.com"],
            description="Talks, tutorials and video transcripts",
            **common
        ),
        URL_FETCH: UrlFetchTool(timeout=config.search_timeout_seconds),
    }

    logger.info(f"Built default tools for capabilities: {sorted(tools)}")
    return tools
