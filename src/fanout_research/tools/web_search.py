# src/fanout_research/tools/web_search.py
"""
Web Search Tool with multiple provider support.

Supports:
- Tavily API (recommended - best for AI applications)
- Serper API (good alternative)
- DuckDuckGo (free, no API key needed)

One class serves several capabilities: a tool built with
include_domains=["github.com", ...] behaves as a code-context search, one
scoped to youtube.com as a transcript search.
"""

import os
import asyncio
import logging
from typing import List, Dict, Optional, Literal, Sequence
from dataclasses import dataclass
from urllib.parse import urlparse

import aiohttp

logger = logging.getLogger(__name__)


# Domain suffix -> source type, checked in order. Used by the authority ranking.
SOURCE_TYPE_RULES = [
    (("arxiv.org", "acm.org", "ieee.org", "nature.com", "science.org",
      "springer.com", "sciencedirect.com", ".edu", ".ac.uk"), "academic"),
    ((".gov", ".gov.uk", ".europa.eu", "who.int", "oecd.org"), "government"),
    (("docs.python.org", "readthedocs.io", "developer.mozilla.org",
      "github.com", "pypi.org", "learn.microsoft.com"), "primary"),
    (("reuters.com", "apnews.com", "bbc.co.uk", "bbc.com", "nytimes.com",
      "ft.com", "bloomberg.com", "theverge.com", "techcrunch.com"), "news"),
    (("wikipedia.org", "britannica.com", "investopedia.com"), "reference"),
    (("medium.com", "reddit.com", "stackoverflow.com", "dev.to",
      "quora.com", "substack.com", "youtube.com"), "community"),
]


def _domain_matches(domain: str, pattern: str) -> bool:
    if pattern.startswith("."):
        return domain.endswith(pattern)
    return domain == pattern or domain.endswith("." + pattern)


def classify_source(domain: str) -> str:
    """Map a domain to a coarse source type ("unknown" when nothing matches)."""
    domain = (domain or "").lower()
    if not domain:
        return "unknown"
    if domain.startswith("docs.") or domain.startswith("developer."):
        return "primary"
    for patterns, source_type in SOURCE_TYPE_RULES:
        if any(_domain_matches(domain, pattern) for pattern in patterns):
            return source_type
    return "unknown"


@dataclass
class SearchResult:
    """Structured search result."""
    title: str
    url: str
    snippet: str
    source: str  # Domain name
    published_date: Optional[str] = None
    relevance_score: Optional[float] = None
    source_type: str = "unknown"

    def __post_init__(self):
        if self.source_type == "unknown" and self.source:
            self.source_type = classify_source(self.source)

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "source": self.source,
            "published_date": self.published_date,
            "relevance_score": self.relevance_score,
            "source_type": self.source_type
        }


class WebSearchTool:
    """
    Multi-provider web search tool.

    Usage:
        search_tool = WebSearchTool(provider="tavily", api_key="your_key")
        results = await search_tool.search("quantum computing", num_results=5)
    """

    def __init__(
        self,
        provider: Literal["tavily", "serper", "duckduckgo"] = "tavily",
        api_key: Optional[str] = None,
        timeout: int = 10,
        num_results: int = 5,
        search_depth: Literal["basic", "advanced"] = "basic",
        include_domains: Optional[Sequence[str]] = None,
        description: str = "Search the web"
    ):
        self.provider = provider
        self.api_key = api_key or os.getenv(f"{provider.upper()}_API_KEY")
        self.timeout = timeout
        self.num_results = num_results
        self.search_depth = search_depth
        self.include_domains = list(include_domains) if include_domains else None
        self.description = description

        # Validate API key for paid providers
        if provider in ["tavily", "serper"] and not self.api_key:
            raise ValueError(
                f"{provider} requires an API key. "
                f"Set {provider.upper()}_API_KEY environment variable."
            )

        logger.info(f"Initialized WebSearchTool with provider: {provider}")

    async def search(
        self,
        query: str,
        num_results: Optional[int] = None,
        search_depth: Optional[Literal["basic", "advanced"]] = None,
        include_domains: Optional[List[str]] = None,
        exclude_domains: Optional[List[str]] = None
    ) -> List[SearchResult]:
        """
        Search the web for a query.

        Args:
            query: Search query string
            num_results: Number of results to return (tool default if omitted)
            search_depth: "basic" for faster results, "advanced" for more comprehensive
            include_domains: Only search these domains (e.g., ["wikipedia.org"])
            exclude_domains: Exclude these domains

        Returns:
            List of SearchResult objects
        """
        num_results = num_results or self.num_results
        search_depth = search_depth or self.search_depth
        include_domains = include_domains or self.include_domains

        logger.info(f"Searching for: '{query}' (provider: {self.provider})")

        try:
            if self.provider == "tavily":
                return await self._search_tavily(
                    query, num_results, search_depth, include_domains, exclude_domains
                )
            elif self.provider == "serper":
                return await self._search_serper(
                    query, num_results, include_domains, exclude_domains
                )
            elif self.provider == "duckduckgo":
                return await self._search_duckduckgo(query, num_results, include_domains)
            else:
                raise ValueError(f"Unknown provider: {self.provider}")

        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise

    async def _search_tavily(
        self,
        query: str,
        num_results: int,
        search_depth: str,
        include_domains: Optional[List[str]],
        exclude_domains: Optional[List[str]]
    ) -> List[SearchResult]:
        """Search using Tavily API."""
        url = "https://api.tavily.com/search"

        payload = {
            "api_key": self.api_key,
            "query": query,
            "max_results": num_results,
            "search_depth": search_depth,
            "include_answer": False,
            "include_raw_content": False,  # Workers only keep snippets
        }

        if include_domains:
            payload["include_domains"] = include_domains
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                response.raise_for_status()
                data = await response.json()

        results = []
        for item in data.get("results", []):
            results.append(SearchResult(
                title=item.get("title", ""),
                url=item.get("url", ""),
                snippet=item.get("content", ""),
                source=self._extract_domain(item.get("url", "")),
                published_date=item.get("published_date"),
                relevance_score=item.get("score")
            ))

        logger.info(f"Tavily returned {len(results)} results")
        return results

    async def _search_serper(
        self,
        query: str,
        num_results: int,
        include_domains: Optional[List[str]],
        exclude_domains: Optional[List[str]]
    ) -> List[SearchResult]:
        """Search using Serper API."""
        url = "https://google.serper.dev/search"

        headers = {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json"
        }

        payload = {
            "q": self._scoped_query(query, include_domains, exclude_domains),
            "num": num_results
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url,
                headers=headers,
                json=payload,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                response.raise_for_status()
                data = await response.json()

        results = []
        for item in data.get("organic", []):
            results.append(SearchResult(
                title=item.get("title", ""),
                url=item.get("link", ""),
                snippet=item.get("snippet", ""),
                source=self._extract_domain(item.get("link", "")),
                published_date=item.get("date"),
                relevance_score=None  # Serper doesn't provide scores
            ))

        logger.info(f"Serper returned {len(results)} results")
        return results

    async def _search_duckduckgo(
        self,
        query: str,
        num_results: int,
        include_domains: Optional[List[str]] = None
    ) -> List[SearchResult]:
        """
        Search using DuckDuckGo (free, no API key).
        Uses duckduckgo-search library.
        """
        from duckduckgo_search import DDGS

        scoped = self._scoped_query(query, include_domains, None)
        # DDGS is synchronous; keep it off the event loop so callers can time out
        raw_results = await asyncio.to_thread(
            lambda: DDGS().text(scoped, max_results=num_results)
        ) or []

        results = []
        for item in raw_results:
            results.append(SearchResult(
                title=item.get("title", ""),
                url=item.get("href", ""),
                snippet=item.get("body", ""),
                source=self._extract_domain(item.get("href", "")),
                published_date=None,
                relevance_score=None
            ))

        logger.info(f"DuckDuckGo returned {len(results)} results")
        return results

    @staticmethod
    def _scoped_query(
        query: str,
        include_domains: Optional[List[str]],
        exclude_domains: Optional[List[str]]
    ) -> str:
        """Build a query with site: filters for providers without domain parameters."""
        modified_query = query
        if include_domains:
            site_queries = " OR ".join([f"site:{domain}" for domain in include_domains])
            modified_query = f"{query} ({site_queries})"
        if exclude_domains:
            exclude_queries = " ".join([f"-site:{domain}" for domain in exclude_domains])
            modified_query = f"{modified_query} {exclude_queries}"
        return modified_query

    @staticmethod
    def _extract_domain(url: str) -> str:
        """Extract domain from URL."""
        try:
            parsed = urlparse(url)
            domain = parsed.netloc
            # Remove www. prefix
            if domain.startswith("www."):
                domain = domain[4:]
            return domain
        except ValueError:
            return ""

    def format_results(self, results: List[SearchResult]) -> str:
        """
        Format search results as a string for logs and debugging.

        Returns:
            Formatted string with numbered results
        """
        if not results:
            return "No results found."

        formatted = []
        for i, result in enumerate(results, 1):
            formatted.append(
                f"[{i}] {result.title}\n"
                f"    Source: {result.source} ({result.source_type})\n"
                f"    URL: {result.url}\n"
                f"    Snippet: {result.snippet}\n"
            )

        return "\n".join(formatted)

    def get_metadata(self, results: List[SearchResult]) -> Dict:
        """
        Extract metadata from search results.

        Returns:
            Dict with statistics about the results
        """
        if not results:
            return {
                "total_results": 0,
                "unique_sources": 0,
                "sources": []
            }

        sources = [r.source for r in results if r.source]

        return {
            "total_results": len(results),
            "unique_sources": len(set(sources)),
            "sources": sorted(set(sources)),
            "has_published_dates": any(r.published_date for r in results),
            "has_relevance_scores": any(r.relevance_score for r in results)
        }
