"""
Unit tests for WebSearchTool.

Network tests only run when RUN_NETWORK_TESTS is set.

Run with: pytest tests/test_web_search.py -v
"""

import os

import pytest

from fanout_research.tools.web_search import SearchResult, WebSearchTool, classify_source

network = pytest.mark.skipif(
    not os.getenv("RUN_NETWORK_TESTS"),
    reason="RUN_NETWORK_TESTS not set"
)


class FakeDDGS:
    """Replacement for duckduckgo_search.DDGS that records its query."""

    queries = []

    def text(self, query, max_results=5):
        FakeDDGS.queries.append((query, max_results))
        return [
            {"title": "Redis docs", "href": "https://www.redis.io/docs", "body": "Redis is an in-memory store."},
            {"title": "Paper", "href": "https://arxiv.org/abs/1", "body": "A study."},
        ][:max_results]


@pytest.fixture
def fake_ddgs(monkeypatch):
    FakeDDGS.queries = []
    monkeypatch.setattr("duckduckgo_search.DDGS", FakeDDGS)
    return FakeDDGS


class TestWebSearchTool:
    """Test suite for WebSearchTool."""

    def test_initialization_duckduckgo(self, monkeypatch):
        """Test that DuckDuckGo provider works without API key."""
        monkeypatch.delenv("DUCKDUCKGO_API_KEY", raising=False)
        search = WebSearchTool(provider="duckduckgo")
        assert search.provider == "duckduckgo"
        assert search.api_key is None

    def test_initialization_tavily_requires_key(self, monkeypatch):
        """Test that Tavily requires an API key."""
        monkeypatch.delenv("TAVILY_API_KEY", raising=False)
        with pytest.raises(ValueError, match="tavily requires an API key"):
            WebSearchTool(provider="tavily")

    def test_initialization_with_explicit_key(self):
        """Test initialization with explicit API key."""
        search = WebSearchTool(provider="tavily", api_key="test_key")
        assert search.api_key == "test_key"

    def test_extract_domain(self):
        """Test domain extraction from URLs."""
        tool = WebSearchTool(provider="duckduckgo")

        test_cases = [
            ("https://www.example.com/path", "example.com"),
            ("https://example.com", "example.com"),
            ("http://subdomain.example.com/page", "subdomain.example.com"),
            ("", ""),
        ]

        for url, expected_domain in test_cases:
            assert tool._extract_domain(url) == expected_domain

    def test_scoped_query(self):
        """Domain filters become site: operators for providers without domain parameters."""
        scoped = WebSearchTool._scoped_query("asyncio", ["github.com", "docs.python.org"], ["medium.com"])
        assert scoped == "asyncio (site:github.com OR site:docs.python.org) -site:medium.com"
        assert WebSearchTool._scoped_query("asyncio", None, None) == "asyncio"

    def test_format_empty_results(self):
        """Test formatting with no results."""
        search = WebSearchTool(provider="duckduckgo")
        assert search.format_results([]) == "No results found."

    def test_metadata_empty_results(self):
        """Test metadata with no results."""
        search = WebSearchTool(provider="duckduckgo")
        metadata = search.get_metadata([])

        assert metadata["total_results"] == 0
        assert metadata["unique_sources"] == 0
        assert metadata["sources"] == []

    @pytest.mark.asyncio
    async def test_duckduckgo_backend_mapping(self, fake_ddgs):
        """DuckDuckGo rows are mapped to SearchResults with typed sources."""
        search = WebSearchTool(provider="duckduckgo", include_domains=["redis.io"])

        results = await search.search("Redis persistence", num_results=2)

        assert fake_ddgs.queries == [("Redis persistence (site:redis.io)", 2)]
        assert [r.source for r in results] == ["redis.io", "arxiv.org"]
        assert [r.source_type for r in results] == ["unknown", "academic"]
        assert results[0].snippet == "Redis is an in-memory store."

    @pytest.mark.asyncio
    async def test_tool_default_result_count(self, fake_ddgs):
        search = WebSearchTool(provider="duckduckgo", num_results=1)
        results = await search.search("Redis")
        assert len(results) == 1
        assert fake_ddgs.queries[0][1] == 1

    @pytest.mark.asyncio
    async def test_format_and_metadata(self, fake_ddgs):
        search = WebSearchTool(provider="duckduckgo")
        results = await search.search("Redis", num_results=2)

        formatted = search.format_results(results)
        assert "[1] Redis docs" in formatted
        assert "(academic)" in formatted

        metadata = search.get_metadata(results)
        assert metadata["total_results"] == 2
        assert metadata["sources"] == ["arxiv.org", "redis.io"]


class TestSourceTypes:
    """Domain -> source type used by the authority tie-break."""

    @pytest.mark.parametrize("domain,expected", [
        ("arxiv.org", "academic"),
        ("cs.stanford.edu", "academic"),
        ("nist.gov", "government"),
        ("docs.confluent.io", "primary"),
        ("github.com", "primary"),
        ("reuters.com", "news"),
        ("en.wikipedia.org", "reference"),
        ("medium.com", "community"),
        ("example.com", "unknown"),
        ("", "unknown"),
    ])
    def test_classify_source(self, domain, expected):
        assert classify_source(domain) == expected

    def test_suffix_match_needs_a_label_boundary(self):
        assert classify_source("notgithub.com") == "unknown"

    def test_search_result_derives_type(self):
        result = SearchResult(title="t", url="https://nist.gov/x", snippet="s", source="nist.gov")
        assert result.source_type == "government"
        assert result.to_dict()["source_type"] == "government"


@network
class TestLiveProviders:
    """Integration tests against real providers."""

    @pytest.mark.asyncio
    async def test_duckduckgo_search(self):
        """Test actual DuckDuckGo search (integration test)."""
        search = WebSearchTool(provider="duckduckgo")

        results = await search.search(query="Python programming", num_results=3)

        assert 0 < len(results) <= 3
        for result in results:
            assert isinstance(result, SearchResult)
            assert result.title
            assert result.url
            assert result.source

    @pytest.mark.asyncio
    @pytest.mark.skipif(not os.getenv("TAVILY_API_KEY"), reason="TAVILY_API_KEY not set")
    async def test_tavily_search(self):
        """Test Tavily search (requires API key)."""
        search = WebSearchTool(provider="tavily")

        results = await search.search(query="artificial intelligence", num_results=5, search_depth="basic")

        assert 0 < len(results) <= 5
        assert any(r.relevance_score is not None for r in results)

    @pytest.mark.asyncio
    async def test_search_error_handling(self):
        """Test that search surfaces backend errors."""
        search = WebSearchTool(provider="serper", api_key="invalid", timeout=0.001)

        with pytest.raises(Exception):
            await search.search("test", num_results=1)
