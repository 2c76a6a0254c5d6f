"""
Unit tests for the capability table and the URL fetch backend.

Run with: pytest tests/test_capabilities.py -v
"""

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from fanout_research.config import ResearchConfig
from fanout_research.tools.capabilities import (
    CODE_CONTEXT,
    LIVE_SEARCH,
    SEMANTIC_SEARCH,
    TRANSCRIPT,
    URL_FETCH,
    CapabilityRule,
    CapabilityTable,
    SourceTool,
    build_default_tools,
)
from fanout_research.tools.url_fetch import UrlFetchTool, extract_urls, html_to_text
from fanout_research.tools.web_search import WebSearchTool

from fakes import FakeSearchTool

PAGE = (
    "<html><head><title>Kafka &amp; Ordering</title>"
    "<style>p { color: red; }</style></head>"
    "<body><h1>Ordering</h1><p>Ordering is guaranteed per partition.</p>"
    "<script>track()</script></body></html>"
)


@pytest.fixture
def table():
    return CapabilityTable()


class TestCapabilityTable:
    """Signal detection and first-match selection."""

    @pytest.mark.parametrize("text,expected", [
        ("Summarize https://example.com/post", URL_FETCH),
        ("How do I call the Redis API?", CODE_CONTEXT),
        ("Kafka conference talk", TRANSCRIPT),
        ("How to set up Kafka", TRANSCRIPT),
        ("What is the latest release?", LIVE_SEARCH),
        ("Why do people like functional programming?", SEMANTIC_SEARCH),
    ])
    def test_select(self, table, text, expected):
        assert table.select(text) == expected

    def test_first_matching_rule_wins(self, table):
        assert table.detect_signals("latest API release") == ["code_api", "recent_event"]
        assert table.select("latest API release") == CODE_CONTEXT

    def test_no_signal_means_default(self, table):
        assert table.detect_signals("Is remote work good for teams?") == []
        assert table.select("Is remote work good for teams?") == SEMANTIC_SEARCH

    def test_fallbacks(self, table):
        assert table.fallbacks_for(SEMANTIC_SEARCH) == (TRANSCRIPT, LIVE_SEARCH)
        assert table.fallbacks_for("unknown") == ()

    def test_fallbacks_never_include_the_capability_itself(self):
        table = CapabilityTable(fallbacks={LIVE_SEARCH: (LIVE_SEARCH, SEMANTIC_SEARCH)})
        assert table.fallbacks_for(LIVE_SEARCH) == (SEMANTIC_SEARCH,)

    def test_capabilities_default_first(self, table):
        assert table.capabilities == [
            SEMANTIC_SEARCH, URL_FETCH, CODE_CONTEXT, TRANSCRIPT, LIVE_SEARCH
        ]

    def test_custom_table(self):
        table = CapabilityTable(
            rules=(CapabilityRule("papers", "scholar", keywords=("paper", "study")),),
            default="web"
        )
        assert table.select("Find a study on sleep") == "scholar"
        assert table.select("Sleep tips") == "web"
        assert table.capabilities == ["web", "scholar"]


class TestDefaultTools:
    """One backend per capability."""

    def test_every_capability_has_a_tool(self, table):
        tools = build_default_tools(ResearchConfig())

        assert set(tools) == set(table.capabilities)
        assert isinstance(tools[URL_FETCH], UrlFetchTool)
        assert isinstance(tools[SEMANTIC_SEARCH], WebSearchTool)
        assert "github.com" in tools[CODE_CONTEXT].include_domains
        assert tools[TRANSCRIPT].include_domains == ["youtube.com"]
        assert tools[LIVE_SEARCH].search_depth == "advanced"

    def test_tools_satisfy_the_protocol(self):
        assert isinstance(FakeSearchTool(), SourceTool)
        assert isinstance(UrlFetchTool(), SourceTool)
        assert not isinstance(object(), SourceTool)


class TestUrlFetchHelpers:
    """URL extraction and HTML stripping."""

    def test_extract_urls(self):
        text = "see https://a.org/x, then https://a.org/x. and (http://b.com/y)"
        assert extract_urls(text) == ["https://a.org/x", "http://b.com/y"]
        assert extract_urls("") == []

    def test_html_to_text(self):
        assert html_to_text(PAGE) == "Kafka & Ordering Ordering Ordering is guaranteed per partition."


async def serve_page(request):
    return web.Response(text=PAGE, content_type="text/html")


@pytest.fixture
def app():
    application = web.Application()
    application.router.add_get("/post", serve_page)
    return application


class TestUrlFetchTool:
    """Fetching against a local aiohttp server."""

    @pytest.mark.asyncio
    async def test_query_without_url_is_rejected(self):
        with pytest.raises(ValueError, match="No URL"):
            await UrlFetchTool().search("What is Kafka?")

    @pytest.mark.asyncio
    async def test_fetches_named_page(self, app):
        async with TestServer(app) as server:
            url = str(server.make_url("/post"))
            results = await UrlFetchTool().search(f"Summarize {url}")

        assert len(results) == 1
        page = results[0]
        assert page.url == url
        assert page.title == "Kafka & Ordering"
        assert "Ordering is guaranteed per partition." in page.snippet
        assert "track()" not in page.snippet
        assert page.relevance_score == 1.0

    @pytest.mark.asyncio
    async def test_shared_session_and_snippet_limit(self, app):
        async with TestServer(app) as server:
            url = str(server.make_url("/post"))
            async with UrlFetchTool(snippet_chars=10) as fetcher:
                results = await fetcher.search(url)
            assert fetcher.session is None

        assert len(results[0].snippet) == 10

    @pytest.mark.asyncio
    async def test_missing_page_raises(self, app):
        async with TestServer(app) as server:
            url = str(server.make_url("/missing"))
            with pytest.raises(aiohttp.ClientResponseError):
                await UrlFetchTool().search(url)
