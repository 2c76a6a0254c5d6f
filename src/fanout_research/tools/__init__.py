"""Retrieval backends and the capability table."""

from .web_search import WebSearchTool, SearchResult, classify_source
from .url_fetch import UrlFetchTool, extract_urls
from .capabilities import (
    CapabilityRule,
    CapabilityTable,
    SourceTool,
    build_default_tools,
    SEMANTIC_SEARCH,
    CODE_CONTEXT,
    TRANSCRIPT,
    LIVE_SEARCH,
    URL_FETCH,
)

__all__ = [
    "WebSearchTool",
    "SearchResult",
    "classify_source",
    "UrlFetchTool",
    "extract_urls",
    "CapabilityRule",
    "CapabilityTable",
    "SourceTool",
    "build_default_tools",
    "SEMANTIC_SEARCH",
    "CODE_CONTEXT",
    "TRANSCRIPT",
    "LIVE_SEARCH",
    "URL_FETCH",
]
