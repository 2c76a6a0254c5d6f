"""
URL Fetch Tool - Direct retrieval for queries that name a known URL.

The query text is scanned for http(s) URLs; each one is fetched and turned
into a single SearchResult holding the page title and its leading text.
"""

import re
import html
import logging
from typing import List, Optional

import aiohttp

from .web_search import SearchResult, WebSearchTool

logger = logging.getLogger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s<>\"')\]]+")
TITLE_PATTERN = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
SCRIPT_PATTERN = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
TAG_PATTERN = re.compile(r"<[^>]+>")


def extract_urls(text: str) -> List[str]:
    """Return the URLs in text, in order, without duplicates or trailing punctuation."""
    seen = []
    for match in URL_PATTERN.findall(text or ""):
        url = match.rstrip(".,;:!?")
        if url not in seen:
            seen.append(url)
    return seen


def html_to_text(body: str) -> str:
    """Crude tag stripper; good enough for a snippet."""
    body = SCRIPT_PATTERN.sub(" ", body)
    body = TAG_PATTERN.sub(" ", body)
    return re.sub(r"\s+", " ", html.unescape(body)).strip()


class UrlFetchTool:
    """
    Fetches the pages named in a query.

    Usage:
        async with UrlFetchTool() as fetcher:
            results = await fetcher.search("summarize https://example.com/post")
    """

    description = "Fetch a known URL directly"

    def __init__(self, timeout: int = 10, snippet_chars: int = 1200):
        self.timeout = timeout
        self.snippet_chars = snippet_chars
        self.session: Optional[aiohttp.ClientSession] = None

        logger.info("Initialized UrlFetchTool")

    async def __aenter__(self):
        self.session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.session:
            await self.session.close()
            self.session = None

    async def search(self, query: str) -> List[SearchResult]:
        """
        Fetch every URL found in the query.

        Raises:
            ValueError: if the query contains no URL
            aiohttp.ClientError: if a fetch fails
        """
        urls = extract_urls(query)
        if not urls:
            raise ValueError("No URL found in query")

        results = []
        if self.session:
            for url in urls:
                results.append(await self._fetch(self.session, url))
        else:
            # A session is bound to the loop that created it, so one per call
            async with aiohttp.ClientSession() as session:
                for url in urls:
                    results.append(await self._fetch(session, url))

        logger.info(f"Fetched {len(results)} pages")
        return results

    async def _fetch(self, session: aiohttp.ClientSession, url: str) -> SearchResult:
        logger.info(f"Fetching: {url}")
        async with session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        ) as response:
            response.raise_for_status()
            body = await response.text()

        title_match = TITLE_PATTERN.search(body)
        title = html_to_text(title_match.group(1)) if title_match else url
        text = html_to_text(body)

        return SearchResult(
            title=title,
            url=url,
            snippet=text[:self.snippet_chars],
            source=WebSearchTool._extract_domain(url),
            relevance_score=1.0
        )
