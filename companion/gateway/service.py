"""
Retrieval Gateway

The two gateway operations behind the HTTP surface: allow-listed search and
allow-listed fetch + extract. Holds the process-wide fetch limiter.
"""

import asyncio
import logging
from typing import Optional

import httpx

from ..common.config import GatewayConfig
from ..common.schemas import ArticleMeta, FetchResponse, SearchResponse
from .allow_list import AllowList
from .errors import GatewayError, GatewayErrorCode
from .extractor import extract, truncate
from .fetcher import FetchLimiter, PageFetcher
from .search_client import GoogleSearchClient

logger = logging.getLogger("companion.gateway.service")


class RetrievalGateway:
    """Search and fetch, both confined to the allow-list."""

    def __init__(
        self,
        config: GatewayConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.allow_list = AllowList(config.allow_list)
        self.limiter = FetchLimiter(config.max_concurrent_fetches)

        search_http = httpx.AsyncClient(timeout=config.search_timeout, transport=transport)
        fetch_http = httpx.AsyncClient(timeout=config.fetch_timeout, transport=transport)
        self.search_client = GoogleSearchClient(
            api_key=config.google_key,
            cx=config.google_cx,
            allow_list=self.allow_list,
            http=search_http,
            timeout=config.search_timeout,
        )
        self.fetcher = PageFetcher(
            allow_list=self.allow_list,
            max_bytes=config.max_fetch_bytes,
            http=fetch_http,
            timeout=config.fetch_timeout,
        )

        if not self.allow_list:
            logger.warning("ALLOW_LIST is empty: search and fetch will reject requests")

    async def aclose(self) -> None:
        await self.search_client.aclose()
        await self.fetcher.aclose()

    async def search(
        self,
        query: Optional[str],
        count: int = 5,
        offset: int = 0,
        freshness: Optional[str] = None,
        mkt: Optional[str] = None,
    ) -> SearchResponse:
        result = await self.search_client.search(query or "", count, offset, freshness, mkt)
        logger.info("Search %r -> %d allow-listed items", query, len(result.items))
        return result

    async def fetch(self, url: Optional[str], max_chars: Optional[int] = None) -> FetchResponse:
        """
        Fetch and extract one allow-listed page.

        The concurrency check runs before any other validation.
        """
        with self.limiter.slot():
            if not url:
                raise GatewayError(GatewayErrorCode.MISSING_URL, "Missing ?url=")
            html = await self.fetcher.fetch_html(url)
            # CPU-bound parse runs off the event loop
            extracted = await asyncio.to_thread(extract, html, url)
            article = truncate(extracted, max_chars)

        logger.info("Fetched %s (%d chars, truncated=%s)", url, article.char_count, article.truncated)
        return FetchResponse(
            title=article.title,
            text=article.text,
            meta=ArticleMeta(charCount=article.char_count, truncated=article.truncated),
        )
