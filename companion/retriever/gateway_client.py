"""
Gateway Client

Router-side HTTP client for the Retrieval Gateway. Every failure, whether an
error response or a transport problem, comes back as a GatewayError so the
router can decide per error code.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from pydantic import ValidationError

from ..common.schemas import FetchResponse, SearchResponse
from ..gateway.errors import GatewayError, GatewayErrorCode

logger = logging.getLogger("companion.retriever.gateway_client")


@dataclass
class SearchCandidate:
    """One ranked search hit"""
    title: str
    url: str
    snippet: str = ""
    score: int = 0


@dataclass
class ExtractedArticle:
    """One fetched and extracted page"""
    title: str
    text: str
    char_count: int
    truncated: bool
    url: str = ""


class GatewayClient:
    """Async client for /api/search and /api/fetch."""

    def __init__(
        self,
        base_url: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 20.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get(self, path: str, params: dict, url: Optional[str] = None) -> dict:
        try:
            resp = await self._http.get(f"{self.base_url}{path}", params=params)
        except httpx.TimeoutException as e:
            logger.warning("Gateway %s timed out: %s", path, e)
            raise GatewayError(GatewayErrorCode.TIMEOUT, "Gateway timed out", url=url) from e
        except httpx.HTTPError as e:
            logger.warning("Gateway %s unreachable: %s", path, e)
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, f"Gateway unreachable: {e}", url=url) from e

        try:
            body = resp.json()
        except ValueError:
            body = {}

        if resp.status_code >= 400:
            error = GatewayError.from_response(resp.status_code, body, url=url)
            logger.info("Gateway %s -> HTTP %d (%s)", path, resp.status_code, error.code.value)
            raise error
        return body

    async def search(self, query: str, count: int = 5) -> List[SearchCandidate]:
        body = await self._get("/api/search", {"q": query, "count": count})
        try:
            result = SearchResponse.model_validate(body)
        except ValidationError as e:
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, "Malformed search response") from e
        return [
            SearchCandidate(title=item.name or item.url, url=item.url, snippet=item.snippet)
            for item in result.items
        ]

    async def fetch(self, url: str) -> ExtractedArticle:
        body = await self._get("/api/fetch", {"url": url}, url=url)
        try:
            page = FetchResponse.model_validate(body)
        except ValidationError as e:
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, "Malformed fetch response", url=url) from e
        return ExtractedArticle(
            title=page.title,
            text=page.text,
            char_count=page.meta.charCount,
            truncated=page.meta.truncated,
            url=url,
        )
