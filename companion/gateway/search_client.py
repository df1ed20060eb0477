"""
Search Client

Google Programmable Search (Custom Search JSON API) scoped to the allow-list.
The upstream query carries site: clauses for every trusted domain, but results
are filtered against the allow-list again before they are returned.
"""

import logging
from typing import Optional

import httpx

from ..common.schemas import SearchItem, SearchResponse
from .allow_list import AllowList
from .errors import GatewayError, GatewayErrorCode

logger = logging.getLogger("companion.gateway.search_client")

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"

# Heavy or non-HTML documents are excluded upstream
FILETYPE_EXCLUSION = "-filetype:pdf -filetype:doc -filetype:ppt -filetype:docx -filetype:pptx"

UPSTREAM_MAX_RESULTS = 10

FRESHNESS_CODES = {
    "day": "d1",
    "week": "w1",
    "month": "m1",
}


def freshness_to_date_restrict(freshness: Optional[str]) -> Optional[str]:
    return FRESHNESS_CODES.get((freshness or "").strip().lower())


def market_to_country(mkt: Optional[str]) -> Optional[str]:
    """'en-ZA' -> 'ZA'"""
    if mkt and "-" in mkt:
        return mkt.split("-")[1] or None
    return None


def build_query(query: str, allow_list: AllowList) -> str:
    return f"{query} {FILETYPE_EXCLUSION}{allow_list.site_clause()}"


class GoogleSearchClient:
    """Allow-list scoped web search over Google CSE."""

    def __init__(
        self,
        api_key: str,
        cx: str,
        allow_list: AllowList,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 8.0,
    ):
        self._api_key = api_key
        self._cx = cx
        self._allow_list = allow_list
        self._timeout = timeout
        self._http = http or httpx.AsyncClient(timeout=timeout)

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key and self._cx)

    async def aclose(self) -> None:
        await self._http.aclose()

    def build_params(
        self,
        query: str,
        count: int = 5,
        offset: int = 0,
        freshness: Optional[str] = None,
        mkt: Optional[str] = None,
    ) -> dict:
        params = {
            "key": self._api_key,
            "cx": self._cx,
            "q": build_query(query, self._allow_list),
            "num": max(1, min(int(count), UPSTREAM_MAX_RESULTS)),
            "start": max(0, int(offset)) + 1,  # upstream is 1-based
            "safe": "active",
        }
        date_restrict = freshness_to_date_restrict(freshness)
        if date_restrict:
            params["dateRestrict"] = date_restrict
        gl = market_to_country(mkt)
        if gl:
            params["gl"] = gl
        return params

    async def search(
        self,
        query: str,
        count: int = 5,
        offset: int = 0,
        freshness: Optional[str] = None,
        mkt: Optional[str] = None,
    ) -> SearchResponse:
        """
        Run one upstream search.

        Raises:
            GatewayError: allow-list empty, upstream not configured, or any
                upstream failure (status mapped through the error taxonomy)
        """
        if not self._allow_list:
            raise GatewayError(GatewayErrorCode.ALLOW_LIST_EMPTY, "ALLOW_LIST is empty on server")
        if not self.is_configured:
            raise GatewayError(GatewayErrorCode.UPSTREAM_MISCONFIGURED, "Google API not configured")
        if not query or not query.strip():
            raise GatewayError(GatewayErrorCode.MISSING_QUERY, "Missing ?q=")

        params = self.build_params(query, count, offset, freshness, mkt)
        try:
            resp = await self._http.get(GOOGLE_SEARCH_URL, params=params, timeout=self._timeout)
        except httpx.TimeoutException as e:
            logger.warning("Search timed out for %r: %s", query, e)
            raise GatewayError(GatewayErrorCode.TIMEOUT, "Search timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Search request failed for %r: %s", query, e)
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, f"Search failed: {e}") from e

        if resp.status_code >= 400:
            logger.warning("Search upstream returned HTTP %d", resp.status_code)
            raise GatewayError.from_upstream_status(resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, "Invalid search response") from e

        items = []
        for raw in data.get("items") or []:
            link = raw.get("link")
            if not self._allow_list.is_allowed(link):
                logger.debug("Dropping off-list result: %s", link)
                continue
            items.append(SearchItem(
                name=raw.get("title") or "",
                url=link,
                snippet=raw.get("snippet") or "",
            ))

        try:
            total = int((data.get("searchInformation") or {}).get("totalResults") or 0)
        except (TypeError, ValueError):
            total = 0

        return SearchResponse(query=query, items=items, totalEstimatedMatches=total)
