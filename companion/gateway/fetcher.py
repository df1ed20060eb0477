"""
Page Fetcher

Hardened HTML fetch for allow-listed URLs:
- process-wide concurrency ceiling that fails fast with `busy`
- browser-like request headers, one retry with a same-site Referer on
  403/406/451
- redirects followed manually (max 5), each hop re-checked against the
  allow-list
- content-type gating before the body is read, PDFs classified separately
- streamed body with a hard byte cap
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import urljoin, urlsplit

import httpx

from .allow_list import AllowList
from .errors import GatewayError, GatewayErrorCode

logger = logging.getLogger("companion.gateway.fetcher")

MAX_REDIRECTS = 5
RETRY_STATUSES = (403, 406, 451)
HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-ZA,en;q=0.9",
    "Referer": "https://www.google.com/",
}


class FetchLimiter:
    """
    Non-blocking concurrency ceiling shared by every fetch in the process.

    A caller over the ceiling is rejected immediately, never queued.
    """

    def __init__(self, max_concurrent: int = 2):
        self.max_concurrent = max(1, int(max_concurrent))
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        return self._active

    def try_acquire(self) -> bool:
        with self._lock:
            if self._active >= self.max_concurrent:
                return False
            self._active += 1
            return True

    def release(self) -> None:
        with self._lock:
            if self._active > 0:
                self._active -= 1

    @contextmanager
    def slot(self) -> Iterator[None]:
        """Hold one slot for the duration of the block, or raise `busy`."""
        if not self.try_acquire():
            raise GatewayError(GatewayErrorCode.BUSY, "Fetcher is busy, please try again")
        try:
            yield
        finally:
            self.release()


def site_origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}/"


def is_pdf(content_type: str, url: str) -> bool:
    return "application/pdf" in content_type.lower() or urlsplit(url).path.lower().endswith(".pdf")


def is_html(content_type: str) -> bool:
    ctype = content_type.lower()
    return any(t in ctype for t in HTML_CONTENT_TYPES)


class PageFetcher:
    """Fetches raw HTML for URLs inside the allow-list."""

    def __init__(
        self,
        allow_list: AllowList,
        max_bytes: int = 2_000_000,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
    ):
        self._allow_list = allow_list
        self.max_bytes = max_bytes
        self._timeout = timeout
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    def check_allowed(self, url: str) -> None:
        if not self._allow_list.is_allowed(url):
            raise GatewayError(GatewayErrorCode.DOMAIN_NOT_ALLOWED, "Domain not allowed", url=url)

    async def fetch_html(self, url: str) -> str:
        """
        Fetch one page and return its decoded HTML.

        Raises:
            GatewayError: any classified failure (see errors.GatewayErrorCode)
        """
        self.check_allowed(url)
        try:
            response = await self._send(url, BROWSER_HEADERS)
            if response.status_code in RETRY_STATUSES:
                await response.aclose()
                logger.info("HTTP %d from %s, retrying with site referer", response.status_code, url)
                headers = dict(BROWSER_HEADERS, Referer=site_origin(url))
                response = await self._send(url, headers)
            try:
                return await self._read_html(response, url)
            finally:
                await response.aclose()
        except httpx.TimeoutException as e:
            logger.warning("Fetch timed out for %s: %s", url, e)
            raise GatewayError(GatewayErrorCode.TIMEOUT, "Upstream timed out", url=url) from e
        except httpx.HTTPError as e:
            logger.warning("Fetch failed for %s: %s", url, e)
            raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, f"Fetch failed: {e}", url=url) from e

    async def _send(self, url: str, headers: dict) -> httpx.Response:
        """GET with manual redirect handling; returns an open streaming response."""
        current = url
        for _ in range(MAX_REDIRECTS + 1):
            request = self._http.build_request("GET", current, headers=headers, timeout=self._timeout)
            response = await self._http.send(request, stream=True, follow_redirects=False)
            location = response.headers.get("location")
            if not (response.is_redirect and location):
                return response
            await response.aclose()
            current = urljoin(current, location)
            if not self._allow_list.is_allowed(current):
                logger.warning("Redirect from %s leaves allow-list: %s", url, current)
                raise GatewayError(GatewayErrorCode.DOMAIN_NOT_ALLOWED, "Redirect to a domain not allowed", url=url)
        raise GatewayError(GatewayErrorCode.UPSTREAM_ERROR, "Too many redirects", url=url)

    async def _read_html(self, response: httpx.Response, url: str) -> str:
        status = response.status_code
        if status >= 400:
            logger.info("Upstream HTTP %d for %s", status, url)
            raise GatewayError.from_upstream_status(status, url=url)

        content_type = response.headers.get("content-type", "")
        if is_pdf(content_type, url):
            raise GatewayError(GatewayErrorCode.PDF, "PDF not supported by extractor", url=url)
        if not is_html(content_type):
            raise GatewayError(
                GatewayErrorCode.UNSUPPORTED_CONTENT_TYPE,
                f"Unsupported content-type: {content_type or 'unknown'}",
                url=url,
            )

        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise GatewayError(GatewayErrorCode.TOO_LARGE, "Page too large to fetch safely", url=url)

        body = bytearray()
        async for chunk in response.aiter_bytes():
            body.extend(chunk)
            if len(body) > self.max_bytes:
                raise GatewayError(GatewayErrorCode.TOO_LARGE, "Page too large to fetch safely", url=url)

        encoding = response.charset_encoding or "utf-8"
        try:
            return bytes(body).decode(encoding, errors="replace")
        except LookupError:
            return bytes(body).decode("utf-8", errors="replace")
