"""
Gateway - Allow-listed search and fetch proxy

Components:
- AllowList: domain trust boundary
- GoogleSearchClient: site-scoped upstream search
- PageFetcher / FetchLimiter: hardened HTML fetch with a global ceiling
- extractor: HTML -> article text
- RetrievalGateway: the two operations the HTTP surface exposes
"""

from .allow_list import AllowList
from .errors import GatewayError, GatewayErrorCode
from .extractor import Article, ExtractedText, extract, truncate
from .fetcher import FetchLimiter, PageFetcher
from .search_client import GoogleSearchClient
from .service import RetrievalGateway

__all__ = [
    "AllowList",
    "GatewayError",
    "GatewayErrorCode",
    "Article",
    "ExtractedText",
    "extract",
    "truncate",
    "FetchLimiter",
    "PageFetcher",
    "GoogleSearchClient",
    "RetrievalGateway",
]
