"""
Retrieval Gateway HTTP payloads

Shared between the gateway server (producer) and the router-side
GatewayClient (consumer) so both ends agree on field names.
"""

from typing import List

from pydantic import BaseModel, Field


class SearchItem(BaseModel):
    """One allow-listed search hit as returned by /api/search"""
    name: str = ""
    url: str
    snippet: str = ""


class SearchResponse(BaseModel):
    query: str
    items: List[SearchItem] = Field(default_factory=list)
    totalEstimatedMatches: int = 0


class ArticleMeta(BaseModel):
    charCount: int
    truncated: bool


class FetchResponse(BaseModel):
    """Extracted article as returned by /api/fetch"""
    title: str
    text: str
    meta: ArticleMeta


class HealthResponse(BaseModel):
    ok: bool = True
    time: str
