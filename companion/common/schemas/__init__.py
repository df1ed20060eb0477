"""
Companion Schemas

Pydantic models for the Retrieval Gateway HTTP surface.
"""

from .gateway import (
    SearchItem,
    SearchResponse,
    ArticleMeta,
    FetchResponse,
    HealthResponse,
)

__all__ = [
    "SearchItem",
    "SearchResponse",
    "ArticleMeta",
    "FetchResponse",
    "HealthResponse",
]
