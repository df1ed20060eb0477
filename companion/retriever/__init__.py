"""
Retriever - Trusted-source answers

Components:
- GatewayClient: HTTP client for the Retrieval Gateway
- ranker: deterministic ordering of search candidates
- ExtractiveSummarizer: verbatim sentence selection
"""

from .gateway_client import ExtractedArticle, GatewayClient, SearchCandidate
from .ranker import rank, score_result
from .summarizer import ExtractiveSummarizer, select_verbatim

__all__ = [
    "ExtractedArticle",
    "GatewayClient",
    "SearchCandidate",
    "rank",
    "score_result",
    "ExtractiveSummarizer",
    "select_verbatim",
]
