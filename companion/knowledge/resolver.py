"""
Knowledge-Pack Resolver

Maps a free-text message onto at most one local topic document.
Resolution order (first match wins):
1. normalized title contained in the normalized query
2. any normalized keyword / alias / tag contained in the query
3. token overlap against each topic's bag of words, accepted at >= 2 shared
   tokens (ties go to the earliest topic in catalog order)
"""

import logging
from typing import Iterable, List, Optional, Set

from .catalog import TopicDocument

logger = logging.getLogger("companion.knowledge.resolver")

MIN_TOKEN_OVERLAP = 2


def normalize(text: Optional[str]) -> str:
    """Lowercase, replace non letter/digit/space characters, collapse whitespace."""
    lowered = (text or "").lower()
    kept = "".join(ch if ch.isalnum() or ch.isspace() else " " for ch in lowered)
    return " ".join(kept.split())


def tokenize(text: Optional[str]) -> List[str]:
    return normalize(text).split()


def _contains(haystack: str, needle: str) -> bool:
    # An empty needle would match everything
    return bool(needle) and needle in haystack


class KnowledgePackResolver:
    """Pure lookup over an immutable, ordered collection of TopicDocuments."""

    def __init__(self, documents: Iterable[TopicDocument]):
        self._documents = tuple(documents)
        self._titles = tuple(normalize(d.title) for d in self._documents)
        self._terms = tuple(tuple(normalize(t) for t in d.terms) for d in self._documents)
        self._bags = tuple(
            frozenset(tokenize(" ".join((d.title,) + d.terms))) for d in self._documents
        )

    @property
    def documents(self) -> tuple:
        return self._documents

    def resolve(self, text: Optional[str]) -> Optional[TopicDocument]:
        query = normalize(text)
        if not query:
            return None

        for doc, title in zip(self._documents, self._titles):
            if _contains(query, title):
                return doc

        for doc, terms in zip(self._documents, self._terms):
            if any(_contains(query, term) for term in terms):
                return doc

        query_tokens: Set[str] = set(query.split())
        best: Optional[TopicDocument] = None
        best_score = 0
        for doc, bag in zip(self._documents, self._bags):
            score = len(query_tokens & bag)
            if score > best_score:
                best, best_score = doc, score

        if best_score >= MIN_TOKEN_OVERLAP:
            return best
        return None
