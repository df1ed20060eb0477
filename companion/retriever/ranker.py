"""
Result Ranker

Deterministic, hand-tuned linear scorer for search candidates. Higher is
better; ranking is stable, so equal scores keep upstream order.
"""

import re
from typing import Iterable, List
from urllib.parse import urlsplit

from ..classifier.patterns import TOPIC_PATTERNS
from .gateway_client import SearchCandidate

TRUSTED_HOSTS = ("who.int", "health.gov.za", "nice.org.uk", "bmj.com", "unicef.org")
LOW_VALUE_HOSTS = ("help.unicef.org", "apps.who.int", "platform.who.int", "iarc.who.int")

# (pattern, weight) applied to the lowercased URL path
PATH_WEIGHTS = [
    (re.compile(r"/health-topics/"), 4),
    (re.compile(r"/publications?(-|/|$)"), 2),
    (re.compile(r"/guidance|/guidelines?"), 3),
    (re.compile(r"/clinical|/patients?/|/conditions?/|/topics?/|/fact-?sheet"), 2),
    (re.compile(r"/press|/news|/stories|/appeal|/donate|/fund|/campaign"), -4),
]

CANONICAL_TOPIC_URL = re.compile(r"who\.int.*/health-topics/")

TITLE_BOOST = re.compile(r"\b(guideline|recommendation|fact sheet|overview|faq|qa)\b")
TITLE_PENALTY = re.compile(r"\b(press release|appeal|donate|urgent|breaking)\b")


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def score_result(candidate: SearchCandidate, query: str = "") -> int:
    title = (candidate.title or "").lower()
    url = (candidate.url or "").lower()
    q = (query or "").lower()
    score = 0

    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
    except ValueError:
        parts, host = None, ""

    if parts is not None and host:
        if any(_host_matches(host, d) for d in TRUSTED_HOSTS):
            score += 3
        if any(_host_matches(host, d) for d in LOW_VALUE_HOSTS):
            score -= 3

        path = parts.path
        if len([seg for seg in path.split("/") if seg]) <= 1:
            score -= 1
        for pattern, weight in PATH_WEIGHTS:
            if pattern.search(path):
                score += weight

    for pattern in TOPIC_PATTERNS.values():
        if pattern.search(q) or pattern.search(title) or pattern.search(url):
            score += 3
            if CANONICAL_TOPIC_URL.search(url):
                score += 4

    if TITLE_BOOST.search(title):
        score += 2
    if TITLE_PENALTY.search(title):
        score -= 3

    return score


def rank(candidates: Iterable[SearchCandidate], query: str = "") -> List[SearchCandidate]:
    """Score every candidate and sort descending (stable on ties)."""
    scored = []
    for candidate in candidates:
        candidate.score = score_result(candidate, query)
        scored.append(candidate)
    return sorted(scored, key=lambda c: c.score, reverse=True)
