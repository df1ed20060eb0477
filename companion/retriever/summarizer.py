"""
Extractive Summarizer

Asks the model to select (never write) 3-5 sentences from an excerpt, then
keeps only the lines that appear verbatim in that excerpt. Nothing the model
authors itself can reach the user through this path.
"""

import logging
import re
from typing import List, Optional

from ..common.llm_client import LLMClient

logger = logging.getLogger("companion.retriever.summarizer")

PRIMARY_WINDOW = (0, 8000)
RETRY_WINDOW = (6000, 14000)
MIN_RETRY_CHARS = 500
MAX_BULLETS = 5

SYSTEM_PROMPT = "\n".join([
    "You are a careful assistant. Use ONLY the EXCERPT text verbatim.",
    "TASK: Select 3–5 short sentences that directly answer the user’s question.",
    "RULES: Do NOT paraphrase. Do NOT add new facts. Copy sentences exactly as they appear.",
    "FORMAT: Bullet list, each bullet is a single sentence from the excerpt.",
])

_BULLET_MARKER = re.compile(r"^[-*•]\s*")
_WHITESPACE = re.compile(r"\s+")


def _dedupe_key(line: str) -> str:
    return _WHITESPACE.sub(" ", line.lower()).strip()


def select_verbatim(draft: str, excerpt: str, limit: int = MAX_BULLETS) -> List[str]:
    """
    Keep draft lines that are literal substrings of the excerpt.

    Bullet markers are trimmed first; matching is case-sensitive. Duplicates
    (case and whitespace insensitive) keep their first occurrence.
    """
    bullets: List[str] = []
    seen = set()
    for raw in (draft or "").splitlines():
        line = _BULLET_MARKER.sub("", raw.strip()).strip()
        if not line or line not in excerpt:
            continue
        key = _dedupe_key(line)
        if key in seen:
            continue
        seen.add(key)
        bullets.append(line)
        if len(bullets) >= limit:
            break
    return bullets


class ExtractiveSummarizer:
    """Verbatim sentence selection over a fetched article."""

    def __init__(self, llm_client: Optional[LLMClient] = None):
        self._llm = llm_client

    def _ask(self, question: str, excerpt: str) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"User question: {question}\nEXCERPT START\n{excerpt}\nEXCERPT END"},
        ]
        return self._llm.complete(messages, temperature=0.1, top_p=0.9, max_tokens=400)

    def summarize_excerpt(self, question: str, excerpt: str) -> List[str]:
        """One selection round over a single excerpt; [] on any model failure."""
        if not excerpt.strip() or self._llm is None or not self._llm.is_available:
            return []
        try:
            draft = self._ask(question, excerpt)
        except Exception as e:
            logger.warning("Summarizer model call failed: %s", e)
            return []
        bullets = select_verbatim(draft, excerpt)
        logger.debug("Summarizer kept %d verbatim bullet(s)", len(bullets))
        return bullets

    def summarize(self, question: str, text: str) -> List[str]:
        """
        Select quotable sentences from an article.

        Tries the lead window first and, only when nothing survives
        verification, one later window. An empty list means the page has no
        quotable content.
        """
        text = text or ""
        start, end = PRIMARY_WINDOW
        bullets = self.summarize_excerpt(question, text[start:end])
        if bullets:
            return bullets

        start, end = RETRY_WINDOW
        later = text[start:end]
        if len(later) > MIN_RETRY_CHARS:
            logger.info("No verbatim bullets in lead window, retrying later window")
            return self.summarize_excerpt(question, later)
        return []
