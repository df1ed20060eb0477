"""
Article Extractor

HTML -> {title, text}. Readability-style main-content extraction first; when
that yields too little, probe common content containers and finally the whole
body.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

import lxml.html
from bs4 import BeautifulSoup
from readability import Document

from .errors import GatewayError, GatewayErrorCode

logger = logging.getLogger("companion.gateway.extractor")

PRIMARY_MIN_CHARS = 400
FALLBACK_GOOD_ENOUGH = 500
MIN_ARTICLE_CHARS = 200
DEFAULT_MAX_CHARS = 50_000
MAX_CHARS_CEILING = 200_000

FALLBACK_SELECTORS = [
    "article",
    "main",
    "[role='main']",
    "#content",
    ".content",
    ".article",
    ".main",
    "section",
]

# Removed textually before any parsing
_NOISE_PATTERNS = [
    re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE),
    re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE),
    re.compile(r"<noscript[\s\S]*?</noscript>", re.IGNORECASE),
    re.compile(r"<svg[\s\S]*?</svg>", re.IGNORECASE),
    re.compile(r"<img[^>]*>", re.IGNORECASE),
    re.compile(r"<video[\s\S]*?</video>", re.IGNORECASE),
    re.compile(r"<iframe[\s\S]*?</iframe>", re.IGNORECASE),
]

_SPACES = re.compile(r"[ \t\r\f\v\u00a0]+")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class ExtractedText:
    title: str
    text: str


@dataclass
class Article:
    """Extraction result after truncation"""
    title: str
    text: str
    char_count: int
    truncated: bool


def strip_noise(html: str) -> str:
    for pattern in _NOISE_PATTERNS:
        html = pattern.sub("", html)
    return html


def clean_text(text: str) -> str:
    """Collapse runs of spaces per line and drop blank lines."""
    lines = (_SPACES.sub(" ", line).strip() for line in (text or "").splitlines())
    return "\n".join(line for line in lines if line)


def _collapsed_len(text: str) -> int:
    return len(_WHITESPACE.sub(" ", text).strip())


def _readability(html: str, base_url: Optional[str]) -> ExtractedText:
    try:
        doc = Document(html, url=base_url)
        title = doc.short_title() or ""
        summary_html = doc.summary(html_partial=True)
        text = lxml.html.fromstring(summary_html).text_content() if summary_html.strip() else ""
    except Exception as e:
        logger.debug("Readability failed for %s: %s", base_url, e)
        return ExtractedText(title="", text="")
    return ExtractedText(title=title.strip(), text=clean_text(text))


def _fallback_text(soup: BeautifulSoup) -> str:
    best = ""
    best_len = 0
    for selector in FALLBACK_SELECTORS:
        for node in soup.select(selector):
            text = clean_text(node.get_text("\n"))
            length = _collapsed_len(text)
            if length > best_len:
                best, best_len = text, length
        if best_len > FALLBACK_GOOD_ENOUGH:
            break

    if not best_len:
        body = soup.body or soup
        best = _WHITESPACE.sub(" ", body.get_text(" ")).strip()
    return best


def extract(html: str, base_url: Optional[str] = None) -> ExtractedText:
    """
    Extract the main title and text from an HTML page.

    Raises:
        GatewayError: extraction_failed when fewer than 200 characters survive
    """
    html = strip_noise(html or "")
    primary = _readability(html, base_url)
    text = primary.text
    soup = None

    if len(text) < PRIMARY_MIN_CHARS:
        soup = BeautifulSoup(html, "html.parser")
        text = _fallback_text(soup).strip()

    if len(text) < MIN_ARTICLE_CHARS:
        raise GatewayError(GatewayErrorCode.EXTRACTION_FAILED, "Could not extract article", url=base_url)

    title = primary.title
    if not title:
        soup = soup or BeautifulSoup(html, "html.parser")
        if soup.title and soup.title.string:
            title = soup.title.string.strip()
    return ExtractedText(title=title or "Untitled", text=text)


def clamp_max_chars(max_chars: Optional[int]) -> int:
    """Caller limit, defaulting to 50,000 and never above 200,000."""
    if not max_chars or max_chars <= 0:
        return DEFAULT_MAX_CHARS
    return min(int(max_chars), MAX_CHARS_CEILING)


def truncate(extracted: ExtractedText, max_chars: Optional[int] = None) -> Article:
    limit = clamp_max_chars(max_chars)
    full = extracted.text
    return Article(
        title=extracted.title,
        text=full[:limit],
        char_count=len(full),
        truncated=len(full) > limit,
    )
