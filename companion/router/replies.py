"""
Fixed reply templates
"""

from typing import List, Sequence

from ..gateway.errors import GatewayError, GatewayErrorCode
from ..retriever.gateway_client import SearchCandidate

SADAG_LINE = "If you’re in South Africa and need mental health support, SADAG: 0800 567 567 / 0800 21 22 23."

CRISIS = (
    "I’m really concerned. This sounds urgent. Please seek care immediately or call your "
    f"local emergency number. {SADAG_LINE} I’m here with you."
)

SOCIAL_CHECK_IN = "glad you’re doing okay. anything you want to talk about today?"
GREETING_FIRST = "hey 👋 how’s your day going?"
GREETING_REPEAT = "still around 😊 what’s up?"

QUICK_REPLIES = {
    "gratitude": "you’re welcome — happy to help 💛",
    "goodbye": "take care — here whenever you want to chat.",
    "clarify": "sure — which part should I make simpler?",
    "followup": "happy to go deeper — which bit do you want more on?",
    "care_nav": (
        f"I can help you think through next steps. {SADAG_LINE} "
        "Want me to check trusted sources for clinic guidance?"
    ),
    "smalltalk": "🙂 got you — tell me more?",
}

ASK_SEARCH_CONSENT = (
    "I might not have that in my library yet. "
    "Want me to check trusted sources (WHO, SA DoH, UNICEF)?"
)
CONSENT_DECLINED = "No problem — we can keep chatting. What’s on your mind?"

NO_SOLID_SOURCE = "I didn’t find a solid source right now. What part should we focus on?"
SEARCH_UNREACHABLE = "Hmm, I couldn’t reach the sources just now. Want to try again later, or keep chatting?"
SEARCH_INTRO = "I found a few reliable pages — pick one and I’ll give you a short, clear summary:"
NOTHING_TO_PICK = "I don’t have any sources open right now. Want me to search?"

SOURCES_EXHAUSTED = "No other sources left. Want me to search again?"
NO_QUOTABLE_CONTENT = "That page didn’t have clear sentences to quote. Want me to try another link?"

PACK_LOAD_FAILED = "Sorry, I couldn’t load that right now."
CHAT_FAILED = "Sorry, I’m having trouble finding the right words just now. Could you say that again?"


def search_results(candidates: Sequence[SearchCandidate]) -> str:
    listing = "\n\n".join(f"{i}. {c.title}\n{c.url}" for i, c in enumerate(candidates, start=1))
    return f"{SEARCH_INTRO}\n\n{listing}"


NEXT_CANDIDATE = " Trying the next one…"


def fetch_failure(error: GatewayError, has_next: bool = True) -> str:
    """User-facing reason for a failed fetch; the router then tries the next link."""
    code = error.code
    if code is GatewayErrorCode.PDF:
        reason = "That link is a PDF and my extractor can’t read it yet."
    elif code is GatewayErrorCode.UNSUPPORTED_CONTENT_TYPE:
        reason = "That link isn’t a web page I can read."
    elif code is GatewayErrorCode.TOO_LARGE:
        reason = "That page is very large and I couldn’t load it safely."
    elif code is GatewayErrorCode.BUSY:
        reason = "I’m busy fetching another page."
    elif code is GatewayErrorCode.EXTRACTION_FAILED:
        reason = "That page didn’t load cleanly."
    else:
        reason = f"I couldn’t fetch that page (HTTP {error.status} – {error.message})."
    return reason + NEXT_CANDIDATE if has_next else reason


def summary(bullets: List[str], url: str) -> str:
    lines = "\n".join(f"• {b}" for b in bullets)
    return f"{lines}\n\nSource: {url}"
