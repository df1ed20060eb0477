"""
Model-backed conversation flows

Prompt construction and output clean-up for every model call the router
makes. Functions here call the model synchronously and let RuntimeError (or
any provider error) propagate; the router decides how each one degrades.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from ..classifier import Classification, Energy, Tone
from ..classifier.patterns import IS_QUESTION
from ..common.llm_client import LLMClient
from ..common.llm_utils import parse_structured_or_default
from ..knowledge.catalog import TopicPack, build_context

logger = logging.getLogger("companion.router.flows")


# =============================================================================
# Output clean-up
# =============================================================================

_WRAPPING = re.compile(r"^[\"'“”\s]+|[\"'“”\s]+$")
_META_PREAMBLE = re.compile(r"^(here(’|'|)s|this is|below is|the following is)\b.*?:\s*", re.IGNORECASE)
_SUMMARY_PREAMBLE = re.compile(r"^in summary[:,]?\s*", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


def tidy_to_sentence_limit(text: Optional[str], max_sentences: int = 3) -> str:
    """Strip quotes and meta preambles, keep at most N sentences, end on punctuation."""
    if not text:
        return ""
    s = _WRAPPING.sub("", text)
    s = _META_PREAMBLE.sub("", s)
    s = _SUMMARY_PREAMBLE.sub("", s)
    parts = [p.strip() for p in _SENTENCE_SPLIT.split(s) if p.strip()]
    kept = " ".join(parts[:max_sentences])
    if not kept:
        return ""
    return kept if kept[-1] in ".!?" else kept + "."


# =============================================================================
# Paraphrase of a local knowledge pack
# =============================================================================

_DEFINITION_QUESTION = re.compile(r"^what\s+is\s+", re.IGNORECASE)


def paraphrase_prompt(pack: TopicPack, user_text: str = "") -> List[Dict[str, str]]:
    define_first = bool(_DEFINITION_QUESTION.search((user_text or "").strip()))
    system = "\n".join([
        "You are a gentle perinatal companion. ONLY use facts inside <context>.",
        "Write in simple, warm language.",
        "Output 1–2 sentences that define the topic, then one short practical tip."
        if define_first
        else "Keep to 2–3 short sentences (one reassurance + one practical tip).",
        "If info is missing, say you don’t know. Do not add new medical facts.",
        "If red flags exist in <context>, reserve 1 short sentence to name them without extra detail.",
    ])
    user = f"Here is <context>:\n{build_context(pack)}\n\nParaphrase for a parent in plain words."
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def paraphrase_pack(llm: LLMClient, pack: TopicPack, user_text: str = "") -> str:
    out = llm.complete(paraphrase_prompt(pack, user_text), temperature=0.6, top_p=0.9)
    return tidy_to_sentence_limit(out, 3)


# =============================================================================
# Supportive chat
# =============================================================================

TONE_CUES = {
    Tone.GREETING: "Keep it light and brief, like a friendly check-in.",
    Tone.HAPPY: "Match the positive vibe; celebrate briefly without overdoing it.",
    Tone.THANKFUL: "Acknowledge the thanks warmly and keep it short.",
    Tone.CURIOUS: (
        "Be clear and down-to-earth. If it sounds like an info request, keep it "
        "high-level (no medical advice in this mode)."
    ),
    Tone.CONFUSED: (
        "Acknowledge uncertainty and reflect back what seems unclear before "
        "offering one simple next step."
    ),
    Tone.SAD: "Be gentle and validating; reflect only what was said. No assumptions.",
    Tone.ANXIOUS: "Keep a calm tone, normalize the feeling briefly, and offer one small grounding step.",
    Tone.STRESSED: "Be practical and kind; suggest one tiny doable thing. Keep it short.",
    Tone.ANGRY: "Stay calm and respectful; acknowledge frustration without defending or correcting.",
    Tone.NEUTRAL: "Conversational and human; warm but not formal.",
}

TEMPERATURE_BY_TONE = {
    Tone.SAD: 0.85,
    Tone.ANXIOUS: 0.85,
    Tone.STRESSED: 0.85,
    Tone.ANGRY: 0.82,
    Tone.CONFUSED: 0.88,
}
DEFAULT_CHAT_TEMPERATURE = 0.95

SENTENCE_LIMITS = {
    Energy.VERY_SHORT: 1,
    Energy.SHORT: 2,
    Energy.MEDIUM: 3,
    Energy.LONG: 4,
}

# Stock phrases, in both apostrophe spellings
STOCK_PHRASES = [
    "it’s okay to feel overwhelmed", "it's okay to feel overwhelmed",
    "what’s on your mind", "what's on your mind",
    "i’m here for you", "i'm here for you",
    "that sounds really hard",
]


def sentence_limit(energy: Energy) -> int:
    return SENTENCE_LIMITS.get(energy, 4)


def chat_temperature(tone: Tone) -> float:
    return TEMPERATURE_BY_TONE.get(tone, DEFAULT_CHAT_TEMPERATURE)


def question_budget(classification: Classification) -> int:
    if classification.energy in (Energy.VERY_SHORT, Energy.SHORT):
        return 0
    return 0 if classification.tone is Tone.ANGRY else 1


def recent_banned_phrases(history: Sequence[Dict[str, str]], window: int = 4) -> List[str]:
    """Stock phrases already used in the last few messages."""
    recent = [m["content"].lower() for m in list(history)[-window:]]
    return [p for p in STOCK_PHRASES if any(p in r for r in recent)]


def chat_prompt(
    user_text: str,
    classification: Classification,
    history: Sequence[Dict[str, str]],
) -> List[Dict[str, str]]:
    limit = sentence_limit(classification.energy)
    avoid = recent_banned_phrases(history)
    looks_infoy = bool(IS_QUESTION.search((user_text or "").strip()))

    lines = [
        "You are a kind perinatal companion — sound like a real friend.",
        "Use recent chat history to keep continuity.",
        f"Match the user's energy and length. Aim for ≤ {limit} sentences.",
    ]
    if looks_infoy:
        lines.append(
            "Acknowledge the question. If the user seems to want information, say you'll check "
            "my library or trusted sources next, without giving medical advice in this turn."
        )
    lines.append(TONE_CUES.get(classification.tone, TONE_CUES[Tone.NEUTRAL]))
    lines.append(
        "Avoid asking questions in this turn."
        if question_budget(classification) == 0
        else "Ask at most one short, open question."
    )
    lines.extend([
        "Do not talk about yourself (no ‘I am trying…’, ‘I feel…’).",
        "Do not introduce symptoms or emotions the user didn’t mention.",
        "Do NOT add medical facts or instructions in this mode.",
        "Prefer concrete, human phrasing. No therapy clichés.",
    ])
    if avoid:
        lines.append(f"Avoid these exact phrases: {' | '.join(avoid)}")

    messages = [{"role": "system", "content": "\n".join(lines)}]
    messages.extend({"role": m["role"], "content": m["content"]} for m in history)
    messages.append({"role": "user", "content": user_text})
    return messages


def chat_reply(
    llm: LLMClient,
    user_text: str,
    classification: Classification,
    history: Sequence[Dict[str, str]],
) -> str:
    out = llm.complete(
        chat_prompt(user_text, classification, history),
        temperature=chat_temperature(classification.tone),
        top_p=0.95,
    )
    return tidy_to_sentence_limit(out, sentence_limit(classification.energy))


# =============================================================================
# Search query rewriting
# =============================================================================

MAX_QUERY_WORDS = 12

_FILLER = re.compile(r"\b(please|yes|okay|ok|sure|can you|what is|explain|tell me about)\b", re.IGNORECASE)
_UNSAFE_QUERY_CHARS = re.compile(r"[^\w\s\"%\-:.]")

REWRITE_SYSTEM = "\n".join([
    "You rewrite user questions into a short, search-ready query.",
    "Rules:",
    "- Keep it under 12 words.",
    "- Use plain keywords; no filler like 'please' or 'can you'.",
    "- Expand obvious synonyms (e.g., birth control → contraception, family planning).",
    "- Prefer medical terms when clear (e.g., 'postpartum', 'antenatal').",
    "- NO punctuation except quotes for exact phrases; no question marks.",
    "- NO personal data, no emojis.",
    "- If topic is perinatal/health, bias toward authoritative phrasing (e.g., 'WHO contraception fact sheet').",
])

REWRITE_EXAMPLES = [
    {"role": "user", "content": "Yes what is birthcontrol"},
    {"role": "assistant", "content": 'contraception "birth control" family planning'},
    {"role": "user", "content": "what vaccines at 6 weeks"},
    {"role": "assistant", "content": 'infant immunization "6 weeks" schedule'},
    {"role": "user", "content": "breast feeding tips"},
    {"role": "assistant", "content": "breastfeeding latching milk supply tips"},
]


def sanitize_query(query: Optional[str]) -> str:
    q = (query or "").replace("“", '"').replace("”", '"')
    q = _UNSAFE_QUERY_CHARS.sub("", q)
    words = q.split()
    return " ".join(words[:MAX_QUERY_WORDS])


def fallback_query(user_text: str) -> str:
    """User text minus conversational filler."""
    stripped = " ".join(_FILLER.sub("", user_text or "").split())
    return stripped or " ".join((user_text or "").split())


def rewrite_search_query(llm: LLMClient, user_text: str) -> str:
    messages = [{"role": "system", "content": REWRITE_SYSTEM}]
    messages.extend(REWRITE_EXAMPLES)
    messages.append({"role": "user", "content": user_text})
    out = llm.complete(messages, temperature=0.2, top_p=0.9, max_tokens=24)
    return sanitize_query(out)


# =============================================================================
# Model routing hint
# =============================================================================

ROUTE_DEFAULTS: Dict[str, Any] = {
    "action": "basic_chat",
    "topic_hint": None,
    "needs_sources": False,
}

ROUTE_SYSTEM = "\n".join([
    "You are an intent router for a perinatal companion.",
    "Treat questions about symptoms, signs, causes, diagnosis, or treatment as 'info_local' "
    "(with a topic_hint) unless the user explicitly asks for sources.",
    "Decide the BEST next action for the assistant.",
    "Allowed actions:",
    "- 'basic_chat' (supportive conversation, reflections, check-ins)",
    "- 'info_local' (answer from local JSON topic packs)",
    "- 'info_search' (trusted web search needed for precise facts/guidelines)",
    "- 'emergency' (red-flag symptoms or self-harm language)",
    "",
    "Rules:",
    "• Prefer 'info_local' over 'info_search' unless the user asks for sources/guidelines, doses, schedules or stats.",
    "• Use 'basic_chat' when user needs empathy or is venting (no factual request).",
    "• Use 'emergency' if there are urgent physical red flags or self-harm terms.",
    "• If you think a local topic fits, suggest a short 'topic_hint' (e.g., 'breastfeeding', "
    "'mental health', 'warning signs', 'labour and birth', 'newborn basics', 'pregnancy nutrition').",
    "Output STRICT JSON only. No prose.",
    'Schema: {"action": string, "topic_hint": string|null, "needs_sources": boolean}',
])


def route_prompt(user_text: str, history: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    recent = "\n".join(f"[{m['role']}] {m['content']}" for m in history)[:1200]
    user = "\n".join([f"USER_TEXT: {user_text}", "RECENT:", recent or "(none)"])
    return [
        {"role": "system", "content": ROUTE_SYSTEM},
        {"role": "user", "content": user},
    ]


def route_hint(llm: LLMClient, user_text: str, history: Sequence[Dict[str, str]]) -> Dict[str, Any]:
    """Ask the model for a route; malformed output decodes to ROUTE_DEFAULTS."""
    raw = llm.complete(route_prompt(user_text, history), temperature=0.0, top_p=1.0, max_tokens=180)
    hint = parse_structured_or_default(raw, ROUTE_DEFAULTS)
    logger.debug("Model route hint: %s", hint)
    return hint
