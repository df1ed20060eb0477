"""
Classifier Pattern Tables

Every lexicon the classifier evaluates, compiled once at import time.
Tables are ordered: evaluation order is priority order.
"""

import re
from typing import Dict, List, Pattern, Tuple


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


def _any(*emoji: str) -> str:
    """Alternation of emoji sequences (some are multi-codepoint, so no char class)."""
    return "(?:" + "|".join(re.escape(e) for e in emoji) + ")"


# =============================================================================
# Safety gate
# =============================================================================

SELF_HARM = _rx(
    r"\b(kill myself|end my life|suicide|suicid\w*|harm myself|hurt myself"
    r"|i (do ?n'?t|dont) want to live|want to die|better off dead)\b"
)

EMERGENCY_PHYSICAL = _rx(
    r"\b(severe|heavy bleeding|passing clots|faint(ing)?|collapse[ds]?|chest pain"
    r"|can('?t| not)? breathe|difficulty breathing|shortness of breath"
    r"|convulsions?|seizures?|unconscious)\b"
)

# Independent wording used by the router as a second, redundant safety net
CRISIS_KEYWORDS = _rx(
    r"\b(suicid|kill (myself|my baby)|end it all|self[-\s]?harm|overdose"
    r"|bleeding (a lot|heavily|won'?t stop)|soaking (a )?pads?|(having|had) (a )?fits?\b|not breathing"
    r"|baby (is )?(blue|limp|not breathing))"
)


# =============================================================================
# Tone (first match wins)
# =============================================================================

TONE_PATTERNS: List[Tuple[str, List[Pattern]]] = [
    ("sad", [
        _rx(r"\b(sad|down|low|cry|crying|teary|depressed|blue|heartbroken)\b"),
        _rx(_any("😔", "😢", "😞", "😭", "💙")),
    ]),
    ("anxious", [
        _rx(r"\b(anxious|anxiety|worried|scared|afraid|nervous|panic|panicky)\b"),
        _rx(_any("😟", "😰", "😨", "😥")),
    ]),
    ("stressed", [
        _rx(r"\b(stressed|overwhelmed|burnt out|burned out|exhausted|tired|drained|frazzled)\b"),
        _rx(_any("😩", "😮‍💨", "😫")),
    ]),
    ("angry", [
        _rx(r"\b(angry|mad|furious|annoyed|irritated|frustrated|fed up)\b"),
        _rx(_any("😡", "🤬", "👿")),
    ]),
    ("confused", [
        _rx(r"\b(confused|unsure|don'?t know|not sure|unclear|huh)\b"),
        _rx(_any("🤔", "😕")),
    ]),
    ("greeting", [
        _rx(r"^(hi|hey|hello|heyy|hiya|hie|howzit|yo|sup)\b"),
        _rx(r"\bgood (morning|afternoon|evening)\b"),
        _rx(_any("👋", "🙂", "😊", "😉", "✌️", "👌", "🤝")),
    ]),
    ("thankful", [
        _rx(r"\b(thanks|thank you|appreciate|grateful|cheers)\b"),
        _rx(_any("🙏", "🌸")),
    ]),
    ("happy", [
        _rx(r"\b(happy|excited|good|great|awesome|yay|relieved|hopeful|proud)\b"),
        _rx(r"\b(lol|haha|hehe|lmao)\b"),
        _rx(_any("😄", "😁", "🤗", "✨", "🥳", "💖", "❤️‍🔥")),
    ]),
    ("curious", [
        _rx(r"\?$"),
        _rx(r"\b(can you|could you|how do|what is|why|explain|wonder)\b"),
    ]),
]


# =============================================================================
# Conversational management intents (first match wins)
# =============================================================================

GREETING_INTENT = _rx(r"^(hi|hey|hello|hie|heyy|howzit|morning|afternoon|evening)\b|👋")
GRATITUDE = _rx(r"\b(thanks|thank you|much appreciated|appreciate it|cheers)\b")
GOODBYE = _rx(r"\b(bye|goodbye|see you|gtg|talk later|catch you)\b")
CLARIFY = _rx(r"\b(what do you mean|not clear|explain|clarify|make it simple|simple terms)\b")
FOLLOWUP = _rx(r"\b(tell me more|more detail|elaborate|expand|give me more)\b")
CARE_NAV = _rx(
    r"\b(clinic|hospital|midwife|sister|nurse|doctor|ob[-\s]?gyn|nearest|appointment"
    r"|book|hotline|helpline|call|number|where can i go)\b"
)


# =============================================================================
# Info-like gate
# =============================================================================

IS_QUESTION = _rx(r"(\?|^how\b|^what\b|^when\b|^why\b|^which\b|^where\b|^can\b|^should\b|^is it\b)")
WANTS_SOURCES = _rx(r"\b(who|unicef|department of health|do[ht]|guideline|source|evidence|research|nice|bmj)\b")
MEDICALISH = _rx(
    r"\b(fever|bleeding|pain|swelling|medicine|medication|dose|trimester|ultrasound|screening"
    r"|mastitis|breast(?:\s*|-)feeding|latch|colic|contractions?|labou?r|dehydration"
    r"|hypertension|pre[-\s]?eclampsia|gestational|post(?:partum|natal)|perinatal|depression"
    r"|anxiety|baby blues|pnd|contracept\w*|family planning|birth\s*-?\s*control|jaundice|umbilical)\b"
)


# =============================================================================
# Domain topics (shared by the intent classifier and the result ranker)
# =============================================================================

TOPIC_PATTERNS: Dict[str, Pattern] = {
    "breastfeeding": _rx(
        r"\b(breast\s*feed(ing)?|breastfeed(ing)?|lactation|latch(ing)?|milk\s*supply|colostrum"
        r"|mastitis|engorgement|wean(ing)?|exclusive)\b"
    ),
    "newborn": _rx(
        r"\b(newborn|baby (sleep|feeding)|colic|burp(ing)?|nappy|diaper|jaundice|umbilical"
        r"|cord care|skin(?:\s*-\s*| )to(?:\s*-\s*| )skin)\b"
    ),
    "psych": _rx(r"\b(post(?:partum|natal)|perinatal)\b.*\b(depression|anxiety|pnd)\b|\b(baby\s*blues)\b"),
    "obstetric": _rx(
        r"\b(trimester|ultrasound|scan|screening|kick count|reduced movements|spotting|cramp"
        r"|contractions?|waters? (broke|breaking)|swelling|pre[-\s]?eclampsia|gestational|gdm)\b"
    ),
    "meds": _rx(
        r"\b(paracetamol|acetaminophen|ibuprofen|antibiotic|iron|folate|folic acid|prenatal"
        r"|dose|dosage|mg|medication|medicine|safe to take)\b"
    ),
    "contraception": _rx(
        r"\b(birth\s*-?\s*control|contracept\w*|family planning|postpartum\s+contracept\w*)\b"
    ),
    "labour": _rx(
        r"\b(labou?r|contractions?|tim(ing|e) contractions?|waters? (broke|breaking)|mucus plug"
        r"|bloody show|birth plan|delivery|active labour|latent labour)\b"
    ),
    "postpartum": _rx(
        r"\b(post(?:partum|natal)|after birth|lochia|perineal|stitches|c-?section recovery"
        r"|bleeding after birth|postpartum check|afterpains)\b"
    ),
    "nutrition": _rx(
        r"\b(nutrition|diet|foods?|what (to|can i) eat|eat(ing)? well|supplements?|folate"
        r"|folic acid|iron|calcium|iodine|vitamin\s*(d|b12)|caffeine|alcohol)\b"
    ),
    "warning_signs": _rx(
        r"\b(warning signs?|red flags?|danger signs?|severe headache|blurred vision|fits|fever"
        r"|reduced (baby )?movements?|heavy bleeding|severe pain|swelling of (face|hands))\b"
    ),
    "clinic_visits": _rx(
        r"\b(antenatal|anc|prenatal|booking|first booking|visit schedule|how often"
        r"|how many visits|when should i go|clinic card|maternity record)\b"
    ),
    "immunization": _rx(
        r"\b(vaccin(e|es|ation)|immuni[sz]e|immuni[sz]ation|shots?|bcg|opv|ipv|hep(?:atitis)? ?b"
        r"|dtap|mmr|6 ?weeks|10 ?weeks|14 ?weeks|measles)\b"
    ),
}


# =============================================================================
# Fallthrough lexicons
# =============================================================================

LOW_MOOD = _rx(
    r"\b(sad|down|overwhelmed|anxious|worried|confused|stressed|tired|lonely|drained|scared|fearful)\b"
)
SMALLTALK = _rx(r"^hmm$|lol|haha|hehe|" + _any("😊", "☺️", "😅", "😂", "🤣", "😉", "🙂", "❤️"))


# =============================================================================
# Router-level predicates
# =============================================================================

STRICT_GREETING = _rx(r"^(hi|hey|hello|hie|heyy|hiya|howzit|yo|sup|morning|afternoon|evening)[!.,\s]?$")
GREETING_EMOJI = _rx(_any("👋", "🙂", "😊", "😉"))
SOCIAL_CHECK_IN = _rx(
    r"\b(how\s*(are|r)\s*(you|u)\??|how[’']?s it going|how is it going|how are things"
    r"|you ok(ay)?|you alright)\b"
)
CONSENT_YES = _rx(r"\b(yes|sure|ok|okay|please|go ahead|yep|yeah)\b")
CONSENT_NO = _rx(r"\b(no|nope|nah|not now|later)\b")
