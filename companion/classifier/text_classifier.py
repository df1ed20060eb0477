"""
Text Classifier

Pattern-based classification of a raw user message into energy, tone, and
intent. Pure and stateless: the same text always yields the same result, and
no input can make it raise.

Intent is decided in two stages:
1. Hard safety gate: self-harm or acute physical emergency wording returns
   EMERGENCY before anything else is considered.
2. A priority cascade over INTENT_RULES, then the info-like gate over the
   domain topics, then the low-mood / smalltalk / feelings fallthrough.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from . import patterns as p


class Energy(str, Enum):
    """Message length bucket; bounds reply length, never routing"""
    VERY_SHORT = "very_short"  # <= 2 words
    SHORT = "short"  # <= 8 words
    MEDIUM = "medium"  # <= 25 words
    LONG = "long"


class Tone(str, Enum):
    """Dominant affect of a message"""
    GREETING = "greeting"
    HAPPY = "happy"
    THANKFUL = "thankful"
    CURIOUS = "curious"
    CONFUSED = "confused"
    SAD = "sad"
    ANXIOUS = "anxious"
    STRESSED = "stressed"
    ANGRY = "angry"
    NEUTRAL = "neutral"


class Intent(str, Enum):
    """Closed intent taxonomy"""
    EMERGENCY = "emergency"
    GREETING = "greeting"
    GRATITUDE = "gratitude"
    GOODBYE = "goodbye"
    CLARIFY = "clarify"
    FOLLOWUP = "followup"
    CARE_NAV = "care_nav"
    INFO_BREASTFEEDING = "info:breastfeeding"
    INFO_NEWBORN = "info:newborn"
    INFO_PSYCH = "info:psych"
    INFO_OBSTETRIC = "info:obstetric"
    INFO_MEDS = "info:meds"
    INFO_CONTRACEPTION = "info:contraception"
    INFO_LABOUR = "info:labour"
    INFO_POSTPARTUM = "info:postpartum"
    INFO_NUTRITION = "info:nutrition"
    INFO_WARNING_SIGNS = "info:warning_signs"
    INFO_CLINIC_VISITS = "info:clinic_visits"
    INFO_IMMUNIZATION = "info:immunization"
    INFO = "info"
    COMFORT = "comfort"
    SMALLTALK = "smalltalk"
    FEELINGS = "feelings"

    @property
    def is_info(self) -> bool:
        return self is Intent.INFO or self.value.startswith("info:")

    @property
    def topic(self) -> Optional[str]:
        """Domain topic for scoped info intents ("info:meds" -> "meds")"""
        if self.value.startswith("info:"):
            return self.value.split(":", 1)[1]
        return None


@dataclass(frozen=True)
class Classification:
    """Result of classifying one message"""
    energy: Energy
    tone: Tone
    intent: Intent

    @property
    def is_emergency(self) -> bool:
        return self.intent is Intent.EMERGENCY


Predicate = Callable[[str], bool]


def _matches(pattern) -> Predicate:
    return lambda t: bool(pattern.search(t))


# Conversational management, evaluated in order after the safety gate
INTENT_RULES: List[Tuple[Predicate, Intent]] = [
    (_matches(p.GREETING_INTENT), Intent.GREETING),
    (_matches(p.GRATITUDE), Intent.GRATITUDE),
    (_matches(p.GOODBYE), Intent.GOODBYE),
    (_matches(p.CLARIFY), Intent.CLARIFY),
    (_matches(p.FOLLOWUP), Intent.FOLLOWUP),
    (_matches(p.CARE_NAV), Intent.CARE_NAV),
]

# Domain topics, evaluated in order once a message is info-like
TOPIC_RULES: List[Tuple[Predicate, Intent]] = [
    (_matches(p.TOPIC_PATTERNS[topic]), Intent(f"info:{topic}"))
    for topic in (
        "breastfeeding",
        "newborn",
        "psych",
        "obstetric",
        "meds",
        "contraception",
        "labour",
        "postpartum",
        "nutrition",
        "warning_signs",
        "clinic_visits",
        "immunization",
    )
]

FALLTHROUGH_RULES: List[Tuple[Predicate, Intent]] = [
    (_matches(p.LOW_MOOD), Intent.COMFORT),
    (_matches(p.SMALLTALK), Intent.SMALLTALK),
]


def _prepare(text: Optional[str]) -> str:
    return (text or "").lower().strip()


def classify_energy(text: Optional[str]) -> Energy:
    """Bucket a message by word count."""
    words = len((text or "").split())
    if words <= 2:
        return Energy.VERY_SHORT
    if words <= 8:
        return Energy.SHORT
    if words <= 25:
        return Energy.MEDIUM
    return Energy.LONG


def classify_tone(text: Optional[str]) -> Tone:
    """First matching tone category wins; negative affect is checked first."""
    t = _prepare(text)
    for tone, regexes in p.TONE_PATTERNS:
        if any(rx.search(t) for rx in regexes):
            return Tone(tone)
    return Tone.NEUTRAL


def is_emergency(text: Optional[str]) -> bool:
    """Self-harm or acute physical emergency wording."""
    t = _prepare(text)
    return bool(p.SELF_HARM.search(t) or p.EMERGENCY_PHYSICAL.search(t))


def is_info_like(text: Optional[str]) -> bool:
    """A question, a request for sources, or medical vocabulary."""
    t = _prepare(text)
    return bool(p.IS_QUESTION.search(t) or p.WANTS_SOURCES.search(t) or p.MEDICALISH.search(t))


def detect_intent(text: Optional[str]) -> Intent:
    """Map a message onto the intent taxonomy."""
    t = _prepare(text)

    if is_emergency(t):
        return Intent.EMERGENCY

    for predicate, intent in INTENT_RULES:
        if predicate(t):
            return intent

    if is_info_like(t):
        for predicate, intent in TOPIC_RULES:
            if predicate(t):
                return intent
        return Intent.INFO

    for predicate, intent in FALLTHROUGH_RULES:
        if predicate(t):
            return intent

    return Intent.FEELINGS


def classify(text: Optional[str]) -> Classification:
    """Classify a message into energy, tone, and intent."""
    return Classification(
        energy=classify_energy(text),
        tone=classify_tone(text),
        intent=detect_intent(text),
    )


# =============================================================================
# Router-level predicates
# =============================================================================

def is_greeting(text: Optional[str]) -> bool:
    """The whole message is a greeting word (or carries a greeting emoji)."""
    t = _prepare(text)
    return bool(p.STRICT_GREETING.search(t) or p.GREETING_EMOJI.search(t))


def is_social_check_in(text: Optional[str]) -> bool:
    """'How are you?' style check-ins aimed at the assistant."""
    return bool(p.SOCIAL_CHECK_IN.search(_prepare(text)))


def mentions_crisis(text: Optional[str]) -> bool:
    """Second, independently worded safety lexicon."""
    return bool(p.CRISIS_KEYWORDS.search(_prepare(text)))


class ConsentAnswer(str, Enum):
    YES = "yes"
    NO = "no"
    UNCLEAR = "unclear"


def interpret_consent(text: Optional[str]) -> ConsentAnswer:
    """Read a reply to a consent question; affirmative wording wins."""
    t = _prepare(text)
    if p.CONSENT_YES.search(t):
        return ConsentAnswer.YES
    if p.CONSENT_NO.search(t):
        return ConsentAnswer.NO
    return ConsentAnswer.UNCLEAR
