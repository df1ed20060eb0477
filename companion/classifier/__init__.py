"""
Classifier - Pattern-based message classification

Maps raw user text onto energy, tone, and intent with ordered regex tables.
Every other component trusts this output without re-validating it.
"""

from .text_classifier import (
    Classification,
    ConsentAnswer,
    Energy,
    Intent,
    Tone,
    classify,
    classify_energy,
    classify_tone,
    detect_intent,
    interpret_consent,
    is_emergency,
    is_greeting,
    is_info_like,
    is_social_check_in,
    mentions_crisis,
)

__all__ = [
    "Classification",
    "ConsentAnswer",
    "Energy",
    "Intent",
    "Tone",
    "classify",
    "classify_energy",
    "classify_tone",
    "detect_intent",
    "interpret_consent",
    "is_emergency",
    "is_greeting",
    "is_info_like",
    "is_social_check_in",
    "mentions_crisis",
]
