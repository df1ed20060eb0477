"""
Tests for the Text Classifier

Pins the intent priority order, the safety gate, tone precedence, and the
router-level predicates.
"""

import pytest


class TestSafetyGate:
    """Emergency wording short-circuits everything else"""

    @pytest.mark.parametrize("text", [
        "severe heavy bleeding",
        "I want to kill myself",
        "i dont want to live anymore",
        "she is having a seizure",
        "chest pain and I can't breathe",
        "passing clots since this morning",
        "I keep fainting",
        "thinking about suicide",
    ])
    def test_emergency_lexicon(self, text):
        from companion.classifier import Intent, classify

        assert classify(text).intent == Intent.EMERGENCY

    def test_emergency_regardless_of_tone(self):
        from companion.classifier import Intent, Tone, classify

        result = classify("I'm so happy but I want to die lol")

        assert result.tone == Tone.HAPPY
        assert result.intent == Intent.EMERGENCY
        assert result.is_emergency

    def test_emergency_beats_greeting(self):
        from companion.classifier import Intent, detect_intent

        assert detect_intent("hi, I am bleeding heavily and fainting") == Intent.EMERGENCY

    def test_emergency_beats_gratitude(self):
        from companion.classifier import Intent, detect_intent

        assert detect_intent("thanks, but the pain is severe") == Intent.EMERGENCY

    def test_crisis_lexicon_is_independent(self):
        from companion.classifier import mentions_crisis

        assert mentions_crisis("my baby is not breathing")
        assert mentions_crisis("I'm soaking pads every hour")
        assert mentions_crisis("thinking about self-harm")
        assert not mentions_crisis("benefits of breastfeeding")
        assert not mentions_crisis("what fits in a hospital bag")


class TestIntentCascade:
    """Conversation intents, then gated topics, then fallthrough"""

    @pytest.mark.parametrize("text,expected", [
        ("hi", "greeting"),
        ("hello there", "greeting"),
        ("thank you so much", "gratitude"),
        ("bye for now", "goodbye"),
        ("what do you mean", "clarify"),
        ("tell me more", "followup"),
        ("where is the nearest clinic", "care_nav"),
        ("how do I fix a bad latch?", "info:breastfeeding"),
        ("what is birth control", "info:contraception"),
        ("is paracetamol safe to take?", "info:meds"),
        ("what should I know about postpartum depression?", "info:psych"),
        ("i have a fever", "info:warning_signs"),
        ("when do babies get the measles vaccine?", "info:immunization"),
        ("why is the sky blue?", "info"),
        ("I feel so lonely today", "comfort"),
        ("haha", "smalltalk"),
        ("I went for a walk", "feelings"),
    ])
    def test_detect_intent(self, text, expected):
        from companion.classifier import detect_intent

        assert detect_intent(text).value == expected

    def test_gratitude_before_goodbye(self):
        from companion.classifier import Intent, detect_intent

        assert detect_intent("thanks, bye") == Intent.GRATITUDE

    def test_clarify_before_info(self):
        from companion.classifier import Intent, detect_intent

        assert detect_intent("can you explain breastfeeding?") == Intent.CLARIFY

    def test_care_nav_before_info(self):
        from companion.classifier import Intent, detect_intent

        assert detect_intent("which clinic does the ultrasound?") == Intent.CARE_NAV

    def test_topic_needs_info_like_gate(self):
        """A body word in a casual statement is not an info request"""
        from companion.classifier import Intent, detect_intent, is_info_like

        assert not is_info_like("my breast feels sore")
        assert detect_intent("my breast feels sore") == Intent.FEELINGS

    def test_rule_order_is_explicit(self):
        from companion.classifier import Intent
        from companion.classifier.text_classifier import INTENT_RULES, TOPIC_RULES

        assert [intent for _, intent in INTENT_RULES] == [
            Intent.GREETING,
            Intent.GRATITUDE,
            Intent.GOODBYE,
            Intent.CLARIFY,
            Intent.FOLLOWUP,
            Intent.CARE_NAV,
        ]
        assert [intent.topic for _, intent in TOPIC_RULES] == [
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
        ]

    def test_info_helpers(self):
        from companion.classifier import Intent

        assert Intent.INFO.is_info
        assert Intent.INFO_MEDS.is_info
        assert Intent.INFO_MEDS.topic == "meds"
        assert Intent.INFO.topic is None
        assert not Intent.COMFORT.is_info


class TestToneAndEnergy:
    def test_anxious_not_shadowed_by_question_mark(self):
        from companion.classifier import Tone, classify_tone

        assert classify_tone("I'm anxious about the scan?") == Tone.ANXIOUS

    @pytest.mark.parametrize("text,expected", [
        ("hello there", "greeting"),
        ("we're so excited", "happy"),
        ("thank you", "thankful"),
        ("can you help me", "curious"),
        ("I'm not sure about this", "confused"),
        ("feeling really down", "sad"),
        ("so overwhelmed this week", "stressed"),
        ("I'm furious with the nurse", "angry"),
        ("ok", "neutral"),
        ("", "neutral"),
    ])
    def test_classify_tone(self, text, expected):
        from companion.classifier import classify_tone

        assert classify_tone(text).value == expected

    @pytest.mark.parametrize("words,expected", [
        (0, "very_short"),
        (2, "very_short"),
        (3, "short"),
        (8, "short"),
        (9, "medium"),
        (25, "medium"),
        (26, "long"),
    ])
    def test_energy_buckets(self, words, expected):
        from companion.classifier import classify_energy

        assert classify_energy(" ".join(["word"] * words)).value == expected

    def test_never_throws(self):
        from companion.classifier import Intent, Tone, classify

        assert classify(None).intent == Intent.FEELINGS
        assert classify("").tone == Tone.NEUTRAL
        result = classify("🙃" * 500 + " ???")
        assert result.intent == Intent.INFO

    def test_classification_is_deterministic(self):
        from companion.classifier import classify

        text = "how often should I go to the clinic for antenatal visits?"
        assert classify(text) == classify(text)


class TestRouterPredicates:
    def test_is_greeting_whole_message_only(self):
        from companion.classifier import is_greeting

        assert is_greeting("hey!")
        assert is_greeting("Morning")
        assert is_greeting("👋")
        assert not is_greeting("hey can you help with latching")

    def test_social_check_in(self):
        from companion.classifier import is_social_check_in

        assert is_social_check_in("how are you?")
        assert is_social_check_in("hows it going")
        assert not is_social_check_in("how are babies vaccinated")

    @pytest.mark.parametrize("text,expected", [
        ("yes please", "yes"),
        ("sure, go ahead", "yes"),
        ("no thanks", "no"),
        ("not now", "no"),
        ("maybe", "unclear"),
        ("okay no", "yes"),
    ])
    def test_interpret_consent(self, text, expected):
        from companion.classifier import interpret_consent

        assert interpret_consent(text).value == expected
