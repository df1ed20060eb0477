"""
Tests for the Conversation Router

Exercises the routing priority, the consent and result-picking states, and
how each flow degrades when the gateway or the model fails.
"""

import json

import pytest
from unittest.mock import AsyncMock, Mock


TOPICS = [
    {
        "title": "Breastfeeding",
        "path": "content/breastfeeding.json",
        "keywords": ["latch", "milk supply"],
        "aliases": ["nursing"],
        "tags": [],
    },
    {
        "title": "Mental health",
        "path": "content/mental_health.json",
        "keywords": ["baby blues"],
        "aliases": ["postnatal depression"],
        "tags": [],
    },
]

BREASTFEEDING_PACK = {
    "definition": "Breastfeeding is feeding a baby breast milk.",
    "reassurance": "Many parents find the first weeks tricky.",
    "steps": ["Feed on demand", "Check the latch"],
}


@pytest.fixture
def catalog(tmp_path):
    from companion.knowledge import load_catalog

    root = tmp_path / "content"
    root.mkdir()
    (root / "topics.json").write_text(json.dumps(TOPICS), encoding="utf-8")
    (root / "breastfeeding.json").write_text(json.dumps(BREASTFEEDING_PACK), encoding="utf-8")
    # mental_health.json is listed but missing on disk
    return load_catalog(root)


@pytest.fixture
def gateway():
    gw = Mock()
    gw.search = AsyncMock(return_value=[])
    gw.fetch = AsyncMock()
    return gw


@pytest.fixture
def llm():
    client = Mock()
    client.is_available = True
    client.complete.return_value = ""
    return client


def make_router(catalog, gateway, llm=None, **kwargs):
    from companion.router import ConversationRouter

    kwargs.setdefault("rewrite_queries", False)
    return ConversationRouter(catalog=catalog, gateway=gateway, llm_client=llm, **kwargs)


def candidates(*urls):
    from companion.retriever import SearchCandidate

    return [SearchCandidate(title=f"Page {i}", url=url) for i, url in enumerate(urls, start=1)]


def article(text, url=""):
    from companion.retriever import ExtractedArticle

    return ExtractedArticle(title="t", text=text, char_count=len(text), truncated=False, url=url)


class TestSafetyGate:
    @pytest.mark.asyncio
    async def test_crisis_reply_without_network_or_model(self, catalog, gateway, llm):
        from companion.router import Route, replies

        router = make_router(catalog, gateway, llm)
        session = router.new_session()

        turn = await router.handle(session, "I want to kill myself")

        assert turn.route == Route.EMERGENCY
        assert turn.replies == [replies.CRISIS]
        assert "0800 567 567" in turn.text
        llm.complete.assert_not_called()
        gateway.search.assert_not_awaited()
        gateway.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_crisis_lexicon_alone_triggers(self, catalog, gateway, llm):
        from companion.router import Route

        router = make_router(catalog, gateway, llm)
        turn = await router.handle(router.new_session(), "my baby is not breathing")

        assert turn.route == Route.EMERGENCY

    @pytest.mark.asyncio
    async def test_emergency_while_awaiting_consent(self, catalog, gateway, llm):
        from companion.router import Route, RouterState

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        await router.handle(session, "what is birth control?")
        assert session.state is RouterState.AWAITING_SEARCH_CONSENT

        turn = await router.handle(session, "yes but I am bleeding heavily")

        assert turn.route == Route.EMERGENCY
        assert session.state is RouterState.IDLE
        gateway.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_emergency_while_picking(self, catalog, gateway, llm):
        from companion.router import Route, RouterState

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.set_candidates("q", candidates("https://www.who.int/a"))

        turn = await router.handle(session, "thinking about suicide")

        assert turn.route == Route.EMERGENCY
        assert session.state is RouterState.IDLE
        gateway.fetch.assert_not_awaited()


class TestScriptedReplies:
    @pytest.mark.asyncio
    async def test_greeting_then_repeat(self, catalog, gateway):
        from companion.router import replies

        router = make_router(catalog, gateway)
        session = router.new_session()

        first = await router.handle(session, "hi")
        second = await router.handle(session, "hey!")

        assert first.replies == [replies.GREETING_FIRST]
        assert second.replies == [replies.GREETING_REPEAT]

    @pytest.mark.asyncio
    async def test_greeting_resets_after_window(self, catalog, gateway):
        from companion.router import replies

        router = make_router(catalog, gateway)
        session = router.new_session()

        await router.handle(session, "hi")
        await router.handle(session, "thank you so much")
        later = await router.handle(session, "hello")

        assert later.replies == [replies.GREETING_FIRST]

    @pytest.mark.asyncio
    async def test_social_check_in(self, catalog, gateway):
        from companion.router import Route, replies

        router = make_router(catalog, gateway)
        turn = await router.handle(router.new_session(), "how are you?")

        assert turn.route == Route.SOCIAL_CHECK_IN
        assert turn.replies == [replies.SOCIAL_CHECK_IN]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,intent", [
        ("thank you so much", "gratitude"),
        ("bye for now", "goodbye"),
        ("what do you mean", "clarify"),
        ("tell me more", "followup"),
        ("where is the nearest clinic", "care_nav"),
        ("haha", "smalltalk"),
    ])
    async def test_quick_replies(self, catalog, gateway, llm, text, intent):
        from companion.router import Route, replies

        router = make_router(catalog, gateway, llm)
        turn = await router.handle(router.new_session(), text)

        assert turn.route == Route.QUICK_REPLY
        assert turn.replies == [replies.QUICK_REPLIES[intent]]
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_empty_message(self, catalog, gateway):
        from companion.router import Route

        router = make_router(catalog, gateway)
        session = router.new_session()

        turn = await router.handle(session, "   ")

        assert turn.route == Route.EMPTY
        assert turn.replies == []
        assert session.turns == 0


class TestKnowledgePacks:
    @pytest.mark.asyncio
    async def test_resolver_match_is_paraphrased(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.return_value = (
            "Here's a summary: Feeding often helps. Check the latch. Rest when you can. Extra sentence."
        )
        router = make_router(catalog, gateway, llm)

        turn = await router.handle(router.new_session(), "my milk supply is low")

        assert turn.route == Route.KNOWLEDGE_PACK
        assert turn.document.title == "Breastfeeding"
        assert turn.replies == ["Feeding often helps. Check the latch. Rest when you can."]
        messages = llm.complete.call_args.args[0]
        assert "Definition: Breastfeeding is feeding a baby breast milk." in messages[1]["content"]
        gateway.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_pack_file(self, catalog, gateway, llm):
        from companion.router import Route, replies

        router = make_router(catalog, gateway, llm)
        turn = await router.handle(router.new_session(), "is this postnatal depression?")

        assert turn.route == Route.KNOWLEDGE_PACK
        assert turn.replies == [replies.PACK_LOAD_FAILED]
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_model_for_paraphrase(self, catalog, gateway):
        from companion.router import replies

        router = make_router(catalog, gateway, llm=None)
        turn = await router.handle(router.new_session(), "tips for a good latch")

        assert turn.replies == [replies.PACK_LOAD_FAILED]

    @pytest.mark.asyncio
    async def test_paraphrase_failure(self, catalog, gateway, llm):
        from companion.router import replies

        llm.complete.side_effect = RuntimeError("LLM client is not available")
        router = make_router(catalog, gateway, llm)
        turn = await router.handle(router.new_session(), "tips for a good latch")

        assert turn.replies == [replies.PACK_LOAD_FAILED]

    @pytest.mark.asyncio
    async def test_info_intent_uses_mapped_pack(self, tmp_path, gateway, llm):
        from companion.knowledge import load_catalog
        from companion.router import Route

        root = tmp_path / "content"
        root.mkdir()
        topics = [{"title": "Feeding basics", "path": "content/breastfeeding.json"}]
        (root / "topics.json").write_text(json.dumps(topics), encoding="utf-8")
        (root / "breastfeeding.json").write_text(json.dumps(BREASTFEEDING_PACK), encoding="utf-8")
        llm.complete.return_value = "Try a deeper latch."

        router = make_router(load_catalog(root), gateway, llm)
        turn = await router.handle(router.new_session(), "how do I fix a bad latch?")

        assert turn.route == Route.KNOWLEDGE_PACK
        assert turn.document.path == "breastfeeding.json"
        assert turn.replies == ["Try a deeper latch."]


class TestSearchConsent:
    @pytest.mark.asyncio
    async def test_unmapped_info_asks_consent_then_searches(self, catalog, gateway, llm):
        from companion.router import Route, RouterState, replies

        gateway.search.return_value = candidates("https://www.who.int/a", "https://www.unicef.org/b")
        router = make_router(catalog, gateway, llm)
        session = router.new_session()

        asked = await router.handle(session, "what is birth control?")

        assert asked.route == Route.ASK_CONSENT
        assert asked.replies == [replies.ASK_SEARCH_CONSENT]
        assert session.consent.pending.content == "what is birth control?"
        gateway.search.assert_not_awaited()

        found = await router.handle(session, "yes please")

        assert found.route == Route.SEARCH
        assert session.consent.granted
        assert session.consent.pending is None
        gateway.search.assert_awaited_once_with("birth control?", count=3)
        assert found.text.startswith(replies.SEARCH_INTRO)
        assert "1. Page" in found.text
        assert session.state is RouterState.PICKING_RESULT

    @pytest.mark.asyncio
    async def test_granted_consent_searches_directly(self, catalog, gateway, llm):
        from companion.router import Route

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.consent.granted = True

        turn = await router.handle(session, "what is birth control?")

        assert turn.route == Route.SEARCH
        gateway.search.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_query_rewrite(self, catalog, gateway, llm):
        llm.complete.return_value = 'contraception "birth control" family planning?!'
        router = make_router(catalog, gateway, llm, rewrite_queries=True)
        session = router.new_session()
        session.consent.granted = True

        await router.handle(session, "what is birth control?")

        gateway.search.assert_awaited_once_with('contraception "birth control" family planning', count=3)

    @pytest.mark.asyncio
    async def test_declined(self, catalog, gateway, llm):
        from companion.router import Route, RouterState, replies

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        await router.handle(session, "what is birth control?")

        turn = await router.handle(session, "no thanks")

        assert turn.route == Route.CONSENT_DECLINED
        assert turn.replies == [replies.CONSENT_DECLINED]
        assert session.state is RouterState.IDLE
        assert not session.consent.granted
        gateway.search.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ambiguous_reply_falls_through(self, catalog, gateway, llm):
        from companion.router import Route, RouterState

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        await router.handle(session, "what is birth control?")

        turn = await router.handle(session, "hello")

        assert turn.route == Route.GREETING
        assert session.state is RouterState.IDLE

    @pytest.mark.asyncio
    async def test_no_results(self, catalog, gateway, llm):
        from companion.router import RouterState, replies

        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.consent.granted = True

        turn = await router.handle(session, "what is birth control?")

        assert turn.replies == [replies.NO_SOLID_SOURCE]
        assert session.state is RouterState.IDLE

    @pytest.mark.asyncio
    async def test_gateway_unreachable(self, catalog, gateway, llm):
        from companion.gateway import GatewayError, GatewayErrorCode
        from companion.router import replies

        gateway.search.side_effect = GatewayError(GatewayErrorCode.UPSTREAM_ERROR, "Gateway unreachable")
        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.consent.granted = True

        turn = await router.handle(session, "what is birth control?")

        assert turn.replies == [replies.SEARCH_UNREACHABLE]

    @pytest.mark.asyncio
    async def test_results_are_ranked(self, catalog, gateway, llm):
        gateway.search.return_value = candidates(
            "https://www.who.int/news/item/appeal",
            "https://www.who.int/health-topics/contraception",
        )
        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.consent.granted = True

        await router.handle(session, "what is birth control?")

        assert session.candidates[0].url == "https://www.who.int/health-topics/contraception"


class TestResultPicking:
    @pytest.fixture
    def picking(self, catalog, gateway, llm):
        router = make_router(catalog, gateway, llm)
        session = router.new_session()
        session.set_candidates("what is the sky?", candidates("https://www.who.int/a.pdf", "https://www.who.int/b"))
        return router, session

    @pytest.mark.asyncio
    async def test_pdf_then_next_candidate(self, picking, gateway, llm):
        from companion.gateway import GatewayError, GatewayErrorCode
        from companion.router import RouterState

        router, session = picking
        gateway.fetch.side_effect = [
            GatewayError(GatewayErrorCode.PDF, "PDF not supported by extractor"),
            article("The sky is blue. Rain is wet."),
        ]
        llm.complete.return_value = "- The sky is blue.\n- Grass is purple."

        turn = await router.handle(session, "1")

        assert turn.replies == [
            "That link is a PDF and my extractor can’t read it yet. Trying the next one…",
            "• The sky is blue.\n\nSource: https://www.who.int/b",
        ]
        assert [c.args[0] for c in gateway.fetch.await_args_list] == [
            "https://www.who.int/a.pdf",
            "https://www.who.int/b",
        ]
        assert session.state is RouterState.IDLE

    @pytest.mark.asyncio
    async def test_all_candidates_fail(self, picking, gateway):
        from companion.gateway import GatewayError, GatewayErrorCode
        from companion.router import RouterState, replies

        router, session = picking
        gateway.fetch.side_effect = GatewayError(GatewayErrorCode.NOT_FOUND, "Upstream HTTP 404")

        turn = await router.handle(session, "1")

        assert turn.replies == [
            "I couldn’t fetch that page (HTTP 404 – Upstream HTTP 404). Trying the next one…",
            "I couldn’t fetch that page (HTTP 404 – Upstream HTTP 404).",
            replies.SOURCES_EXHAUSTED,
        ]
        assert session.state is RouterState.IDLE

    @pytest.mark.asyncio
    async def test_yes_after_last_unquotable_reports_exhaustion(self, picking, gateway, llm):
        from companion.router import Route, RouterState, replies

        router, session = picking
        gateway.fetch.return_value = article("Nothing useful here.")
        llm.complete.return_value = "- Invented line."

        first = await router.handle(session, "2")
        assert first.replies == [replies.NO_QUOTABLE_CONTENT]
        assert session.cursor == 1

        second = await router.handle(session, "yes")

        assert second.route == Route.PICK
        assert second.replies == [replies.SOURCES_EXHAUSTED]
        assert session.state is RouterState.IDLE
        assert gateway.fetch.await_count == 1
        assert llm.complete.call_count == 1

    def test_last_fetch_failure_has_no_next_suffix(self):
        from companion.gateway import GatewayError, GatewayErrorCode
        from companion.router import replies

        error = GatewayError(GatewayErrorCode.PDF, "PDF not supported by extractor")

        assert replies.fetch_failure(error).endswith("Trying the next one…")
        assert replies.fetch_failure(error, has_next=False) == (
            "That link is a PDF and my extractor can’t read it yet."
        )

    @pytest.mark.asyncio
    async def test_unquotable_then_yes_tries_next(self, picking, gateway, llm):
        from companion.router import replies

        router, session = picking
        gateway.fetch.side_effect = [
            article("Nothing useful here."),
            article("The sky is blue."),
        ]
        llm.complete.side_effect = ["- Invented line.", "- The sky is blue."]

        first = await router.handle(session, "1")
        assert first.replies == [replies.NO_QUOTABLE_CONTENT]
        assert session.cursor == 0

        second = await router.handle(session, "yes")
        assert second.replies == ["• The sky is blue.\n\nSource: https://www.who.int/b"]

    @pytest.mark.asyncio
    async def test_out_of_range_number_leaves_picking(self, picking, gateway):
        from companion.router import RouterState

        router, session = picking
        await router.handle(session, "7")

        gateway.fetch.assert_not_awaited()
        assert session.state is RouterState.IDLE

    @pytest.mark.asyncio
    async def test_pick_entry_point(self, picking, gateway, llm):
        router, session = picking
        gateway.fetch.return_value = article("The sky is blue.")
        llm.complete.return_value = "The sky is blue."

        turn = await router.pick(session, 1)

        assert turn.replies == ["• The sky is blue.\n\nSource: https://www.who.int/b"]
        assert session.history[-1].content == turn.replies[0]

    @pytest.mark.asyncio
    async def test_pick_without_candidates(self, catalog, gateway):
        from companion.router import replies

        router = make_router(catalog, gateway)
        turn = await router.pick(router.new_session(), 0)

        assert turn.replies == [replies.NOTHING_TO_PICK]


class TestChatAndModelRouting:
    @pytest.mark.asyncio
    async def test_supportive_chat(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.return_value = "That sounds lovely. Fresh air helps. A third sentence."
        router = make_router(catalog, gateway, llm, llm_routing=False)

        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.route == Route.CHAT
        assert turn.replies == ["That sounds lovely. Fresh air helps."]

    @pytest.mark.asyncio
    async def test_chat_failure_apologizes(self, catalog, gateway, llm):
        from companion.router import Route, replies

        llm.complete.side_effect = RuntimeError("provider down")
        router = make_router(catalog, gateway, llm)

        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.route == Route.CHAT
        assert turn.replies == [replies.CHAT_FAILED]

    @pytest.mark.asyncio
    async def test_chat_without_model(self, catalog, gateway):
        from companion.router import replies

        router = make_router(catalog, gateway)
        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.replies == [replies.CHAT_FAILED]

    @pytest.mark.asyncio
    async def test_chat_sees_prior_history(self, catalog, gateway, llm):
        router = make_router(catalog, gateway, llm, llm_routing=False)
        session = router.new_session()
        await router.handle(session, "hi")

        llm.complete.return_value = "Nice."
        await router.handle(session, "I went for a walk")

        messages = llm.complete.call_args.args[0]
        assert [m["content"] for m in messages[1:]] == ["hi", "hey 👋 how’s your day going?", "I went for a walk"]

    @pytest.mark.asyncio
    async def test_model_flags_emergency(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.return_value = '{"action": "emergency", "topic_hint": null, "needs_sources": false}'
        router = make_router(catalog, gateway, llm)

        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.route == Route.EMERGENCY

    @pytest.mark.asyncio
    async def test_model_requests_sources(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.return_value = '{"action": "info_search", "topic_hint": null, "needs_sources": true}'
        router = make_router(catalog, gateway, llm)
        session = router.new_session()

        turn = await router.handle(session, "I went for a walk")

        assert turn.route == Route.ASK_CONSENT
        assert session.consent.pending.content == "I went for a walk"

    @pytest.mark.asyncio
    async def test_model_topic_hint_paraphrases(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.side_effect = [
            '```json\n{"action": "info_local", "topic_hint": "breastfeeding", "needs_sources": false}\n```',
            "Feeding gets easier.",
        ]
        router = make_router(catalog, gateway, llm)

        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.route == Route.KNOWLEDGE_PACK
        assert turn.document.title == "Breastfeeding"
        assert turn.replies == ["Feeding gets easier."]

    @pytest.mark.asyncio
    async def test_malformed_hint_means_chat(self, catalog, gateway, llm):
        from companion.router import Route

        llm.complete.side_effect = ["not json at all", "Sounds nice."]
        router = make_router(catalog, gateway, llm)

        turn = await router.handle(router.new_session(), "I went for a walk")

        assert turn.route == Route.CHAT
        assert turn.replies == ["Sounds nice."]


class TestSessionContext:
    def test_history_is_bounded_but_turns_are_not(self):
        from companion.router import Role, SessionContext

        session = SessionContext(history_size=6)
        for i in range(10):
            session.record(Role.USER, f"m{i}")

        assert len(session.history) == 6
        assert session.history[0].content == "m4"
        assert session.turns == 10

    def test_new_consent_request_replaces_pending(self):
        from companion.router import SessionContext

        session = SessionContext()
        session.request_consent("first")
        session.request_consent("second")

        assert session.clear_pending().content == "second"
        assert session.consent.pending is None

    @pytest.mark.asyncio
    async def test_router_records_both_sides(self, catalog, gateway):
        from companion.router import Role

        router = make_router(catalog, gateway, history_size=3)
        session = router.new_session()
        await router.handle(session, "hi")
        await router.handle(session, "how are you?")

        assert [m.role for m in session.history] == [Role.ASSISTANT, Role.USER, Role.ASSISTANT]
        assert session.turns == 4
