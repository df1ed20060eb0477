"""
Conversation Router

Decides, per user message, which response strategy runs:
scripted reply, knowledge-pack paraphrase, trusted web retrieval, or
supportive chat.

Priority (first match wins):
0. Safety gate (classifier emergency intent OR independent crisis lexicon),
   evaluated in every state before any model round-trip
1. Result picking (a number, or "yes" after an unquotable page)
2. Pending search consent (yes / no / ambiguous -> fall through)
3. Social check-in
4. Greeting
5. Quick conversational intents
6. Knowledge-pack resolver match -> paraphrase
7. Info intent with a mapped local pack -> paraphrase
8. Info intent without one -> search (consent granted) or ask for consent
9. Model routing hint (feelings / comfort only)
10. Supportive chat
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..classifier import (
    Classification,
    ConsentAnswer,
    Intent,
    classify,
    detect_intent,
    interpret_consent,
    is_greeting,
    is_social_check_in,
    mentions_crisis,
)
from ..common.config import CompanionConfig
from ..common.llm_client import LLMClient
from ..gateway.errors import GatewayError
from ..knowledge.catalog import KnowledgeCatalog, TopicDocument, load_catalog
from ..knowledge.resolver import KnowledgePackResolver
from ..retriever.gateway_client import GatewayClient
from ..retriever.ranker import rank
from ..retriever.summarizer import ExtractiveSummarizer
from . import flows, replies
from .session import Role, RouterState, SessionContext

logger = logging.getLogger("companion.router.router")

# Info intents answered from a local pack when that pack is in the catalog
INTENT_TO_PACK = {
    Intent.INFO_BREASTFEEDING: "breastfeeding.json",
    Intent.INFO_NEWBORN: "newborn_basics.json",
    Intent.INFO_PSYCH: "mental_health.json",
    Intent.INFO_OBSTETRIC: "antenatal_care_basics.json",
    Intent.INFO_MEDS: "medicines_in_pregnancy.json",
    Intent.INFO_CONTRACEPTION: "contraception_postpartum.json",
    Intent.INFO_LABOUR: "labour_and_birth.json",
    Intent.INFO_POSTPARTUM: "postpartum_care_basics.json",
    Intent.INFO_NUTRITION: "pregnancy_nutrition.json",
    Intent.INFO_WARNING_SIGNS: "warning_signs.json",
    Intent.INFO_CLINIC_VISITS: "antenatal_visit_schedule.json",
    Intent.INFO_IMMUNIZATION: "infant_immunization.json",
}

QUICK_INTENTS = (
    Intent.GRATITUDE,
    Intent.GOODBYE,
    Intent.CLARIFY,
    Intent.FOLLOWUP,
    Intent.CARE_NAV,
    Intent.SMALLTALK,
)

GREETING_REPEAT_WINDOW = 2


class Route(str, Enum):
    """Branch taken for one turn"""
    EMPTY = "empty"
    EMERGENCY = "emergency"
    SOCIAL_CHECK_IN = "social_check_in"
    GREETING = "greeting"
    QUICK_REPLY = "quick_reply"
    CONSENT_DECLINED = "consent_declined"
    KNOWLEDGE_PACK = "knowledge_pack"
    ASK_CONSENT = "ask_consent"
    SEARCH = "search"
    PICK = "pick"
    CHAT = "chat"


@dataclass
class Turn:
    """Outcome of one routed message"""
    route: Route
    replies: List[str] = field(default_factory=list)
    intent: Optional[Intent] = None
    document: Optional[TopicDocument] = None

    @property
    def text(self) -> str:
        return "\n\n".join(self.replies)


class ConversationRouter:
    """
    Routes user messages for any number of sessions.

    All per-conversation state lives in the SessionContext passed to each
    call; the router itself only holds read-only collaborators.
    """

    def __init__(
        self,
        catalog: KnowledgeCatalog,
        gateway: GatewayClient,
        llm_client: Optional[LLMClient] = None,
        summarizer: Optional[ExtractiveSummarizer] = None,
        search_count: int = 3,
        history_size: int = 6,
        llm_routing: bool = True,
        rewrite_queries: bool = True,
    ):
        self.catalog = catalog
        self.resolver = KnowledgePackResolver(catalog)
        self.gateway = gateway
        self.llm = llm_client
        self.summarizer = summarizer or ExtractiveSummarizer(llm_client)
        self.search_count = search_count
        self.history_size = history_size
        self.llm_routing = llm_routing
        self.rewrite_queries = rewrite_queries

    @classmethod
    def from_config(cls, config: CompanionConfig) -> "ConversationRouter":
        llm = LLMClient.from_config(config.llm)
        return cls(
            catalog=load_catalog(config.router.content_dir),
            gateway=GatewayClient(config.router.api_base),
            llm_client=llm,
            search_count=config.router.search_count,
            history_size=config.router.history_size,
            llm_routing=config.router.llm_routing,
            rewrite_queries=config.router.rewrite_queries,
        )

    @property
    def has_llm(self) -> bool:
        return self.llm is not None and self.llm.is_available

    def new_session(self) -> SessionContext:
        return SessionContext(history_size=self.history_size)

    # =========================================================================
    # Entry points
    # =========================================================================

    async def handle(self, session: SessionContext, text: str) -> Turn:
        """Route one user message to completion and record the exchange."""
        text = (text or "").strip()
        if not text:
            return Turn(route=Route.EMPTY)

        session.record(Role.USER, text)
        turn = await self._route(session, text)
        for reply in turn.replies:
            session.record(Role.ASSISTANT, reply)
        logger.debug("Turn routed: intent=%s route=%s", turn.intent, turn.route.value)
        return turn

    async def pick(self, session: SessionContext, index: int) -> Turn:
        """Summarize the candidate at `index` (0-based), advancing past failures."""
        turn = await self._pick(session, index)
        for reply in turn.replies:
            session.record(Role.ASSISTANT, reply)
        return turn

    # =========================================================================
    # Routing
    # =========================================================================

    async def _route(self, session: SessionContext, text: str) -> Turn:
        classification = classify(text)
        intent = classification.intent

        # Safety gate: no network or model call happens before this
        if classification.is_emergency or mentions_crisis(text):
            logger.info("Emergency language detected, sending crisis resources")
            session.clear_pending()
            session.clear_candidates()
            return Turn(route=Route.EMERGENCY, replies=[replies.CRISIS], intent=Intent.EMERGENCY)

        if session.state is RouterState.PICKING_RESULT:
            choice = self._pick_choice(session, text)
            if choice is not None:
                return await self._pick(session, choice)
            if self._wants_next_past_end(session, text):
                session.clear_candidates()
                return Turn(route=Route.PICK, replies=[replies.SOURCES_EXHAUSTED], intent=intent)
            logger.debug("Leaving result picking")
            session.clear_candidates()

        if session.state is RouterState.AWAITING_SEARCH_CONSENT:
            answer = interpret_consent(text)
            pending = session.clear_pending()
            if answer is ConsentAnswer.YES:
                session.consent.granted = True
                logger.debug("Search consent granted, replaying %r", pending.content)
                return await self._search(session, pending.content, detect_intent(pending.content))
            if answer is ConsentAnswer.NO:
                return Turn(route=Route.CONSENT_DECLINED, replies=[replies.CONSENT_DECLINED], intent=intent)
            logger.debug("Ambiguous consent reply, dropping pending query")

        if is_social_check_in(text):
            return Turn(route=Route.SOCIAL_CHECK_IN, replies=[replies.SOCIAL_CHECK_IN], intent=intent)

        if is_greeting(text):
            repeat = session.turns - session.last_greet_turn <= GREETING_REPEAT_WINDOW
            session.last_greet_turn = session.turns
            reply = replies.GREETING_REPEAT if repeat else replies.GREETING_FIRST
            return Turn(route=Route.GREETING, replies=[reply], intent=Intent.GREETING)

        if intent in QUICK_INTENTS:
            return Turn(route=Route.QUICK_REPLY, replies=[replies.QUICK_REPLIES[intent.value]], intent=intent)

        document = self.resolver.resolve(text)
        if document is not None:
            return await self._paraphrase(session, text, document, intent)

        if intent.is_info:
            return await self._info(session, text, intent)

        if intent in (Intent.FEELINGS, Intent.COMFORT) and self.llm_routing and self.has_llm:
            hinted = await self._route_with_model(session, text, intent)
            if hinted is not None:
                return hinted

        return await self._chat(session, text, classification)

    async def _info(self, session: SessionContext, text: str, intent: Intent) -> Turn:
        pack_path = INTENT_TO_PACK.get(intent)
        if pack_path and pack_path in self.catalog:
            return await self._paraphrase(session, text, self.catalog.get(pack_path), intent)

        if session.consent.granted:
            return await self._search(session, text, intent)

        session.request_consent(text)
        return Turn(route=Route.ASK_CONSENT, replies=[replies.ASK_SEARCH_CONSENT], intent=intent)

    async def _route_with_model(self, session: SessionContext, text: str, intent: Intent) -> Optional[Turn]:
        try:
            hint = await asyncio.to_thread(flows.route_hint, self.llm, text, session.history_dicts())
        except Exception as e:
            logger.warning("Model routing failed, using default route: %s", e)
            return None

        action = hint["action"]
        if action == "emergency":
            logger.info("Model flagged emergency, sending crisis resources")
            return Turn(route=Route.EMERGENCY, replies=[replies.CRISIS], intent=Intent.EMERGENCY)

        if action == "info_local":
            topic_hint = hint["topic_hint"] if isinstance(hint["topic_hint"], str) else ""
            document = self.resolver.resolve(topic_hint) if topic_hint else None
            if document is not None:
                return await self._paraphrase(session, text, document, intent)

        if action == "info_search" or hint["needs_sources"] is True:
            return await self._info(session, text, Intent.INFO)

        return None

    # =========================================================================
    # Flows
    # =========================================================================

    async def _paraphrase(
        self,
        session: SessionContext,
        text: str,
        document: TopicDocument,
        intent: Optional[Intent],
    ) -> Turn:
        def failed() -> Turn:
            return Turn(route=Route.KNOWLEDGE_PACK, replies=[replies.PACK_LOAD_FAILED], intent=intent, document=document)

        try:
            pack = self.catalog.load_pack(document.path)
        except (OSError, ValueError) as e:
            logger.warning("Could not load knowledge pack %s: %s", document.path, e)
            return failed()

        if not self.has_llm:
            logger.warning("No model available to paraphrase %s", document.path)
            return failed()
        try:
            reply = await asyncio.to_thread(flows.paraphrase_pack, self.llm, pack, text)
        except Exception as e:
            logger.warning("Paraphrase failed for %s: %s", document.path, e)
            return failed()

        if not reply:
            return failed()
        return Turn(route=Route.KNOWLEDGE_PACK, replies=[reply], intent=intent, document=document)

    async def _search_query(self, text: str) -> str:
        if self.rewrite_queries and self.has_llm:
            try:
                rewritten = await asyncio.to_thread(flows.rewrite_search_query, self.llm, text)
                if rewritten:
                    return rewritten
            except Exception as e:
                logger.warning("Query rewrite failed, using user text: %s", e)
        return flows.fallback_query(text)

    async def _search(self, session: SessionContext, text: str, intent: Optional[Intent]) -> Turn:
        query = await self._search_query(text)
        logger.debug("Searching trusted sources for %r", query)
        try:
            candidates = await self.gateway.search(query, count=self.search_count)
        except GatewayError as e:
            logger.warning("Search failed (%s): %s", e.code.value, e)
            return Turn(route=Route.SEARCH, replies=[replies.SEARCH_UNREACHABLE], intent=intent)

        if not candidates:
            session.clear_candidates()
            return Turn(route=Route.SEARCH, replies=[replies.NO_SOLID_SOURCE], intent=intent)

        ranked = rank(candidates, text)
        session.set_candidates(text, ranked)
        return Turn(route=Route.SEARCH, replies=[replies.search_results(ranked)], intent=intent)

    def _pick_choice(self, session: SessionContext, text: str) -> Optional[int]:
        """Map a picking-state message to a candidate index, or None to leave."""
        stripped = text.strip().rstrip(".")
        if stripped.isdigit():
            number = int(stripped)
            if 1 <= number <= len(session.candidates):
                return number - 1
            return None
        if session.cursor is not None and interpret_consent(text) is ConsentAnswer.YES:
            next_index = session.cursor + 1
            if next_index < len(session.candidates):
                return next_index
        return None

    def _wants_next_past_end(self, session: SessionContext, text: str) -> bool:
        """A "yes" to another link after the last candidate was unquotable."""
        return (
            session.cursor is not None
            and session.cursor + 1 >= len(session.candidates)
            and interpret_consent(text) is ConsentAnswer.YES
        )

    async def _pick(self, session: SessionContext, index: int) -> Turn:
        candidates = list(session.candidates)
        if not candidates or not 0 <= index < len(candidates):
            return Turn(route=Route.PICK, replies=[replies.NOTHING_TO_PICK])

        question = session.search_query
        out: List[str] = []
        cursor = index
        while cursor < len(candidates):
            candidate = candidates[cursor]
            try:
                article = await self.gateway.fetch(candidate.url)
            except GatewayError as e:
                logger.info("Fetch failed for %s (%s), advancing", candidate.url, e.code.value)
                out.append(replies.fetch_failure(e, has_next=cursor + 1 < len(candidates)))
                cursor += 1
                continue

            bullets = await asyncio.to_thread(self.summarizer.summarize, question, article.text)
            if bullets:
                session.clear_candidates()
                out.append(replies.summary(bullets, candidate.url))
            else:
                session.cursor = cursor
                out.append(replies.NO_QUOTABLE_CONTENT)
            return Turn(route=Route.PICK, replies=out)

        session.clear_candidates()
        out.append(replies.SOURCES_EXHAUSTED)
        return Turn(route=Route.PICK, replies=out)

    async def _chat(self, session: SessionContext, text: str, classification: Classification) -> Turn:
        if not self.has_llm:
            return Turn(route=Route.CHAT, replies=[replies.CHAT_FAILED], intent=classification.intent)
        # History already holds the current message as its last entry
        history = session.history_dicts()[:-1]
        try:
            reply = await asyncio.to_thread(flows.chat_reply, self.llm, text, classification, history)
        except Exception as e:
            logger.warning("Chat completion failed: %s", e)
            reply = ""
        return Turn(route=Route.CHAT, replies=[reply or replies.CHAT_FAILED], intent=classification.intent)
