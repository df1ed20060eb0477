"""
Router - Conversation state machine

Routes each user message to a scripted reply, a local knowledge pack,
trusted web retrieval, or supportive chat, with a safety gate that runs
before anything else.
"""

from .router import ConversationRouter, Route, Turn, INTENT_TO_PACK
from .session import ConsentState, Message, Role, RouterState, SessionContext

__all__ = [
    "ConversationRouter",
    "Route",
    "Turn",
    "INTENT_TO_PACK",
    "ConsentState",
    "Message",
    "Role",
    "RouterState",
    "SessionContext",
]
