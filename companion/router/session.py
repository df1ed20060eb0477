"""
Session Context

Per-conversation mutable state. Owned by one ConversationRouter turn at a
time; nothing else writes to it.
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional

from ..retriever.gateway_client import SearchCandidate

DEFAULT_HISTORY_SIZE = 6
NEVER_GREETED = -999


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


@dataclass
class ConsentState:
    """At most one query waits for a yes/no at a time."""
    pending: Optional[Message] = None
    granted: bool = False


class RouterState(str, Enum):
    IDLE = "idle"
    AWAITING_SEARCH_CONSENT = "awaiting_search_consent"
    PICKING_RESULT = "picking_result"


@dataclass
class SessionContext:
    """Everything the router remembers between turns of one conversation."""
    history_size: int = DEFAULT_HISTORY_SIZE
    consent: ConsentState = field(default_factory=ConsentState)
    last_greet_turn: int = NEVER_GREETED
    turns: int = 0  # messages recorded so far, never evicted
    search_query: str = ""
    candidates: List[SearchCandidate] = field(default_factory=list)
    cursor: Optional[int] = None  # candidate last opened without quotable text
    history: Deque[Message] = field(init=False)

    def __post_init__(self):
        self.history = deque(maxlen=self.history_size)

    @property
    def state(self) -> RouterState:
        if self.consent.pending is not None:
            return RouterState.AWAITING_SEARCH_CONSENT
        if self.candidates:
            return RouterState.PICKING_RESULT
        return RouterState.IDLE

    def record(self, role: Role, content: str) -> None:
        self.history.append(Message(role=role, content=content))
        self.turns += 1

    def history_dicts(self) -> List[dict]:
        return [m.to_dict() for m in self.history]

    def request_consent(self, text: str) -> None:
        """Replace any earlier pending query with this one."""
        self.consent.pending = Message(role=Role.USER, content=text)

    def clear_pending(self) -> Optional[Message]:
        pending = self.consent.pending
        self.consent.pending = None
        return pending

    def set_candidates(self, query: str, candidates: List[SearchCandidate]) -> None:
        self.search_query = query
        self.candidates = list(candidates)
        self.cursor = None

    def clear_candidates(self) -> None:
        self.search_query = ""
        self.candidates = []
        self.cursor = None
