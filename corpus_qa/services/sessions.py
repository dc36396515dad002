# =============================================================================
# Sessions: In-Memory Corpus + Conversation per Client
# =============================================================================
#
# Nothing is persisted: a session bundles one CorpusStore, one
# Conversation and the orchestrator that drives it, and lives only as
# long as the process. Restarting the service starts every client over.
# =============================================================================

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from corpus_qa.agents.orchestrator import ConversationOrchestrator
from corpus_qa.exceptions import SessionNotFound
from corpus_qa.services.conversation import Conversation
from corpus_qa.services.corpus import CorpusStore
from corpus_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


@dataclass
class Session:
    id: str
    corpus: CorpusStore
    conversation: Conversation
    orchestrator: ConversationOrchestrator


@dataclass
class SessionRegistry:
    sessions: dict[str, Session] = field(default_factory=dict)

    def create(self, llm: LLMProvider) -> Session:
        conversation = Conversation()
        session = Session(
            id=uuid.uuid4().hex,
            corpus=CorpusStore(),
            conversation=conversation,
            orchestrator=ConversationOrchestrator(conversation, llm),
        )
        self.sessions[session.id] = session
        logger.info("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> Session:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise SessionNotFound(session_id) from None

    def delete(self, session_id: str) -> None:
        if self.sessions.pop(session_id, None) is None:
            raise SessionNotFound(session_id)
        logger.info("Deleted session %s", session_id)


# Process-wide registry used by the API
registry = SessionRegistry()
