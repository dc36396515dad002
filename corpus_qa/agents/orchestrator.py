# =============================================================================
# LangGraph Orchestrator: Select → Extract (×N) → Synthesize
# =============================================================================
#
# Sequences the three pipeline stages for one query and keeps the
# conversation log in step with them:
#
# GRAPH TOPOLOGY:
#   START ──┬──▶ select ──┬──▶ extract ──┬──▶ synthesize ──▶ END
#           │             │              │
#           └─▶ END       └─▶ END        └─▶ END
#      (no documents)  (nothing relevant) (nothing extractable)
#
# Each node records the state it reached in `outcome`; the conditional
# edges read it to either continue or stop. Terminal outcomes:
#   done, no_documents, no_relevant_documents, no_extractable_content, failed
#
# STATUS TURN:
# After selection a transient status turn reports how many documents are
# being read; after extraction it is updated in place with the number of
# usable sources. Every terminal path either clears it or swaps it for
# the final turn, so it never outlives the query.
#
# FAILURES:
# Anything that escapes a node (retries exhausted, unexpected reply
# shapes) is caught in ConversationOrchestrator.ask(): the status turn is
# removed and ONE generic failure message is committed. The detail goes
# to the log only.
#
# The graph is compiled once at module level. The conversation and the
# provider travel in the state as live objects; no checkpointer is
# configured, so state is never serialised.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from corpus_qa.agents.extractor import ExtractionResult, extract_all
from corpus_qa.agents.selector import select
from corpus_qa.agents.summarizer import summarize
from corpus_qa.agents.synthesizer import SynthesisResult, synthesize
from corpus_qa.services.conversation import (
    Conversation,
    Message,
    assistant_message,
    user_message,
)
from corpus_qa.services.corpus import CorpusSnapshot, Document
from corpus_qa.services.llm import LLMProvider

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# User-Facing Messages
# ---------------------------------------------------------------------------

NO_DOCUMENTS_MESSAGE = (
    "I can't answer questions without any documents. Please upload some "
    "files first in the 'Documents' tab."
)
NO_RELEVANT_DOCUMENTS_MESSAGE = (
    "I couldn't find any documents relevant to your question. Try "
    "rephrasing it, or upload documents that cover this topic."
)
FAILURE_MESSAGE = "Sorry, something went wrong. Please try again."
SUMMARY_TITLE = "Summary of Uploaded Documents"
SUMMARY_NO_DOCUMENTS_MESSAGE = (
    "Please upload at least one document to generate a summary."
)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def selection_status(count: int) -> str:
    return (
        f"Found {_plural(count, 'relevant document')}. "
        "Reading them for key points..."
    )


def extraction_status(count: int) -> str:
    return (
        f"Extracted key points from {_plural(count, 'source')}. "
        "Composing the answer..."
    )


def no_extractable_content_message(count: int) -> str:
    return (
        f"I scanned {_plural(count, 'document')} but none of them contained "
        "information relevant to your question."
    )


# ---------------------------------------------------------------------------
# Query State
# ---------------------------------------------------------------------------


class QueryOutcome(str, Enum):
    IDLE = "idle"
    AWAITING_SELECTION = "awaiting_selection"
    AWAITING_EXTRACTION = "awaiting_extraction"
    AWAITING_SYNTHESIS = "awaiting_synthesis"
    DONE = "done"
    NO_DOCUMENTS = "no_documents"
    NO_RELEVANT_DOCUMENTS = "no_relevant_documents"
    NO_EXTRACTABLE_CONTENT = "no_extractable_content"
    FAILED = "failed"


class QueryState(TypedDict, total=False):
    """
    State that flows through the LangGraph graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    query: str
    snapshot: CorpusSnapshot
    conversation: Conversation
    llm: LLMProvider

    # --- Intermediate (set by nodes) ---
    outcome: QueryOutcome
    selected: list[Document]
    extractions: list[ExtractionResult]
    usable: list[ExtractionResult]
    synthesis: SynthesisResult

    # --- Output ---
    reply: Message


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def select_node(state: QueryState) -> dict:
    """Retrieval stage: narrow the snapshot to relevant documents."""
    conversation = state["conversation"]
    selected = await select(state["query"], list(state["snapshot"]), state["llm"])

    if not selected:
        reply = assistant_message(NO_RELEVANT_DOCUMENTS_MESSAGE, sources=[])
        conversation.commit(reply)
        return {
            "selected": [],
            "outcome": QueryOutcome.NO_RELEVANT_DOCUMENTS,
            "reply": reply,
        }

    conversation.set_status(selection_status(len(selected)))
    return {"selected": selected, "outcome": QueryOutcome.AWAITING_EXTRACTION}


async def extract_node(state: QueryState) -> dict:
    """Map stage: extract from every selected document, join all."""
    conversation = state["conversation"]
    selected = state["selected"]
    extractions = await extract_all(state["query"], selected, state["llm"])
    usable = [r for r in extractions if not r.is_empty]

    logger.info(
        "Extraction complete: %d of %d documents usable",
        len(usable), len(selected),
    )

    if not usable:
        reply = assistant_message(
            no_extractable_content_message(len(selected)),
            sources=[doc.name for doc in selected],
        )
        conversation.commit(reply)
        return {
            "extractions": extractions,
            "usable": [],
            "outcome": QueryOutcome.NO_EXTRACTABLE_CONTENT,
            "reply": reply,
        }

    conversation.set_status(extraction_status(len(usable)))
    return {
        "extractions": extractions,
        "usable": usable,
        "outcome": QueryOutcome.AWAITING_SYNTHESIS,
    }


async def synthesize_node(state: QueryState) -> dict:
    """Reduce stage: one cited answer from the usable extractions."""
    result = await synthesize(state["query"], state["usable"], state["llm"])
    reply = assistant_message(result.answer, sources=result.sources)
    state["conversation"].commit(reply)
    return {"synthesis": result, "outcome": QueryOutcome.DONE, "reply": reply}


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


def _route_start(state: QueryState) -> str:
    return "select" if len(state["snapshot"]) else END


def _route_after_select(state: QueryState) -> str:
    return "extract" if state["outcome"] is QueryOutcome.AWAITING_EXTRACTION else END


def _route_after_extract(state: QueryState) -> str:
    return "synthesize" if state["outcome"] is QueryOutcome.AWAITING_SYNTHESIS else END


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(QueryState)
_builder.add_node("select", select_node)
_builder.add_node("extract", extract_node)
_builder.add_node("synthesize", synthesize_node)

_builder.add_conditional_edges(START, _route_start, ["select", END])
_builder.add_conditional_edges("select", _route_after_select, ["extract", END])
_builder.add_conditional_edges("extract", _route_after_extract, ["synthesize", END])
_builder.add_edge("synthesize", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class ConversationOrchestrator:
    """
    Runs queries and summaries against one conversation.

    Queries on the same conversation are serialised so that only one
    status turn can exist at a time.
    """

    def __init__(self, conversation: Conversation, llm: LLMProvider) -> None:
        self.conversation = conversation
        self._llm = llm
        self._lock = asyncio.Lock()

    async def ask(self, query: str, snapshot: CorpusSnapshot) -> QueryState | None:
        """
        Answer `query` from `snapshot`, appending turns to the conversation.

        Returns:
            The final graph state (`outcome` and `reply` always set), or
            None for a blank query, which is ignored.
        """
        if not query.strip():
            return None

        async with self._lock:
            self.conversation.append(user_message(query))

            if not len(snapshot):
                reply = assistant_message(NO_DOCUMENTS_MESSAGE, sources=[])
                self.conversation.commit(reply)
                logger.info("Query against empty corpus: query='%s'", query[:80])
                return {
                    "query": query,
                    "outcome": QueryOutcome.NO_DOCUMENTS,
                    "reply": reply,
                }

            initial_state: QueryState = {
                "query": query,
                "snapshot": snapshot,
                "conversation": self.conversation,
                "llm": self._llm,
                "outcome": QueryOutcome.AWAITING_SELECTION,
            }

            logger.info(
                "Invoking query graph: query='%s', corpus=v%d (%d documents)",
                query[:80], snapshot.version, len(snapshot),
            )

            try:
                result: QueryState = await graph.ainvoke(initial_state)
            except Exception as e:
                logger.exception("Query pipeline failed: %s", e)
                reply = assistant_message(FAILURE_MESSAGE)
                self.conversation.commit(reply)
                return {
                    "query": query,
                    "outcome": QueryOutcome.FAILED,
                    "reply": reply,
                }

            logger.info(
                "Query graph complete: outcome=%s, sources=%d",
                result["outcome"].value, len(result["reply"].sources or []),
            )
            return result

    async def summarize(self, snapshot: CorpusSnapshot) -> Message:
        """
        Append a corpus summary turn and return it.

        Empty corpus and service failure each produce a single plain
        assistant message instead.
        """
        async with self._lock:
            if not len(snapshot):
                reply = assistant_message(SUMMARY_NO_DOCUMENTS_MESSAGE)
                self.conversation.commit(reply)
                return reply

            try:
                summary = await summarize(list(snapshot), self._llm)
            except Exception as e:
                logger.exception("Summary generation failed: %s", e)
                reply = assistant_message(FAILURE_MESSAGE)
            else:
                reply = assistant_message(SUMMARY_TITLE, summary=summary)

            self.conversation.commit(reply)
            return reply
