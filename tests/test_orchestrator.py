# =============================================================================
# Unit Tests: Conversation Orchestrator
# =============================================================================
#
# Drives whole queries through the LangGraph pipeline with the scripted
# LLM and checks the conversation log and the outcome for every terminal
# path.
# =============================================================================

from __future__ import annotations

import asyncio

from corpus_qa.agents.orchestrator import (
    FAILURE_MESSAGE,
    NO_DOCUMENTS_MESSAGE,
    NO_RELEVANT_DOCUMENTS_MESSAGE,
    SUMMARY_NO_DOCUMENTS_MESSAGE,
    SUMMARY_TITLE,
    ConversationOrchestrator,
    QueryOutcome,
    extraction_status,
    selection_status,
)
from corpus_qa.exceptions import ServiceUnavailable
from corpus_qa.services.conversation import Conversation, Sender
from corpus_qa.services.corpus import CorpusSnapshot, Document


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _snapshot(*names: str) -> CorpusSnapshot:
    snapshot, _ = CorpusSnapshot().with_added(
        Document(id=f"id-{n}", name=n, content=f"Text of {n}.") for n in names
    )
    return snapshot


def _orchestrator(llm) -> ConversationOrchestrator:
    return ConversationOrchestrator(Conversation(), llm)


# ---------------------------------------------------------------------------
# Test: Query Outcomes
# ---------------------------------------------------------------------------


class TestAsk:
    """One test per terminal path of the query state machine."""

    def test_empty_corpus(self, scripted_llm):
        llm = scripted_llm()
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("What happened?", CorpusSnapshot()))

        assert result["outcome"] is QueryOutcome.NO_DOCUMENTS
        messages = orchestrator.conversation.messages
        assert [m.sender for m in messages] == [Sender.USER, Sender.ASSISTANT]
        assert messages[-1].text == NO_DOCUMENTS_MESSAGE
        assert llm.calls == []

    def test_single_document_answer(self, scripted_llm):
        llm = scripted_llm(
            extractions={"a.pdf": "- Revenue was 10M in 2023."},
            synthesis={
                "answer": "Revenue was 10M (a.pdf).",
                "sources": ["a.pdf"],
            },
        )
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("What was revenue?", _snapshot("a.pdf")))

        assert result["outcome"] is QueryOutcome.DONE
        reply = orchestrator.conversation.messages[-1]
        assert reply.text == "Revenue was 10M (a.pdf)."
        assert reply.sources == ["a.pdf"]
        assert orchestrator.conversation.status is None
        assert [c["stage"] for c in llm.calls] == ["extract", "synthesize"]

    def test_nothing_relevant_selected(self, scripted_llm):
        names = [f"doc{i}.pdf" for i in range(10)]
        llm = scripted_llm(selection=[])
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("Unrelated?", _snapshot(*names)))

        assert result["outcome"] is QueryOutcome.NO_RELEVANT_DOCUMENTS
        reply = orchestrator.conversation.messages[-1]
        assert reply.text == NO_RELEVANT_DOCUMENTS_MESSAGE
        assert reply.sources == []
        assert llm.stage_calls("extract") == []

    def test_nothing_extractable(self, scripted_llm):
        llm = scripted_llm(extractions={})
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask(
            "q", _snapshot("a.pdf", "b.pdf", "c.pdf"),
        ))

        assert result["outcome"] is QueryOutcome.NO_EXTRACTABLE_CONTENT
        reply = orchestrator.conversation.messages[-1]
        assert "3 documents" in reply.text
        assert reply.sources == ["a.pdf", "b.pdf", "c.pdf"]
        assert orchestrator.conversation.status is None
        assert llm.stage_calls("synthesize") == []

    def test_service_failure_is_reported_once(self, scripted_llm):
        llm = scripted_llm(
            extractions={"a.pdf": "- point"},
            synthesis=ServiceUnavailable("down"),
        )
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("q", _snapshot("a.pdf")))

        assert result["outcome"] is QueryOutcome.FAILED
        messages = orchestrator.conversation.messages
        assert [m.text for m in messages] == ["q", FAILURE_MESSAGE]
        assert not any(m.is_status for m in messages)

    def test_selection_failure_is_reported_once(self, scripted_llm):
        names = [f"doc{i}.pdf" for i in range(10)]
        llm = scripted_llm(selection=ServiceUnavailable("down"))
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("q", _snapshot(*names)))

        assert result["outcome"] is QueryOutcome.FAILED
        messages = orchestrator.conversation.messages
        assert [m.text for m in messages] == ["q", FAILURE_MESSAGE]
        assert orchestrator.conversation.status is None
        assert llm.stage_calls("extract") == []

    def test_only_usable_extractions_reach_synthesis(self, scripted_llm):
        llm = scripted_llm(
            extractions={"a.pdf": "- relevant", "c.pdf": "- also relevant"},
            synthesis={"answer": "A.", "sources": ["a.pdf", "c.pdf"]},
        )
        orchestrator = _orchestrator(llm)

        result = _run(orchestrator.ask("q", _snapshot("a.pdf", "b.pdf", "c.pdf")))

        assert [r.document.name for r in result["usable"]] == ["a.pdf", "c.pdf"]
        sent = llm.stage_calls("synthesize")[0]["content"]
        assert "b.pdf" not in sent

    def test_blank_query_is_ignored(self, scripted_llm):
        llm = scripted_llm()
        orchestrator = _orchestrator(llm)

        assert _run(orchestrator.ask("   ", _snapshot("a.pdf"))) is None
        assert orchestrator.conversation.messages == []
        assert llm.calls == []


# ---------------------------------------------------------------------------
# Test: Status Turn
# ---------------------------------------------------------------------------


class TestStatusTurn:
    """The transient status turn while a query runs."""

    def test_status_reports_usable_sources_during_synthesis(self, scripted_llm):
        conversation = Conversation()
        seen: list[str] = []

        def answer(call):
            seen.append(conversation.status.text)
            return {"answer": "A.", "sources": ["a.pdf"]}

        llm = scripted_llm(
            extractions={"a.pdf": "- p", "b.pdf": "- q"},
            synthesis=answer,
        )
        orchestrator = ConversationOrchestrator(conversation, llm)

        _run(orchestrator.ask("q", _snapshot("a.pdf", "b.pdf", "c.pdf")))

        assert seen == [extraction_status(2)]
        assert conversation.status is None
        assert sum(1 for m in conversation.messages if m.sender is Sender.ASSISTANT) == 1

    def test_status_reports_selection_during_extraction(self, scripted_llm):
        conversation = Conversation()
        seen: list[str] = []

        def points(call):
            seen.append(conversation.status.text)
            return "- p"

        llm = scripted_llm(
            selection=["doc2.pdf", "doc5.pdf"],
            extractions={"doc2.pdf": points, "doc5.pdf": points},
            synthesis={"answer": "A.", "sources": ["doc2.pdf"]},
        )
        orchestrator = ConversationOrchestrator(conversation, llm)
        names = [f"doc{i}.pdf" for i in range(10)]

        _run(orchestrator.ask("q", _snapshot(*names)))

        assert seen == [selection_status(2), selection_status(2)]
        assert conversation.status is None

    def test_status_wording(self):
        assert selection_status(1).startswith("Found 1 relevant document.")
        assert selection_status(4).startswith("Found 4 relevant documents.")
        assert extraction_status(1).startswith("Extracted key points from 1 source.")


# ---------------------------------------------------------------------------
# Test: Summary Turn
# ---------------------------------------------------------------------------


class TestSummarize:
    """Corpus summary appended as one assistant turn."""

    def test_summary_is_committed(self, scripted_llm):
        llm = scripted_llm(summary={
            "summaryText": "Talks progressed.",
            "countries": ["Yemen"],
            "stakeholders": ["UN"],
        })
        orchestrator = _orchestrator(llm)

        reply = _run(orchestrator.summarize(_snapshot("a.pdf", "b.pdf")))

        assert reply.text == SUMMARY_TITLE
        assert reply.summary.countries == ["Yemen"]
        assert orchestrator.conversation.messages == [reply]

    def test_empty_corpus_asks_for_uploads(self, scripted_llm):
        llm = scripted_llm()
        orchestrator = _orchestrator(llm)

        reply = _run(orchestrator.summarize(CorpusSnapshot()))

        assert reply.text == SUMMARY_NO_DOCUMENTS_MESSAGE
        assert reply.summary is None
        assert llm.calls == []

    def test_failure_commits_generic_message(self, scripted_llm):
        llm = scripted_llm(summary=ServiceUnavailable("down"))
        orchestrator = _orchestrator(llm)

        reply = _run(orchestrator.summarize(_snapshot("a.pdf")))

        assert reply.text == FAILURE_MESSAGE
        assert reply.summary is None
