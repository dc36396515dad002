# =============================================================================
# Unit Tests: Corpus Snapshots and Conversation Log
# =============================================================================

from __future__ import annotations

from unittest.mock import patch

import pytest

from corpus_qa.config import settings
from corpus_qa.exceptions import CorpusLimitExceeded, DocumentNotFound
from corpus_qa.services.conversation import (
    Conversation,
    Sender,
    assistant_message,
    user_message,
)
from corpus_qa.services.corpus import (
    DESCRIPTION_FAILED,
    DESCRIPTION_PENDING,
    CorpusSnapshot,
    CorpusStore,
    Document,
)


def _doc(name: str, doc_id: str | None = None) -> Document:
    return Document(id=doc_id or f"id-{name}", name=name, content=f"content of {name}")


# ---------------------------------------------------------------------------
# Test: Corpus Snapshots
# ---------------------------------------------------------------------------


class TestCorpusSnapshot:
    """Tests for immutable, versioned snapshots."""

    def test_add_marks_description_pending(self):
        snapshot, added = CorpusSnapshot().with_added([_doc("a.pdf")])
        assert [d.name for d in added] == ["a.pdf"]
        assert snapshot.get("id-a.pdf").description == DESCRIPTION_PENDING
        assert snapshot.version == 1

    def test_duplicate_names_are_skipped(self):
        snapshot, _ = CorpusSnapshot().with_added([_doc("a.pdf")])
        snapshot, added = snapshot.with_added([
            _doc("a.pdf", "other-id"), _doc("b.pdf"), _doc("b.pdf", "b2"),
        ])
        assert [d.name for d in added] == ["b.pdf"]
        assert snapshot.names == ["a.pdf", "b.pdf"]

    def test_limit_is_enforced(self):
        snapshot, _ = CorpusSnapshot().with_added(
            [_doc(f"{i}.txt") for i in range(3)], max_documents=4,
        )
        with pytest.raises(CorpusLimitExceeded, match="up to 4 documents"):
            snapshot.with_added([_doc("x.txt"), _doc("y.txt")], max_documents=4)

    def test_limit_defaults_to_settings(self):
        with patch.object(settings, "max_corpus_documents", 1):
            with pytest.raises(CorpusLimitExceeded):
                CorpusSnapshot().with_added([_doc("a.pdf"), _doc("b.pdf")])

    def test_without_removes_and_bumps_version(self):
        snapshot, _ = CorpusSnapshot().with_added([_doc("a.pdf"), _doc("b.pdf")])
        removed = snapshot.without("id-a.pdf")
        assert removed.names == ["b.pdf"]
        assert removed.version == snapshot.version + 1

    def test_without_unknown_raises(self):
        with pytest.raises(DocumentNotFound):
            CorpusSnapshot().without("missing")

    def test_patch_leaves_old_snapshot_untouched(self):
        before, _ = CorpusSnapshot().with_added([_doc("a.pdf")])
        after = before.patched("id-a.pdf", description="Peace talks.", date="2024-01-02")
        assert before.get("id-a.pdf").description == DESCRIPTION_PENDING
        assert after.get("id-a.pdf").description == "Peace talks."
        assert after.get("id-a.pdf").date == "2024-01-02"

    def test_patch_rejects_non_enrichment_fields(self):
        snapshot, _ = CorpusSnapshot().with_added([_doc("a.pdf")])
        with pytest.raises(ValueError, match="content"):
            snapshot.patched("id-a.pdf", content="rewritten")


class TestDocumentDescription:
    """Tri-state description handling."""

    def test_pending_and_failed_are_not_usable(self):
        assert _doc("a").usable_description is None
        pending = Document(id="1", name="a", content="", description=DESCRIPTION_PENDING)
        failed = Document(id="2", name="b", content="", description=DESCRIPTION_FAILED)
        assert pending.description_pending
        assert failed.description_failed
        assert pending.usable_description is None
        assert failed.usable_description is None

    def test_present_description_is_usable(self):
        doc = Document(id="1", name="a", content="", description="Budget report.")
        assert doc.usable_description == "Budget report."


class TestCorpusStore:
    """Tests for the patch-by-id store."""

    def test_patches_for_different_documents_both_land(self):
        store = CorpusStore()
        store.add([_doc("a.pdf"), _doc("b.pdf")])
        held = store.snapshot  # a query in flight keeps this one

        store.patch("id-a.pdf", description="A")
        store.patch("id-b.pdf", description="B")

        assert store.snapshot.get("id-a.pdf").description == "A"
        assert store.snapshot.get("id-b.pdf").description == "B"
        assert held.get("id-a.pdf").description == DESCRIPTION_PENDING

    def test_patch_after_removal_is_dropped(self):
        store = CorpusStore()
        store.add([_doc("a.pdf")])
        store.remove("id-a.pdf")
        assert store.patch("id-a.pdf", description="late") is False
        assert len(store.snapshot) == 0


# ---------------------------------------------------------------------------
# Test: Conversation Log
# ---------------------------------------------------------------------------


class TestConversation:
    """Tests for the status slot and append-only turns."""

    def test_status_is_updated_in_place(self):
        conversation = Conversation()
        first = conversation.set_status("Found 3 documents")
        second = conversation.set_status("Extracted 2 sources")
        assert first.id == second.id
        assert conversation.status.text == "Extracted 2 sources"
        assert [m.is_status for m in conversation.messages] == [True]

    def test_commit_swaps_status_for_final_turn(self):
        conversation = Conversation()
        conversation.append(user_message("q"))
        conversation.set_status("working")
        conversation.commit(assistant_message("answer", sources=["a.pdf"]))

        assert conversation.status is None
        assert [m.text for m in conversation.messages] == ["q", "answer"]
        assert conversation.messages[-1].sender is Sender.ASSISTANT
        assert conversation.messages[-1].sources == ["a.pdf"]

    def test_status_is_rendered_last(self):
        conversation = Conversation()
        conversation.append(user_message("q"))
        conversation.set_status("working")
        assert conversation.messages[-1].is_status
        assert len(conversation.turns) == 1

    def test_clear_status(self):
        conversation = Conversation()
        conversation.set_status("working")
        conversation.clear_status()
        assert conversation.messages == []
