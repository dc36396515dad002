# =============================================================================
# Corpus: Versioned, Immutable Document Snapshots
# =============================================================================
#
# The corpus is the one piece of state touched from several directions:
# the user adds and removes documents while enrichment tasks patch
# descriptions, titles and dates as they finish.
#
# Every mutation builds a NEW CorpusSnapshot (documents are frozen
# dataclasses) and swaps it into the CorpusStore. Enrichment results are
# applied as a patch keyed by document id against whatever snapshot is
# current at completion time, so two enrichments finishing back-to-back
# both land. Concurrent add/remove of the same id is undefined; callers
# serialise those.
#
# A query reads one snapshot for its whole lifetime; later mutations never
# change the documents an in-flight query is looking at.
# =============================================================================

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from corpus_qa.config import settings
from corpus_qa.exceptions import CorpusLimitExceeded, DocumentNotFound

logger = logging.getLogger(__name__)

# Description tri-state: pending, present, or failed
DESCRIPTION_PENDING = "..."
DESCRIPTION_FAILED = "Failed to load description."

DATE_UNKNOWN = "N/A"

# Fields the enricher may patch. Everything else is fixed at upload.
_PATCHABLE_FIELDS = frozenset({"description", "title", "date"})


@dataclass(frozen=True)
class Document:
    """
    One uploaded document.

    `name` is unique within a corpus and is the only identifier used in
    citations and answer sources.
    """

    id: str
    name: str
    content: str
    description: str | None = None
    title: str | None = None
    date: str | None = None

    @property
    def description_pending(self) -> bool:
        return self.description == DESCRIPTION_PENDING

    @property
    def description_failed(self) -> bool:
        return self.description == DESCRIPTION_FAILED

    @property
    def usable_description(self) -> str | None:
        """The description if enrichment produced one, else None."""
        if not self.description or self.description_pending or self.description_failed:
            return None
        return self.description


def new_document_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CorpusSnapshot:
    """An immutable view of the corpus at one version."""

    documents: tuple[Document, ...] = ()
    version: int = 0

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    @property
    def names(self) -> list[str]:
        return [doc.name for doc in self.documents]

    def get(self, document_id: str) -> Document | None:
        for doc in self.documents:
            if doc.id == document_id:
                return doc
        return None

    def with_added(
        self,
        documents: Iterable[Document],
        max_documents: int | None = None,
    ) -> tuple[CorpusSnapshot, list[Document]]:
        """
        Return a snapshot with `documents` appended, plus the ones added.

        Documents whose name already exists (in the corpus or earlier in
        the batch) are skipped. New documents start with a pending
        description.

        Raises:
            CorpusLimitExceeded: The result would exceed `max_documents`.
        """
        limit = settings.max_corpus_documents if max_documents is None else max_documents
        seen = {doc.name for doc in self.documents}
        added: list[Document] = []
        for doc in documents:
            if doc.name in seen:
                logger.info("Skipping duplicate document name: %s", doc.name)
                continue
            seen.add(doc.name)
            added.append(dataclasses.replace(doc, description=DESCRIPTION_PENDING))

        if len(self.documents) + len(added) > limit:
            raise CorpusLimitExceeded(
                f"You can only upload up to {limit} documents. You have "
                f"{len(self.documents)} and tried to add {len(added)}."
            )

        snapshot = CorpusSnapshot(
            documents=self.documents + tuple(added),
            version=self.version + 1,
        )
        return snapshot, added

    def without(self, document_id: str) -> CorpusSnapshot:
        """Raises DocumentNotFound if no document has `document_id`."""
        if self.get(document_id) is None:
            raise DocumentNotFound(document_id)
        return CorpusSnapshot(
            documents=tuple(d for d in self.documents if d.id != document_id),
            version=self.version + 1,
        )

    def patched(self, document_id: str, **changes: str | None) -> CorpusSnapshot:
        """
        Return a snapshot with enrichment fields of one document replaced.

        Raises:
            DocumentNotFound: No document has `document_id`.
            ValueError: A field outside description/title/date was given.
        """
        unknown = set(changes) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch document fields: {sorted(unknown)}")
        if self.get(document_id) is None:
            raise DocumentNotFound(document_id)
        return CorpusSnapshot(
            documents=tuple(
                dataclasses.replace(d, **changes) if d.id == document_id else d
                for d in self.documents
            ),
            version=self.version + 1,
        )


@dataclass
class CorpusStore:
    """
    Holds the current snapshot for one session.

    Each method reads the current snapshot and swaps in the new one with
    no await in between, so on a single event loop a read-modify-write
    is never interleaved with another.
    """

    snapshot: CorpusSnapshot = field(default_factory=CorpusSnapshot)

    def add(self, documents: Iterable[Document]) -> list[Document]:
        self.snapshot, added = self.snapshot.with_added(documents)
        logger.info(
            "Corpus v%d: added %d document(s), %d total",
            self.snapshot.version, len(added), len(self.snapshot),
        )
        return added

    def remove(self, document_id: str) -> None:
        self.snapshot = self.snapshot.without(document_id)
        logger.info(
            "Corpus v%d: removed document %s", self.snapshot.version, document_id,
        )

    def patch(self, document_id: str, **changes: str | None) -> bool:
        """
        Apply an enrichment patch by id.

        Returns False when the document was removed in the meantime;
        the patch is then dropped.
        """
        try:
            self.snapshot = self.snapshot.patched(document_id, **changes)
        except DocumentNotFound:
            logger.info(
                "Dropping patch for removed document %s: %s",
                document_id, sorted(changes),
            )
            return False
        return True
