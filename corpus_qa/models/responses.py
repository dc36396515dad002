# =============================================================================
# API Response Models: Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming OUT of the API.
# Document content is never echoed back; listings carry only the
# enrichment fields a client needs to render the corpus.
# =============================================================================

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from corpus_qa.services.conversation import Message
from corpus_qa.services.corpus import Document


class HealthResponse(BaseModel):
    """Response for GET /health: confirms the API is running."""

    status: str = "ok"
    version: str
    service: str


class SessionResponse(BaseModel):
    session_id: str


class DocumentResponse(BaseModel):
    """
    Document metadata as shown in the corpus listing.

    `description` is "..." while enrichment is pending and
    "Failed to load description." if it failed.
    """

    id: str
    name: str
    description: str | None = None
    title: str | None = None
    date: str | None = None
    characters: int = Field(description="Length of the extracted text")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(
            id=document.id,
            name=document.name,
            description=document.description,
            title=document.title,
            date=document.date,
            characters=len(document.content),
        )


class CorpusResponse(BaseModel):
    version: int = Field(description="Corpus snapshot version")
    documents: list[DocumentResponse]
    max_documents: int


class AddDocumentsResponse(BaseModel):
    """Response for POST /sessions/{id}/documents; enrichment is async."""

    added: list[DocumentResponse]
    skipped: list[str] = Field(
        default_factory=list,
        description="Names skipped because they were already in the corpus",
    )
    version: int
    message: str = "Documents added. Descriptions are being generated."


class SummaryResponse(BaseModel):
    summary_text: str
    countries: list[str]
    stakeholders: list[str]


class MessageResponse(BaseModel):
    """A single conversation turn."""

    id: str
    sender: str
    text: str
    sources: list[str] | None = None
    is_status: bool = False
    summary: SummaryResponse | None = None

    @classmethod
    def from_message(cls, message: Message) -> MessageResponse:
        summary = None
        if message.summary is not None:
            summary = SummaryResponse(
                summary_text=message.summary.summary_text,
                countries=message.summary.countries,
                stakeholders=message.summary.stakeholders,
            )
        return cls(
            id=message.id,
            sender=message.sender.value,
            text=message.text,
            sources=message.sources,
            is_status=message.is_status,
            summary=summary,
        )


class AskResponse(BaseModel):
    """
    Response for POST /sessions/{id}/ask.

    `outcome` is the terminal state of the query pipeline: done,
    no_documents, no_relevant_documents, no_extractable_content or failed.
    """

    outcome: str
    reply: MessageResponse
    selected_documents: list[str] = Field(
        default_factory=list,
        description="Documents the retrieval stage chose to read",
    )


class ConversationResponse(BaseModel):
    messages: list[MessageResponse]
