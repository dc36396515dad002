# =============================================================================
# API Request Models: Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for request body validation (automatic 422 errors)
# and for the OpenAPI documentation at /docs.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field


class DocumentUpload(BaseModel):
    """
    One already-parsed document.

    File parsing (PDF/text extraction) happens upstream; the API receives
    plain text.
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="File name; unique within the corpus and used in citations",
        examples=["sg-report-2024.pdf"],
    )
    content: str = Field(
        ...,
        description="Extracted plain-text content of the document",
    )


class AddDocumentsRequest(BaseModel):
    """
    Request body for POST /sessions/{session_id}/documents.

    Documents whose name is already in the corpus are skipped. Each new
    document is enriched (description, title, date) in the background.
    """

    documents: list[DocumentUpload] = Field(..., min_length=1)


class AskRequest(BaseModel):
    """
    Request body for POST /sessions/{session_id}/ask.

    Example:
        {"question": "Which countries hosted the talks in 2023?"}
    """

    question: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="The question to answer from the uploaded documents",
        examples=["Which countries hosted the talks in 2023?"],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"question": "Which countries hosted the talks in 2023?"},
                {"question": "What did the envoy recommend to the Council?"},
            ]
        }
    )
