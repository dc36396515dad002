# =============================================================================
# Models Package: Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the API, kept separate from the pipeline's
# own dataclasses (services/corpus.py, services/conversation.py).
# =============================================================================
