# =============================================================================
# Application Configuration: Pydantic Settings
# =============================================================================
#
# All tunables for the corpus Q&A pipeline live here: which generation
# provider to call, retry bounds, the Selector's pass-through threshold,
# and every truncation limit applied before content is sent to a model.
#
# Pydantic Settings loads values in this priority order (highest first):
#   1. Environment variables (e.g., `LLM_PROVIDER=anthropic`)
#   2. Values from the .env file
#   3. Default values defined below
#
# USAGE:
#   from corpus_qa.config import settings
#   print(settings.llm_model)
# =============================================================================

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Defaults mirror the limits the pipeline was tuned with; every
    truncation bound can be overridden per deployment.
    """

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    app_name: str = "Corpus Q&A Assistant"
    app_version: str = "0.1.0"
    debug: bool = True

    # -------------------------------------------------------------------------
    # API Keys: External Services
    # -------------------------------------------------------------------------
    # No defaults: a missing key for the selected provider is a
    # ConfigurationError raised when the provider is first built.
    # -------------------------------------------------------------------------
    gemini_api_key: str = ""
    anthropic_api_key: str = ""
    openai_api_key: str = ""

    # -------------------------------------------------------------------------
    # LLM Configuration: Multi-Provider
    # -------------------------------------------------------------------------
    # Supported providers:
    #   - "gemini": Google Gemini via the google-genai SDK
    #   - "anthropic": Claude via native Anthropic SDK
    #   - "openai_compatible": Any OpenAI-compatible API (DeepSeek, Qwen, ...)
    #
    # llm_model serves the per-query stages (selection, extraction,
    # synthesis, enrichment). llm_summary_model serves the corpus-wide
    # summary, which reads every document at once.
    # -------------------------------------------------------------------------
    llm_provider: str = "gemini"  # "gemini", "anthropic" or "openai_compatible"
    llm_base_url: str | None = None  # Only needed for openai_compatible
    llm_api_key: str | None = None   # Overrides provider-specific key if set
    llm_model: str = "gemini-2.5-flash"
    llm_summary_model: str = "gemini-2.5-pro"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 4096

    # -------------------------------------------------------------------------
    # Resilient Calls
    # -------------------------------------------------------------------------
    # Every generation call is wrapped by ResilientCaller: up to
    # llm_max_attempts attempts in total, waiting attempt × base delay
    # seconds before each retry (1s, then 2s with the defaults).
    # llm_timeout_seconds bounds a single attempt; None disables it.
    # -------------------------------------------------------------------------
    llm_max_attempts: int = 3
    llm_retry_base_delay: float = 1.0
    llm_timeout_seconds: float | None = 120.0

    # -------------------------------------------------------------------------
    # Retrieval (Selector)
    # -------------------------------------------------------------------------
    # Corpora at or below the pass-through threshold skip relevance
    # filtering entirely. This is unrelated to max_corpus_documents.
    # -------------------------------------------------------------------------
    selector_passthrough_threshold: int = 7
    selector_max_documents: int = 30

    # -------------------------------------------------------------------------
    # Truncation Limits (characters)
    # -------------------------------------------------------------------------
    # Heuristic payload bounds tied to the model's context window.
    #   description_max_chars: prefix used for the one-line description
    #   metadata_edge_chars:   prefix AND suffix used for title/date lookup
    #   extraction_max_chars:  prefix read by the Extractor per document
    #   summary_document_max_chars: per-document cap for the corpus summary
    # -------------------------------------------------------------------------
    description_max_chars: int = 8000
    metadata_edge_chars: int = 4000
    extraction_max_chars: int = 25000
    extraction_max_tokens: int = 1000
    summary_document_max_chars: int = 25000

    # -------------------------------------------------------------------------
    # Corpus
    # -------------------------------------------------------------------------
    max_corpus_documents: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Create and cache a Settings instance.

    Tests patch individual fields on the shared instance:
        patch.object(settings, "max_corpus_documents", 2)
    """
    return Settings()


settings = get_settings()
