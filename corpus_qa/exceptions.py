"""Exception hierarchy for corpus-qa."""


class CorpusQAError(Exception):
    """Base exception for all corpus-qa errors."""


class ConfigurationError(CorpusQAError, ValueError):
    """Required setup is missing (API key, provider name). Fatal at startup."""


class ServiceUnavailable(CorpusQAError):
    """The generation service kept failing after every retry was spent."""


class MalformedResponse(CorpusQAError):
    """A model reply did not match the expected structure. Never retried."""

    def __init__(self, message: str, raw_response: str = "") -> None:
        super().__init__(message)
        self.raw_response = raw_response


class CorpusLimitExceeded(CorpusQAError):
    """Adding documents would push the corpus past its size cap."""


class DocumentNotFound(CorpusQAError, KeyError):
    """No document with the given id exists in the corpus."""


class SessionNotFound(CorpusQAError, KeyError):
    """No session with the given id exists."""
