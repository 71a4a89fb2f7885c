"""Error taxonomy for entry submission and feedback enrichment."""

from __future__ import annotations


class FeedbackError(Exception):
    """Base class; ``status_code`` is the HTTP status reported to the caller."""

    status_code = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(FeedbackError):
    status_code = 400


class MalformedRequestError(FeedbackError):
    status_code = 400


class ConfigurationError(FeedbackError):
    status_code = 500


class PersistenceError(FeedbackError):
    status_code = 500


class EnrichmentError(FeedbackError):
    """Generation failed. The service downgrades this to a fallback message."""

    status_code = 502
