"""
Domain exceptions for the assessment core.

The error handling layer maps these to HTTP responses; ``retryable`` tells the
client whether repeating the same call is safe and may succeed.
"""

from typing import Any


class AssessmentError(Exception):
    """Base exception for assessment errors."""

    status_code: int = 500
    code: str = "ASSESSMENT_ERROR"
    retryable: bool = False
    public_message: str = "The assessment service could not complete the request"


class AnswerValidationError(AssessmentError, ValueError):
    """Raised when submitted answers are malformed."""

    status_code = 422
    code = "INVALID_ANSWERS"
    public_message = "Submitted answers are malformed"


class ConfigurationError(AssessmentError):
    """Raised when the answer key is missing or empty."""

    status_code = 503
    code = "ANSWER_KEY_MISSING"
    public_message = "The assessment is not configured yet"


class PersistenceError(AssessmentError):
    """Raised when the store is unreachable or a write fails."""

    status_code = 503
    code = "PERSISTENCE_ERROR"
    retryable = True
    public_message = "Please try again"


class AnswerKeyUnavailableError(PersistenceError):
    """Raised when the answer key cannot be read from the store."""

    code = "ANSWER_KEY_UNAVAILABLE"


class SubmissionPersistenceError(PersistenceError):
    """
    Raised when a scored submission could not be persisted.

    Carries the summary that was already computed so callers never need to
    score the same answers twice.
    """

    code = "SUBMISSION_NOT_SAVED"

    def __init__(self, message: str, summary: Any = None):
        super().__init__(message)
        self.summary = summary
