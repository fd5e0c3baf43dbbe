# src/codegrader/exceptions.py
#
# Project-specific exception hierarchy for codegrader.

from __future__ import annotations

from typing import Optional


class CodeGraderError(Exception):
    """Base class for all codegrader exceptions."""


# -----------------------------
# Roster / archive ingestion
# -----------------------------

class RosterValidationError(CodeGraderError):
    """Raised when a roster export is empty or lacks required columns. Import is aborted."""


class ExtractionError(CodeGraderError):
    """One archive entry could not be read or identified. Collected per entry, never fatal."""

    def __init__(self, path: str, cause: object = None):
        self.path = path
        self.cause = cause
        if cause is None:
            super().__init__(path)
        else:
            super().__init__(f"Failed to read {path}: {cause}")


class MatchError(CodeGraderError):
    """A submission with no (or a duplicate) roster counterpart. Reported in aggregate."""

    def __init__(self, email: str, reason: str = "not found in roster"):
        self.email = email
        self.reason = reason
        super().__init__(f"{email}: {reason}")


# -----------------------------
# Feedback ledger / history
# -----------------------------

class FeedbackItemError(CodeGraderError):
    """Raised for invalid feedback catalog edits (blank comment, negative deduction, unknown id)."""


class LedgerInconsistency(CodeGraderError):
    """A revert target could not be located. Logged; the revert becomes a no-op."""


# -----------------------------
# Commentary service
# -----------------------------

class ExternalServiceError(CodeGraderError):
    """Raised when an external collaborator (commentary generation) fails."""


class LLMError(ExternalServiceError):
    """Raised for OpenAI/API/model failures (timeouts, invalid responses, etc.)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLMAuthenticationError(LLMError):
    pass


class LLMRateLimitError(LLMError):
    pass


class LLMServerError(LLMError):
    pass


class MalformedResponseError(LLMError):
    """Model returned output that is not a usable JSON object."""
