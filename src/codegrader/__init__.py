"""
codegrader package.

Submission ingestion and grade reconciliation: parse bulk LMS submission
archives, match them to a roster export, apply point-deduction feedback and
keep a revertible change history.
"""

from .archive import parse_submission_archive
from .config import GraderConfig
from .exceptions import (
    CodeGraderError,
    ExtractionError,
    FeedbackItemError,
    LedgerInconsistency,
    MatchError,
    RosterValidationError,
)
from .feedback import FeedbackCatalog, FeedbackLedger
from .history import ChangeHistory, ChangeRecord, ChangeType
from .identity import parse_student_info
from .models import FeedbackItem, ParsedSubmissions, RosterRecord, SubmissionBundle, SubmissionFile
from .reconcile import reconcile_submissions
from .roster import export_roster, parse_roster
from .session import GradingSession

__version__ = "0.1.0"

__all__ = [
    "GradingSession",
    "GraderConfig",
    "parse_submission_archive",
    "parse_student_info",
    "parse_roster",
    "export_roster",
    "reconcile_submissions",
    "FeedbackCatalog",
    "FeedbackLedger",
    "ChangeHistory",
    "ChangeRecord",
    "ChangeType",
    "FeedbackItem",
    "ParsedSubmissions",
    "RosterRecord",
    "SubmissionBundle",
    "SubmissionFile",
    "CodeGraderError",
    "ExtractionError",
    "FeedbackItemError",
    "LedgerInconsistency",
    "MatchError",
    "RosterValidationError",
]
