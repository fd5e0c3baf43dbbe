# src/codegrader/models.py
#
# Core records shared by the ingestion pipeline, the feedback ledger and the
# change history.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Set


# -----------------------------
# Submissions
# -----------------------------

@dataclass(frozen=True)
class SubmissionFile:
    name: str       # path inside the (nested) archive
    content: str    # decoded UTF-8 source text


@dataclass(frozen=True)
class Identity:
    last_name: str
    first_name: str
    email: str
    date: str


@dataclass
class SubmissionBundle:
    email: str
    last_name: str
    first_name: str
    submission_date: str
    files: List[SubmissionFile] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name} ({self.email})"

    @classmethod
    def from_identity(cls, identity: Identity, files: List[SubmissionFile]) -> "SubmissionBundle":
        return cls(
            email=identity.email,
            last_name=identity.last_name,
            first_name=identity.first_name,
            submission_date=identity.date,
            files=list(files),
        )


@dataclass
class ParsedSubmissions:
    students: List[SubmissionBundle] = field(default_factory=list)
    total_students: int = 0
    successful_extractions: int = 0
    errors: List[str] = field(default_factory=list)
    shape: Optional[str] = None


# -----------------------------
# Roster + feedback catalog
# -----------------------------

@dataclass
class RosterRecord:
    name: str
    email: str
    identifier: str = ""
    id_number: str = ""
    status: str = ""
    grade: str = ""
    max_grade: str = ""
    feedback: str = ""
    applied_ids: Set[int] = field(default_factory=set)
    grade_can_be_changed: str = ""
    last_modified_submission: str = ""
    online_text: str = ""
    last_modified_grade: str = ""

    submission_files: Optional[List[SubmissionFile]] = None
    submission_date: Optional[str] = None
    ai_feedback: Optional[Any] = None  # codegrader.commentary.Commentary

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def has_submission(self) -> bool:
        return bool(self.submission_files)


@dataclass(frozen=True)
class FeedbackItem:
    id: int
    comment: str
    grade: float  # deduction, not a score


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()
