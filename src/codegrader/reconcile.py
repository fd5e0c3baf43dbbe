"""
Roster reconciliation: attach parsed submission bundles to roster records.

Matching is exact equality of trimmed, lower-cased email addresses. There is no
fuzzy matching.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .exceptions import MatchError
from .models import ParsedSubmissions, RosterRecord, SubmissionBundle, normalize_email

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    matched: List[Tuple[RosterRecord, SubmissionBundle]] = field(default_factory=list)
    unmatched: List[SubmissionBundle] = field(default_factory=list)
    duplicates: List[MatchError] = field(default_factory=list)

    @property
    def matched_count(self) -> int:
        return len(self.matched)

    @property
    def unmatched_emails(self) -> List[str]:
        return [b.email for b in self.unmatched]

    @property
    def problems(self) -> List[MatchError]:
        return [MatchError(b.email) for b in self.unmatched] + list(self.duplicates)


def match_student_by_email(email: str, records: Sequence[RosterRecord]):
    """Return the first record whose normalized email equals `email`, or None."""
    needle = normalize_email(email)
    for r in records:
        if r.normalized_email == needle:
            return r
    return None


def reconcile_submissions(
    records: Sequence[RosterRecord],
    parsed: ParsedSubmissions,
) -> ReconcileResult:
    """
    Attach at most one submission to each roster record, in place.

    For each record the first bundle with an equal email wins; later bundles with
    the same email are reported in `duplicates`. Records with no match keep
    whatever submission state they already had.
    """
    result = ReconcileResult()

    first_by_email: Dict[str, SubmissionBundle] = {}
    for bundle in parsed.students:
        key = normalize_email(bundle.email)
        if key in first_by_email:
            result.duplicates.append(
                MatchError(bundle.email, "duplicate submission email; first occurrence kept")
            )
            continue
        first_by_email[key] = bundle

    for record in records:
        bundle = first_by_email.get(record.normalized_email)
        if bundle is None:
            continue
        record.submission_files = list(bundle.files)
        record.submission_date = bundle.submission_date
        result.matched.append((record, bundle))
        logger.debug("Matched %s with %s", bundle.email, record.email)

    roster_emails = {r.normalized_email for r in records}
    result.unmatched = [
        b for b in parsed.students if normalize_email(b.email) not in roster_emails
    ]

    if result.unmatched:
        logger.warning(
            "Unmatched submissions: %s", ", ".join(result.unmatched_emails)
        )
    for dup in result.duplicates:
        logger.warning(str(dup))

    logger.info(
        "Reconciled %d submission(s): %d matched, %d unmatched",
        len(parsed.students),
        result.matched_count,
        len(result.unmatched),
    )
    return result
