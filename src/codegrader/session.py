# src/codegrader/session.py
#
# GradingSession: the one state object a working session threads through every
# operation (roster, feedback catalog, ledger, change history).
#
# Responsibilities:
#   - roster import/export (an invalid roster never replaces the current one)
#   - submission import: parse archive -> reconcile -> IMPORT history entry
#   - feedback catalog + ledger operations, by student name
#   - attaching AI commentary (single student or sequential batch)
#   - revert
#
# Every mutator runs under one re-entrant lock so a grade recompute, the
# feedback text edit and the history append are never interleaved with another
# mutation.

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

from .archive import ArchiveSource, parse_submission_archive
from .batch import BatchCommentaryRunner, BatchResult
from .commentary import Commentary, SuggestedFeedback
from .config import GraderConfig
from .exceptions import CodeGraderError
from .feedback import FeedbackCatalog, FeedbackLedger
from .formatting import format_import_history_message, format_points, format_submission_import_status
from .history import ChangeHistory, ChangeRecord, FeedbackSnapshot
from .models import FeedbackItem, ParsedSubmissions, RosterRecord
from .reconcile import ReconcileResult, reconcile_submissions
from .roster import RosterImport, export_filename, export_roster, parse_roster
from .textutil import append_line, collapse_blank_lines, main_code_file

logger = logging.getLogger(__name__)

# code text -> Commentary (see codegrader.commentary.generate_commentary)
CommentaryGenerator = Callable[[str], Commentary]
# code samples -> suggested catalog items
SuggestionGenerator = Callable[[Sequence[str]], List[SuggestedFeedback]]


@dataclass
class SubmissionImport:
    """Summary of one archive import."""
    parsed: ParsedSubmissions
    reconciled: ReconcileResult
    status: str
    errors: List[str] = field(default_factory=list)


class GradingSession:
    def __init__(self, config: Optional[GraderConfig] = None):
        self.config = config or GraderConfig()
        self.assignment_name = ""
        self.roster: List[RosterRecord] = []
        self.catalog = FeedbackCatalog()
        self.history = ChangeHistory(
            max_entries=self.config.history_limit,
            coalesce_window_s=self.config.coalesce_window_s,
        )
        self.ledger = FeedbackLedger(
            self.catalog,
            self.history,
            max_points=self.config.default_max_points,
        )
        self._lock = threading.RLock()

    # -----------------------------
    # Max points
    # -----------------------------

    @property
    def max_points(self) -> float:
        return self.ledger.max_points

    @max_points.setter
    def max_points(self, value: float) -> None:
        value = float(value)
        if value <= 0:
            raise ValueError("max_points must be > 0")
        with self._lock:
            self.ledger.max_points = value
            for record in self.roster:
                record.max_grade = format_points(value)
            self.ledger.recompute_all(self.roster)

    # -----------------------------
    # Roster
    # -----------------------------

    def import_roster(self, text: str) -> RosterImport:
        """
        Replace the roster with the parsed CSV text.

        Raises RosterValidationError before touching any state.
        """
        imported = parse_roster(text)
        with self._lock:
            self.roster = imported.records
            if imported.max_points is not None:
                self.ledger.max_points = imported.max_points
            self.history.record(ChangeRecord.imported("CSV data imported"))
        logger.info("Roster loaded: %d student(s), max points %s", len(self.roster), self.max_points)
        return imported

    def export_roster(self) -> str:
        with self._lock:
            return export_roster(self.roster)

    def export_filename(self) -> str:
        return export_filename(self.assignment_name or "assignment")

    def find_student(self, name: str) -> RosterRecord:
        record = next((r for r in self.roster if r.name == name), None)
        if record is None:
            raise CodeGraderError(f"Student not found in roster: {name!r}")
        return record

    def _find_all(self, names: Iterable[str]) -> List[RosterRecord]:
        return [self.find_student(n) for n in names]

    # -----------------------------
    # Submissions
    # -----------------------------

    def import_submissions(self, source: ArchiveSource) -> SubmissionImport:
        # Decoding happens outside the lock; only reconciliation mutates state.
        parsed = parse_submission_archive(source, config=self.config)

        with self._lock:
            reconciled = reconcile_submissions(self.roster, parsed)
            self.history.record(
                ChangeRecord.imported(
                    format_import_history_message(reconciled.matched_count, len(reconciled.unmatched))
                )
            )

        errors = list(parsed.errors) + [str(d) for d in reconciled.duplicates]
        status = format_submission_import_status(
            reconciled.matched_count, reconciled.unmatched_emails, len(errors)
        )
        logger.info(status)
        return SubmissionImport(parsed=parsed, reconciled=reconciled, status=status, errors=errors)

    # -----------------------------
    # Feedback catalog + ledger
    # -----------------------------

    def add_feedback(self, comment: str, grade: float = 0) -> FeedbackItem:
        with self._lock:
            return self.catalog.add(comment, grade)

    def apply_feedback(self, item_id: int, student_names: Sequence[str]) -> List[ChangeRecord]:
        with self._lock:
            item = self.catalog.require(item_id)
            return self.ledger.apply(item, self._find_all(student_names))

    def update_feedback(self, item_id: int, comment: str, grade: float) -> List[ChangeRecord]:
        with self._lock:
            _, changes = self.ledger.update_item(item_id, comment, grade, self.roster)
            return changes

    def delete_feedback(self, item_id: int) -> List[ChangeRecord]:
        with self._lock:
            return self.ledger.delete(item_id, self.roster)

    def reorder_feedback(self, old_index: int, new_index: int) -> Optional[ChangeRecord]:
        with self._lock:
            return self.ledger.reorder(old_index, new_index)

    def set_grade(self, student_name: str, grade: str) -> Optional[ChangeRecord]:
        with self._lock:
            return self.ledger.set_grade(self.find_student(student_name), grade)

    def revert(self, change: ChangeRecord) -> bool:
        with self._lock:
            return self.history.revert(change, self.roster, known_ids=self.catalog.ids)

    # -----------------------------
    # AI commentary
    # -----------------------------

    def _attach_commentary(self, record: RosterRecord, commentary: Commentary) -> Optional[ChangeRecord]:
        with self._lock:
            before = FeedbackSnapshot.of(record)
            record.ai_feedback = commentary
            for comment in commentary.overall_comments:
                comment = collapse_blank_lines(comment)
                if comment:
                    record.feedback = append_line(record.feedback, comment).strip()
            after = FeedbackSnapshot.of(record)
            if after == before:
                return None
            change = ChangeRecord.feedback(record.name, before, after, "AI feedback generated")
            return change if self.history.record(change) else None

    def generate_commentary(self, student_name: str, generator: CommentaryGenerator) -> Commentary:
        """
        Run `generator` on the student's main code file and attach the result.

        Overall comments are appended to the feedback text as one FEEDBACK
        change. Errors from the generator propagate unchanged.
        """
        record = self.find_student(student_name)
        code_file = main_code_file(record.submission_files)
        if code_file is None:
            raise CodeGraderError(f"No submission files for {student_name!r}")

        commentary = generator(code_file.content)
        self._attach_commentary(record, commentary)
        return commentary

    def generate_batch_commentary(
        self,
        generator: CommentaryGenerator,
        *,
        student_names: Optional[Sequence[str]] = None,
        runner: Optional[BatchCommentaryRunner] = None,
    ) -> BatchResult:
        """Generate commentary for every student with a submission (or the named ones)."""
        if student_names is None:
            targets = [r for r in self.roster if r.has_submission]
        else:
            targets = self._find_all(student_names)

        runner = runner or BatchCommentaryRunner(delay_s=self.config.batch_delay_s)
        result = runner.run(targets, lambda r: self.generate_commentary(r.name, generator))
        logger.info(
            "AI feedback: %d succeeded, %d failed%s",
            result.succeeded,
            result.failed,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def code_samples(self) -> List[str]:
        samples: List[str] = []
        for record in self.roster:
            code_file = main_code_file(record.submission_files)
            if code_file is not None:
                samples.append(code_file.content)
        return samples

    def suggest_feedback(self, suggester: SuggestionGenerator) -> List[SuggestedFeedback]:
        samples = self.code_samples()
        if not samples:
            logger.warning("No student submissions available to analyze")
            return []
        return suggester(samples)

    def accept_suggestion(self, suggestion: SuggestedFeedback) -> FeedbackItem:
        return self.add_feedback(suggestion.comment, suggestion.grade)

    # -----------------------------
    # Reset
    # -----------------------------

    def reset(self) -> None:
        """Forget roster, catalog edits and history; keep configuration."""
        with self._lock:
            self.roster = []
            self.assignment_name = ""
            self.catalog = FeedbackCatalog()
            self.history.clear()
            self.ledger = FeedbackLedger(
                self.catalog,
                self.history,
                max_points=self.config.default_max_points,
            )
