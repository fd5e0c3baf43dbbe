# src/codegrader/history.py
#
# Change history: a bounded, newest-first log of grade/feedback mutations that
# can be reverted one entry at a time.
#
# Each ChangeRecord carries typed before/after payloads:
#   GRADE    -> GradeValue        (manual grade override)
#   FEEDBACK -> FeedbackSnapshot  (ledger apply/edit/delete, AI commentary)
#   IMPORT   -> no payload        (informational only)
# A FEEDBACK record with an empty student name is a catalog reorder and is
# also informational.
#
# Revert is an undo, not a forward mutation: it restores the old payload and
# removes the entry from the log. There is no redo.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, FrozenSet, List, Optional, Sequence, Union

from .exceptions import LedgerInconsistency
from .formatting import format_feedback_change_message, format_grade_change_message
from .models import RosterRecord

logger = logging.getLogger(__name__)

MAX_CHANGES = 50
COALESCE_WINDOW_S = 1.0


class ChangeType(str, Enum):
    GRADE = "grade"
    FEEDBACK = "feedback"
    IMPORT = "import"


@dataclass(frozen=True)
class GradeValue:
    grade: str


@dataclass(frozen=True)
class FeedbackSnapshot:
    grade: str
    feedback: str
    applied_ids: FrozenSet[int]

    @classmethod
    def of(cls, record: RosterRecord) -> "FeedbackSnapshot":
        return cls(grade=record.grade, feedback=record.feedback, applied_ids=frozenset(record.applied_ids))


Payload = Union[GradeValue, FeedbackSnapshot, None]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(eq=False)
class ChangeRecord:
    type: ChangeType
    student_name: str
    old_value: Payload = None
    new_value: Payload = None
    message: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def revertible(self) -> bool:
        if not self.student_name:
            return False
        if self.type is ChangeType.GRADE:
            return isinstance(self.old_value, GradeValue)
        if self.type is ChangeType.FEEDBACK:
            return isinstance(self.old_value, FeedbackSnapshot)
        return False

    # Convenience constructors -------------------------------------------

    @classmethod
    def grade(cls, student_name: str, old: str, new: str, message: Optional[str] = None) -> "ChangeRecord":
        return cls(ChangeType.GRADE, student_name, GradeValue(old), GradeValue(new), message)

    @classmethod
    def feedback(
        cls,
        student_name: str,
        old: FeedbackSnapshot,
        new: FeedbackSnapshot,
        message: Optional[str] = None,
    ) -> "ChangeRecord":
        return cls(ChangeType.FEEDBACK, student_name, old, new, message)

    @classmethod
    def reorder(cls) -> "ChangeRecord":
        return cls(ChangeType.FEEDBACK, "", message="Feedback items reordered")

    @classmethod
    def imported(cls, message: str) -> "ChangeRecord":
        return cls(ChangeType.IMPORT, "System", message=message)


def default_message(change: ChangeRecord) -> Optional[str]:
    if change.type is ChangeType.GRADE and isinstance(change.old_value, GradeValue):
        new = change.new_value.grade if isinstance(change.new_value, GradeValue) else ""
        return format_grade_change_message(change.student_name, change.old_value.grade, new)
    if change.type is ChangeType.FEEDBACK and isinstance(change.old_value, FeedbackSnapshot):
        new = change.new_value.grade if isinstance(change.new_value, FeedbackSnapshot) else ""
        return format_feedback_change_message(change.student_name, change.old_value.grade, new)
    return None


class ChangeHistory:
    """
    Newest-first change log.

    record() coalesces a change into the previous entry when both target the same
    student with the same type within `coalesce_window_s` of now; this absorbs
    bursts of automatic recomputation. Informational entries (imports,
    reorders) are never coalesced.
    """

    def __init__(
        self,
        *,
        max_entries: int = MAX_CHANGES,
        coalesce_window_s: float = COALESCE_WINDOW_S,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.max_entries = max_entries
        self.coalesce_window_s = coalesce_window_s
        self._clock = clock
        self._entries: List[ChangeRecord] = []

    # -----------------------------
    # Read access
    # -----------------------------

    @property
    def entries(self) -> List[ChangeRecord]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    def clear(self) -> None:
        self._entries.clear()

    # -----------------------------
    # Mutation
    # -----------------------------

    def record(self, change: ChangeRecord) -> bool:
        """
        Prepend `change` (timestamped now) unless it coalesces with the newest entry.

        Returns True when the change was appended.
        """
        now = self._clock()

        if self._entries:
            last = self._entries[0]
            if (
                change.revertible
                and last.revertible
                and last.student_name == change.student_name
                and last.type == change.type
                and abs((now - last.timestamp).total_seconds()) < self.coalesce_window_s
            ):
                logger.debug("Coalesced %s change for %r", change.type.value, change.student_name)
                return False

        change.timestamp = now
        if change.message is None:
            change.message = default_message(change)

        self._entries.insert(0, change)
        del self._entries[self.max_entries:]
        logger.debug("Recorded %s change: %s", change.type.value, change.message)
        return True

    def revert(
        self,
        change: ChangeRecord,
        records: Sequence[RosterRecord],
        *,
        known_ids: Optional[FrozenSet[int]] = None,
    ) -> bool:
        """
        Restore the named student's state from `change.old_value` and drop the entry.

        The stored snapshot is restored verbatim. When `known_ids` (the live
        catalog ids) is given, applied ids missing from it are logged.

        Returns False (and leaves everything unchanged) when the entry is not in
        the log, is informational, or its student cannot be found.
        """
        if not any(e is change for e in self._entries):
            logger.warning("Revert ignored: change is not in history (%s)", change.message)
            return False

        if not change.revertible:
            logger.info("Revert ignored: %s entries are informational", change.type.value)
            return False

        target = next((r for r in records if r.name == change.student_name), None)
        if target is None:
            err = LedgerInconsistency(f"Revert target not found: {change.student_name!r}")
            logger.warning(str(err))
            return False

        old = change.old_value
        if isinstance(old, GradeValue):
            target.grade = old.grade
        elif isinstance(old, FeedbackSnapshot):
            target.grade = old.grade
            target.feedback = old.feedback
            target.applied_ids = set(old.applied_ids)
            if known_ids is not None:
                stale = sorted(old.applied_ids - known_ids)
                if stale:
                    logger.warning(
                        "Reverted %r to applied ids no longer in the catalog: %s",
                        change.student_name,
                        stale,
                    )

        self._entries = [e for e in self._entries if e is not change]
        logger.info("Reverted change: %s", change.message)
        return True
