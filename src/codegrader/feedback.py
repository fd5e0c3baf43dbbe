# src/codegrader/feedback.py
#
# Feedback catalog + ledger.
#
# The catalog is the ordered list of reusable point-deduction comments. The
# ledger applies catalog items to roster records and keeps each record's
# `feedback` text, `applied_ids` and derived `grade` consistent:
#
#   grade == ""                                          if applied_ids is empty
#   grade == format_points(max(0, max_points - deductions))  otherwise
#
# Every record a ledger operation changes yields exactly one ChangeRecord,
# handed to the ChangeHistory.

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import FeedbackItemError
from .formatting import format_points
from .history import ChangeHistory, ChangeRecord, FeedbackSnapshot
from .models import FeedbackItem, RosterRecord
from .textutil import append_line, remove_lines, replace_lines

logger = logging.getLogger(__name__)


DEFAULT_FEEDBACK: Tuple[FeedbackItem, ...] = (
    FeedbackItem(1, "Add more comments", 3),
    FeedbackItem(2, "Poor indentation", 2),
    FeedbackItem(3, "Looks good!", 0),
    FeedbackItem(4, "No submission", 20),
)

SORT_FIELDS = ("text", "deduction", "applied")


# -----------------------------
# Catalog
# -----------------------------

class FeedbackCatalog:
    """Ordered feedback items with id recycling (smallest freed id first)."""

    def __init__(self, items: Optional[Iterable[FeedbackItem]] = None):
        self._items: List[FeedbackItem] = list(DEFAULT_FEEDBACK if items is None else items)
        self._reusable_ids: List[int] = []
        self._next_id = max((i.id for i in self._items), default=0) + 1

    @property
    def items(self) -> List[FeedbackItem]:
        return list(self._items)

    @property
    def ids(self) -> frozenset:
        return frozenset(i.id for i in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def get(self, item_id: int) -> Optional[FeedbackItem]:
        return next((i for i in self._items if i.id == item_id), None)

    def require(self, item_id: int) -> FeedbackItem:
        item = self.get(item_id)
        if item is None:
            raise FeedbackItemError(f"Unknown feedback item id: {item_id}")
        return item

    def deduction(self, item_id: int) -> float:
        """Deduction for `item_id`; ids no longer in the catalog count as 0."""
        item = self.get(item_id)
        return float(item.grade) if item is not None else 0.0

    def _allocate_id(self) -> int:
        if self._reusable_ids:
            item_id = min(self._reusable_ids)
            self._reusable_ids.remove(item_id)
            return item_id
        item_id = self._next_id
        self._next_id += 1
        return item_id

    @staticmethod
    def _validate(comment: str, grade: float) -> Tuple[str, float]:
        if not comment or not comment.strip():
            raise FeedbackItemError("Feedback comment must not be blank.")
        try:
            value = float(grade)
        except (TypeError, ValueError) as e:
            raise FeedbackItemError(f"Deduction must be a number, got {grade!r}") from e
        if value < 0:
            raise FeedbackItemError("Deduction must be >= 0.")
        return comment, value

    def add(self, comment: str, grade: float = 0) -> FeedbackItem:
        comment, value = self._validate(comment, grade)
        item = FeedbackItem(self._allocate_id(), comment, value)
        self._items.append(item)
        logger.debug("Added feedback item %d: %r (-%s)", item.id, item.comment, format_points(value))
        return item

    def update(self, item_id: int, comment: str, grade: float) -> Tuple[FeedbackItem, FeedbackItem]:
        """Replace an item's text/deduction in place. Returns (old, new)."""
        comment, value = self._validate(comment, grade)
        old = self.require(item_id)
        new = FeedbackItem(item_id, comment, value)
        self._items = [new if i.id == item_id else i for i in self._items]
        return old, new

    def remove(self, item_id: int) -> FeedbackItem:
        """Remove an item and return its id to the reusable pool."""
        item = self.require(item_id)
        self._items = [i for i in self._items if i.id != item_id]
        self._reusable_ids.append(item_id)
        return item

    def move(self, old_index: int, new_index: int) -> bool:
        """Move the item at `old_index` to `new_index`. Returns False for a no-op."""
        n = len(self._items)
        if not (0 <= old_index < n and 0 <= new_index < n) or old_index == new_index:
            return False
        item = self._items.pop(old_index)
        self._items.insert(new_index, item)
        return True

    def search(self, query: str) -> List[FeedbackItem]:
        q = (query or "").strip().lower()
        if not q:
            return []
        return [i for i in self._items if q in i.comment.lower()]

    def sorted(
        self,
        field: str = "text",
        direction: str = "asc",
        applied_ids: Iterable[int] = (),
    ) -> List[FeedbackItem]:
        if field not in SORT_FIELDS:
            raise ValueError(f"Unknown sort field {field!r}; expected one of {SORT_FIELDS}")
        reverse = direction == "desc"
        applied = set(applied_ids)
        if field == "text":
            key = lambda i: (i.comment or "").lower()  # noqa: E731
        elif field == "deduction":
            key = lambda i: i.grade  # noqa: E731
        else:
            key = lambda i: 1 if i.id in applied else 0  # noqa: E731
        return sorted(self._items, key=key, reverse=reverse)


# -----------------------------
# Ledger
# -----------------------------

class FeedbackLedger:
    """
    Applies catalog items to roster records and records every change.

    Callers are responsible for serialising access (GradingSession holds a lock
    around each operation).
    """

    def __init__(
        self,
        catalog: FeedbackCatalog,
        history: ChangeHistory,
        *,
        max_points: float = 20.0,
    ):
        self.catalog = catalog
        self.history = history
        self.max_points = float(max_points)

    # -----------------------------
    # Grade arithmetic
    # -----------------------------

    def total_deduction(self, applied_ids: Iterable[int], overrides: Optional[Dict[int, float]] = None) -> float:
        overrides = overrides or {}
        total = 0.0
        for item_id in applied_ids:
            if item_id in overrides:
                total += float(overrides[item_id])
            else:
                total += self.catalog.deduction(item_id)
        return total

    def compute_grade(self, applied_ids: Iterable[int], overrides: Optional[Dict[int, float]] = None) -> str:
        ids = list(applied_ids)
        if not ids:
            return ""
        return format_points(max(0.0, self.max_points - self.total_deduction(ids, overrides)))

    def _commit(
        self,
        record: RosterRecord,
        before: FeedbackSnapshot,
        message: Optional[str] = None,
    ) -> Optional[ChangeRecord]:
        after = FeedbackSnapshot.of(record)
        if after == before:
            return None
        change = ChangeRecord.feedback(record.name, before, after, message)
        return change if self.history.record(change) else None

    # -----------------------------
    # Operations
    # -----------------------------

    def apply(self, item: FeedbackItem, targets: Sequence[RosterRecord]) -> List[ChangeRecord]:
        """
        Toggle `item` on each target.

        Absent -> add the id and append the comment as a new feedback line.
        Present -> remove the id and strip the matching line(s).
        """
        changes: List[ChangeRecord] = []
        for record in targets:
            before = FeedbackSnapshot.of(record)

            if item.id in record.applied_ids:
                record.applied_ids.discard(item.id)
                record.feedback = remove_lines(record.feedback, item.comment).strip()
            else:
                record.applied_ids.add(item.id)
                record.feedback = append_line(record.feedback, item.comment).strip()

            record.grade = self.compute_grade(record.applied_ids)

            change = self._commit(record, before)
            if change is not None:
                changes.append(change)
        return changes

    def edit(
        self,
        old_item: FeedbackItem,
        new_item: FeedbackItem,
        records: Sequence[RosterRecord],
    ) -> List[ChangeRecord]:
        """
        Propagate an item edit to every record holding `old_item.id`.

        The matching feedback line is rewritten to the new comment and the grade is
        re-derived with `new_item.grade` substituted at that id.
        """
        changes: List[ChangeRecord] = []
        overrides = {old_item.id: new_item.grade}
        for record in records:
            if old_item.id not in record.applied_ids:
                continue
            before = FeedbackSnapshot.of(record)
            record.feedback = replace_lines(record.feedback, old_item.comment, new_item.comment)
            record.grade = self.compute_grade(record.applied_ids, overrides)

            change = self._commit(record, before)
            if change is not None:
                changes.append(change)
        return changes

    def delete(self, item_id: int, records: Sequence[RosterRecord]) -> List[ChangeRecord]:
        """
        Remove an item from every record holding it, then from the catalog.

        The freed id becomes available for the next catalog add.
        """
        item = self.catalog.require(item_id)
        changes: List[ChangeRecord] = []
        for record in records:
            if item_id not in record.applied_ids:
                continue
            before = FeedbackSnapshot.of(record)
            record.feedback = remove_lines(record.feedback, item.comment).strip()
            record.applied_ids.discard(item_id)
            record.grade = self.compute_grade(record.applied_ids)

            change = self._commit(record, before)
            if change is not None:
                changes.append(change)

        self.catalog.remove(item_id)
        logger.info("Deleted feedback item %d (%d student(s) updated)", item_id, len(changes))
        return changes

    def update_item(
        self,
        item_id: int,
        comment: str,
        grade: float,
        records: Sequence[RosterRecord],
    ) -> Tuple[FeedbackItem, List[ChangeRecord]]:
        old, new = self.catalog.update(item_id, comment, grade)
        return new, self.edit(old, new, records)

    def reorder(self, old_index: int, new_index: int) -> Optional[ChangeRecord]:
        if not self.catalog.move(old_index, new_index):
            return None
        change = ChangeRecord.reorder()
        return change if self.history.record(change) else None

    def set_grade(self, record: RosterRecord, grade: str) -> Optional[ChangeRecord]:
        """Manual grade override; the only path that writes `grade` directly."""
        old = record.grade
        if old == grade:
            return None
        record.grade = grade
        change = ChangeRecord.grade(record.name, old, grade)
        return change if self.history.record(change) else None

    def recompute_all(self, records: Sequence[RosterRecord]) -> None:
        """Re-derive grades after max_points changes. Not recorded in history."""
        for record in records:
            if record.applied_ids:
                record.grade = self.compute_grade(record.applied_ids)
