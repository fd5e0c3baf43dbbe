"""
Batch processing for generating commentary across many students.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from .models import RosterRecord

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Results from a batch commentary run."""
    total: int
    succeeded: int
    failed: int
    failures: List[Tuple[str, str]] = field(default_factory=list)  # (student name, error_msg)
    cancelled: bool = False


class BatchCommentaryRunner:
    """
    Runs a per-student callback sequentially, pausing between requests.

    Individual failures are collected rather than aborting the batch. The
    optional `should_cancel` hook is checked before each student.
    """

    def __init__(
        self,
        delay_s: float = 1.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
        should_cancel: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            delay_s: Pause between consecutive requests (not before the first)
            sleep: Sleep function, replaceable in tests
            should_cancel: Returns True to stop before the next student
        """
        self.delay_s = delay_s
        self._sleep = sleep
        self._should_cancel = should_cancel

    def run(
        self,
        records: Sequence[RosterRecord],
        callback: Callable[[RosterRecord], None],
    ) -> BatchResult:
        """
        Call `callback` for each record.

        Args:
            records: Students to process, in order
            callback: Raises on failure; return value is ignored

        Returns:
            BatchResult with statistics and failures
        """
        total = len(records)
        succeeded = 0
        failures: List[Tuple[str, str]] = []
        cancelled = False

        for idx, record in enumerate(records, start=1):
            if self._should_cancel is not None and self._should_cancel():
                logger.info("Batch cancelled after %d of %d student(s)", idx - 1, total)
                cancelled = True
                break

            if idx > 1 and self.delay_s > 0:
                self._sleep(self.delay_s)

            logger.info("[%d/%d] %s", idx, total, record.name)
            try:
                callback(record)
                succeeded += 1
            except Exception as e:
                error_msg = f"{type(e).__name__}: {e}"
                failures.append((record.name, error_msg))
                logger.error("Commentary failed for %s: %s", record.name, e)

        return BatchResult(
            total=total,
            succeeded=succeeded,
            failed=len(failures),
            failures=failures,
            cancelled=cancelled,
        )
