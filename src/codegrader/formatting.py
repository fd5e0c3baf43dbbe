"""
Formatting utilities for grades, history messages and import status lines.
"""

from typing import Optional, Sequence


def format_points(value: float) -> str:
    """
    Render a point value the way the grade worksheet expects.

    Whole numbers have no decimal point ("17"); fractional values keep their
    shortest float form ("17.5").
    """
    v = round(float(value), 6)
    if v.is_integer():
        return str(int(v))
    return repr(v)


def format_grade_change_message(student_name: str, old_grade: Optional[str], new_grade: Optional[str]) -> str:
    return f"{student_name}: {old_grade} → {new_grade} points"


def format_feedback_change_message(student_name: str, old_grade: Optional[str], new_grade: Optional[str]) -> str:
    """
    History line for a feedback change. A blank old grade reads as 0 so the
    first deduction shows as "0 → 17 points".
    """
    return f"{student_name}: {old_grade or '0'} → {new_grade} points"


def format_submission_import_status(matched: int, unmatched_emails: Sequence[str], error_count: int) -> str:
    """
    Summarize a submission import for the instructor.

    Example:
        Imported 12 student submissions. 1 submission(s) not found in roster: x@y.edu. 2 error(s) occurred.
    """
    msg = f"Imported {matched} student submissions"
    if unmatched_emails:
        msg += (
            f". {len(unmatched_emails)} submission(s) not found in roster: "
            f"{', '.join(unmatched_emails)}"
        )
    if error_count:
        msg += f". {error_count} error(s) occurred."
    return msg


def format_import_history_message(matched: int, unmatched: int) -> str:
    return f"ZIP submissions imported: {matched} matched, {unmatched} unmatched"
