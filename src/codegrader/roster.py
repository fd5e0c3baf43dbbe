"""
Roster import/export for Moodle-style grading worksheets.

Import requires a header row with at least "Full name" and "Email address".
Export always writes the fixed 12-column worksheet layout Moodle accepts for
re-upload.
"""

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .exceptions import RosterValidationError
from .models import RosterRecord

logger = logging.getLogger(__name__)


REQUIRED_HEADERS = ("Full name", "Email address")
MAX_GRADE_HEADERS = ("Maximum grade", "Maximum Grade")

EXPORT_HEADERS = (
    "Identifier",
    "Full name",
    "ID number",
    "Email address",
    "Status",
    "Grade",
    "Maximum Grade",
    "Grade can be changed",
    "Last modified (submission)",
    "Online text",
    "Last modified (grade)",
    "Feedback comments",
)

# header -> RosterRecord attribute
_COLUMN_MAP: Dict[str, str] = {
    "Identifier": "identifier",
    "Full name": "name",
    "ID number": "id_number",
    "Email address": "email",
    "Status": "status",
    "Grade": "grade",
    "Grade can be changed": "grade_can_be_changed",
    "Last modified (submission)": "last_modified_submission",
    "Online text": "online_text",
    "Last modified (grade)": "last_modified_grade",
    "Feedback comments": "feedback",
}

_NON_NUMERIC_RE = re.compile(r"[^\d.]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class RosterImport:
    """Result of a successful roster import."""
    records: List[RosterRecord]
    max_points: Optional[float] = None
    warnings: List[str] = field(default_factory=list)


def clean_max_grade(value: Optional[str]) -> str:
    """'20.00 pts' -> '20.00'. Strips everything except digits and dots."""
    return _NON_NUMERIC_RE.sub("", (value or "").strip())


def _read_rows(text: str) -> List[List[str]]:
    # Drop a UTF-8 BOM the way open(..., encoding="utf-8-sig") would.
    text = text.lstrip("\ufeff")
    lines = text.splitlines()
    first = lines[0] if lines else ""

    # Auto-detect delimiter: tab or comma
    delimiter = "\t" if "\t" in first else ","
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    return [row for row in reader if row and any(c.strip() for c in row)]


def validate_headers(header: Sequence[str]) -> None:
    present = {h.strip() for h in header}
    missing = [h for h in REQUIRED_HEADERS if h not in present]
    if missing:
        raise RosterValidationError(f"Missing required columns: {', '.join(missing)}")


def _find_max_grade(header: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    idx = next((i for i, h in enumerate(header) if h.strip() in MAX_GRADE_HEADERS), -1)
    if idx == -1:
        return ""
    for row in rows:
        if idx < len(row) and row[idx].strip():
            cleaned = clean_max_grade(row[idx])
            if cleaned:
                return cleaned
    return ""


def parse_roster(text: str) -> RosterImport:
    """
    Parse roster CSV/TSV text into RosterRecords.

    Raises:
        RosterValidationError: empty input or missing required columns.
            Nothing is returned in that case, so callers never see a partial roster.
    """
    rows = _read_rows(text or "")
    if not rows:
        raise RosterValidationError("Empty CSV file")

    header = [h.strip() for h in rows[0]]
    validate_headers(header)
    body = rows[1:]

    max_grade_found = _find_max_grade(header, body)

    records: List[RosterRecord] = []
    for row in body:
        rec = RosterRecord(name="", email="")
        for i, h in enumerate(header):
            value = row[i] if i < len(row) else ""
            if h in MAX_GRADE_HEADERS:
                rec.max_grade = clean_max_grade(value) or max_grade_found
                continue
            attr = _COLUMN_MAP.get(h)
            if attr:
                setattr(rec, attr, value)
        records.append(rec)

    result = RosterImport(records=records)

    if max_grade_found:
        try:
            value = float(max_grade_found)
        except ValueError:
            value = 0.0
        if value > 0:
            result.max_points = value
            logger.info("Maximum grade from roster: %s", max_grade_found)
        else:
            msg = f"Invalid maximum points value in CSV: {max_grade_found!r}"
            logger.warning(msg)
            result.warnings.append(msg)
    else:
        logger.debug("No maximum grade value found in roster")

    logger.info("Parsed roster with %d student(s)", len(records))
    return result


def load_roster(path: str) -> RosterImport:
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return parse_roster(f.read())


def export_roster(records: Sequence[RosterRecord]) -> str:
    """Render the roster as 12-column CSV text (one row per record, current order)."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(EXPORT_HEADERS)
    for r in records:
        writer.writerow(
            [
                r.identifier,
                r.name,
                r.id_number,
                r.email,
                r.status,
                r.grade,
                r.max_grade,
                r.grade_can_be_changed,
                r.last_modified_submission,
                r.online_text,
                r.last_modified_grade,
                r.feedback,
            ]
        )
    return buf.getvalue()


def write_roster(path: str, records: Sequence[RosterRecord]) -> None:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(export_roster(records))


def export_filename(assignment_name: str) -> str:
    stem = _WHITESPACE_RE.sub("_", assignment_name.strip().lower())
    return f"{stem}_grades.csv"
