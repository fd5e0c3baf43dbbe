"""
Unit tests for roster import/export.
"""

import csv
import io

import pytest

from codegrader.exceptions import RosterValidationError
from codegrader.models import RosterRecord
from codegrader.roster import (
    EXPORT_HEADERS,
    clean_max_grade,
    export_filename,
    export_roster,
    load_roster,
    parse_roster,
    write_roster,
)


class TestParseRoster:
    def test_reads_records_and_max_points(self, roster_csv):
        imported = parse_roster(roster_csv)

        assert [r.name for r in imported.records] == ["Joshua Segura", "Jane Doe", "Sam Lee"]
        assert imported.records[0].email == "jgs32@calvin.edu"
        assert imported.records[0].identifier == "Participant 1"
        assert imported.max_points == 20.0
        assert imported.warnings == []

    def test_blank_max_grade_cells_use_first_value(self, roster_csv):
        imported = parse_roster(roster_csv)

        assert [r.max_grade for r in imported.records] == ["20.00", "20.00", "20.00"]

    def test_tab_delimited_with_bom(self):
        text = "\ufeffFull name\tEmail address\nJane Doe\tjane@school.edu\n\n"
        imported = parse_roster(text)

        assert len(imported.records) == 1
        assert imported.records[0].email == "jane@school.edu"
        assert imported.max_points is None

    def test_missing_email_column_fails(self):
        with pytest.raises(RosterValidationError, match="Email address"):
            parse_roster("Full name,Grade\nJane Doe,10\n")

    def test_empty_input_fails(self):
        with pytest.raises(RosterValidationError, match="Empty CSV file"):
            parse_roster("   \n")

    def test_zero_max_grade_is_a_warning(self):
        imported = parse_roster("Full name,Email address,Maximum grade\nA,a@x.edu,0\n")

        assert imported.max_points is None
        assert len(imported.warnings) == 1


def test_clean_max_grade():
    assert clean_max_grade("20.00 pts") == "20.00"
    assert clean_max_grade(None) == ""


class TestExport:
    def test_header_and_row_order(self):
        rec = RosterRecord(name="Jane Doe", email="jane@school.edu", grade="17", feedback="A\nB")
        rows = list(csv.reader(io.StringIO(export_roster([rec]))))

        assert tuple(rows[0]) == EXPORT_HEADERS
        assert len(rows[0]) == 12
        assert rows[1][1] == "Jane Doe"
        assert rows[1][5] == "17"
        assert rows[1][11] == "A\nB"

    def test_imported_roster_round_trips(self, roster_csv, tmp_path):
        imported = parse_roster(roster_csv)
        path = tmp_path / "out.csv"
        write_roster(str(path), imported.records)

        again = load_roster(str(path))

        assert [r.email for r in again.records] == [r.email for r in imported.records]
        assert again.max_points == 20.0

    def test_export_filename(self):
        assert export_filename("Lab 3  Loops") == "lab_3_loops_grades.csv"
