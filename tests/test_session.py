"""
End-to-end tests for GradingSession: roster + archive + ledger + history.
"""

import csv
import io

import pytest

from conftest import make_zip

from codegrader.batch import BatchCommentaryRunner
from codegrader.commentary import Commentary, SuggestedFeedback
from codegrader.exceptions import CodeGraderError, RosterValidationError
from codegrader.history import ChangeType
from codegrader.session import GradingSession

MOODLE_NAME = "Segura_Joshua_jgs32calvin.edu_2025-10-10_23-43-22"


@pytest.fixture
def session(roster_csv, clock):
    s = GradingSession()
    s.history._clock = clock
    s.import_roster(roster_csv)
    clock.advance(5)
    return s


@pytest.fixture
def bulk_zip():
    return make_zip(
        {
            f"{MOODLE_NAME}.zip": make_zip({"hw/main.py": "print('hi')\n", "hw/util.py": "X = 1\n"}),
            "Doe_Jane_jane@school.edu_2025.zip": make_zip({"solution.py": "pass\n"}),
            "Stranger_Sue_sue@other.edu_2025.zip": make_zip({"a.py": "pass\n"}),
        }
    )


class TestRoster:
    def test_import_sets_max_points_and_logs(self, session):
        assert session.max_points == 20.0
        assert len(session.roster) == 3
        assert session.history.entries[0].message == "CSV data imported"

    def test_invalid_roster_leaves_previous_roster(self, session):
        before = list(session.roster)
        with pytest.raises(RosterValidationError):
            session.import_roster("Full name,Grade\nNew Person,10\n")

        assert session.roster == before

    def test_export(self, session):
        text = session.export_roster()
        assert text.splitlines()[0].startswith("Identifier,Full name,ID number,Email address")

    def test_export_filename(self, session):
        session.assignment_name = "Lab 4"
        assert session.export_filename() == "lab_4_grades.csv"


class TestSubmissions:
    def test_import_matches_by_email(self, session, bulk_zip):
        summary = session.import_submissions(bulk_zip)

        assert summary.reconciled.matched_count == 2
        assert summary.reconciled.unmatched_emails == ["sue@other.edu"]
        assert summary.status == (
            "Imported 2 student submissions. 1 submission(s) not found in roster: sue@other.edu"
        )
        assert session.find_student("Joshua Segura").has_submission
        assert session.find_student("Jane Doe").has_submission
        assert not session.find_student("Sam Lee").has_submission
        assert session.history.entries[0].message == "ZIP submissions imported: 2 matched, 1 unmatched"

    def test_back_to_back_imports_are_both_logged(self, roster_csv, clock, bulk_zip):
        s = GradingSession()
        s.history._clock = clock
        s.import_roster(roster_csv)
        s.import_submissions(bulk_zip)

        assert [e.message for e in s.history.entries] == [
            "ZIP submissions imported: 2 matched, 1 unmatched",
            "CSV data imported",
        ]


class TestLedger:
    def test_apply_and_revert(self, session, clock):
        session.apply_feedback(1, ["Jane Doe"])
        clock.advance(2)
        session.apply_feedback(2, ["Jane Doe"])
        jane = session.find_student("Jane Doe")
        assert jane.grade == "15"

        n = len(session.history)
        assert session.revert(session.history.entries[0])

        assert len(session.history) == n - 1
        assert jane.grade == "17"
        assert jane.applied_ids == {1}

    def test_delete_then_add_reuses_id(self, session):
        session.apply_feedback(2, ["Jane Doe"])
        session.delete_feedback(2)

        assert session.find_student("Jane Doe").grade == ""
        assert session.add_feedback("Use f-strings", 1).id == 2

    def test_update_feedback_regrades_holders(self, session):
        session.apply_feedback(1, ["Jane Doe", "Sam Lee"])
        session.update_feedback(1, "Add docstrings", 4)

        assert session.find_student("Jane Doe").grade == "16"
        assert session.find_student("Sam Lee").feedback == "Add docstrings"

    def test_max_points_change_recomputes(self, session):
        session.apply_feedback(1, ["Jane Doe"])
        session.max_points = 10

        assert session.find_student("Jane Doe").grade == "7"
        with pytest.raises(ValueError):
            session.max_points = 0

    def test_max_points_change_updates_exported_maximum(self, session):
        session.max_points = 10

        assert [r.max_grade for r in session.roster] == ["10", "10", "10"]
        rows = list(csv.reader(io.StringIO(session.export_roster())))
        assert rows[0][6] == "Maximum Grade"
        assert {row[6] for row in rows[1:]} == {"10"}

    def test_set_grade_and_unknown_student(self, session):
        change = session.set_grade("Sam Lee", "12")
        assert change.type is ChangeType.GRADE

        with pytest.raises(CodeGraderError):
            session.set_grade("Nobody", "1")

    def test_reset(self, session):
        session.delete_feedback(1)
        session.reset()

        assert session.roster == []
        assert len(session.history) == 0
        assert [i.id for i in session.catalog] == [1, 2, 3, 4]


class TestCommentary:
    def test_generate_uses_main_file_and_records_change(self, session, bulk_zip):
        session.import_submissions(bulk_zip)
        seen = []

        def generator(code):
            seen.append(code)
            return Commentary(overall_comments=["Nice work\n\n\n\nKeep going"])

        session.generate_commentary("Joshua Segura", generator)
        josh = session.find_student("Joshua Segura")

        assert seen == ["print('hi')\n"]
        assert josh.feedback == "Nice work\n\nKeep going"
        assert josh.ai_feedback.overall_comments
        assert session.history.entries[0].message == "AI feedback generated"

    def test_generate_without_submission(self, session):
        with pytest.raises(CodeGraderError):
            session.generate_commentary("Sam Lee", lambda code: Commentary())

    def test_batch_only_targets_students_with_submissions(self, session, bulk_zip):
        session.import_submissions(bulk_zip)
        sleeps = []

        def generator(code):
            if code == "pass\n":
                raise RuntimeError("server error")
            return Commentary(overall_comments=["ok"])

        result = session.generate_batch_commentary(
            generator, runner=BatchCommentaryRunner(sleep=sleeps.append)
        )

        assert result.total == 2
        assert result.succeeded == 1
        assert result.failed == 1
        assert sleeps == [1.0]

    def test_suggestions(self, session, bulk_zip):
        assert session.suggest_feedback(lambda samples: []) == []

        session.import_submissions(bulk_zip)
        got = session.suggest_feedback(
            lambda samples: [SuggestedFeedback("Check input", float(len(samples)))]
        )
        item = session.accept_suggestion(got[0])

        assert item.id == 5
        assert item.grade == 2.0
