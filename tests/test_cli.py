"""
Smoke tests for the command-line front end (no LLM calls).
"""

import csv

from conftest import make_zip

from codegrader.cli.main import main


def test_roster_and_archive_to_export(tmp_path, roster_csv, capsys):
    roster = tmp_path / "roster.csv"
    roster.write_text(roster_csv, encoding="utf-8")
    bulk = tmp_path / "bulk.zip"
    bulk.write_bytes(
        make_zip({"Doe_Jane_jane@school.edu_2025.zip": make_zip({"main.py": "pass\n"})})
    )
    out = tmp_path / "grades.csv"

    rc = main(["--roster", str(roster), "--submissions", str(bulk), "--export", str(out)])

    assert rc == 0
    printed = capsys.readouterr().out
    assert "Roster: 3 students" in printed
    assert "Imported 1 student submissions" in printed
    with open(out, encoding="utf-8", newline="") as f:
        rows = list(csv.reader(f))
    assert len(rows) == 4
    assert len(rows[0]) == 12


def test_invalid_roster_returns_error(tmp_path, capsys):
    roster = tmp_path / "roster.csv"
    roster.write_text("Full name\nJane\n", encoding="utf-8")

    rc = main(["--roster", str(roster), "--export", str(tmp_path / "x.csv")])

    assert rc == 2
    assert "Missing required columns" in capsys.readouterr().err
    assert not (tmp_path / "x.csv").exists()


def test_missing_roster(capsys):
    assert main([]) == 2
