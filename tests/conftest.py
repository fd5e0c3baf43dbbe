import io
import sys
import zipfile
from pathlib import Path

import pytest

# Add src to sys.path so we can import codegrader
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from codegrader.models import RosterRecord  # noqa: E402


def make_zip(entries) -> bytes:
    """Build an in-memory zip from {name: str | bytes}."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as z:
        for name, data in entries.items():
            z.writestr(name, data)
    return buf.getvalue()


class FakeClock:
    """Manually advanced UTC clock for ChangeHistory."""

    def __init__(self):
        from datetime import datetime, timezone

        self.now = datetime(2025, 10, 10, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        from datetime import timedelta

        self.now = self.now + timedelta(seconds=seconds)


# Common test fixtures
@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def roster_csv():
    """Moodle-style grading worksheet export."""
    return (
        "Identifier,Full name,Email address,Status,Grade,Maximum Grade,Feedback comments\n"
        "Participant 1,Joshua Segura,jgs32@calvin.edu,Submitted,,20.00 pts,\n"
        "Participant 2,Jane Doe,JANE@school.edu ,Submitted,,20.00,\n"
        "Participant 3,Sam Lee,sam@calvin.edu,No submission,,,\n"
    )


@pytest.fixture
def records():
    return [
        RosterRecord(name="Joshua Segura", email="jgs32@calvin.edu"),
        RosterRecord(name="Jane Doe", email="jane@school.edu"),
    ]
