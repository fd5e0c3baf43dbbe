"""
Unit tests for bulk submission archive parsing.

Archives are built in memory; no fixtures on disk.
"""

from conftest import make_zip

from codegrader.archive import detect_shape, parse_submission_archive
from codegrader.config import GraderConfig

MOODLE_NAME = "Segura_Joshua_jgs32calvin.edu_2025-10-10_23-43-22"


def _student_zip(files):
    return make_zip(files)


class TestNestedArchives:
    def test_root_level_student_archives(self):
        data = make_zip(
            {
                f"{MOODLE_NAME}.zip": _student_zip(
                    {"proj/main.py": "print('hi')\n", "proj/README.md": "# readme"}
                ),
                "Doe_Jane_jane@school.edu_1700000000.zip": _student_zip({"a.py": "x = 1\n"}),
            }
        )
        result = parse_submission_archive(data)

        assert result.shape == "nested_archive"
        assert result.total_students == 2
        assert result.successful_extractions == 2
        assert result.errors == []

        first = result.students[0]
        assert first.email == "jgs32@calvin.edu"
        assert first.display_name == "Joshua Segura (jgs32@calvin.edu)"
        assert first.submission_date == "2025-10-10_23-43-22"
        assert [f.name for f in first.files] == ["proj/main.py"]
        assert first.files[0].content == "print('hi')\n"

    def test_archive_without_code_files_is_reported(self):
        data = make_zip({f"{MOODLE_NAME}.zip": _student_zip({"notes.txt": "todo"})})
        result = parse_submission_archive(data)

        assert result.students == []
        assert result.total_students == 1
        assert result.errors == ["No code files found for jgs32@calvin.edu"]

    def test_corrupt_inner_archive_does_not_abort_others(self):
        data = make_zip(
            {
                "Broken_Bob_bob@school.edu_1.zip": b"definitely not a zip",
                "Doe_Jane_jane@school.edu_1.zip": _student_zip({"main.py": "pass\n"}),
            }
        )
        result = parse_submission_archive(data)

        assert [s.email for s in result.students] == ["jane@school.edu"]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Failed to process Broken_Bob_bob@school.edu_1.zip")

    def test_archives_in_subfolder(self):
        data = make_zip(
            {"submissions/Doe_Jane_jane@school.edu_1.zip": _student_zip({"main.py": "pass\n"})}
        )
        result = parse_submission_archive(data)

        assert result.shape == "nested_archive_in_subfolder"
        assert result.students[0].email == "jane@school.edu"

    def test_macos_resource_forks_are_ignored(self):
        data = make_zip(
            {
                "__MACOSX/._Doe_Jane_jane@school.edu_1.zip": b"\x00\x05\x16\x07",
                "Doe_Jane_jane@school.edu_1.zip": _student_zip({"main.py": "pass\n"}),
            }
        )
        result = parse_submission_archive(data)

        assert result.total_students == 1
        assert result.errors == []


class TestDirectoriesAndFlatFiles:
    def test_directory_per_student(self):
        data = make_zip(
            {
                "Doe_Jane_jane@school.edu_2024/src/main.py": "print(1)\n",
                "Doe_Jane_jane@school.edu_2024/src/util.py": "X = 2\n",
                "Doe_Jane_jane@school.edu_2024/notes.txt": "ignored",
            }
        )
        result = parse_submission_archive(data)

        assert result.shape == "directory_per_student"
        student = result.students[0]
        assert student.email == "jane@school.edu"
        assert [f.name for f in student.files] == ["main.py", "util.py"]

    def test_undecodable_file_is_reported(self):
        data = make_zip(
            {
                "Doe_Jane_jane@school.edu_2024/main.py": b"\xff\xfe\xfa",
                "Lee_Sam_sam@school.edu_2024/main.py": "ok = True\n",
            }
        )
        result = parse_submission_archive(data)

        assert [s.email for s in result.students] == ["sam@school.edu"]
        assert len(result.errors) == 1
        assert "Doe_Jane_jane@school.edu_2024/main.py" in result.errors[0]

    def test_flat_files_keyed_by_email(self):
        data = make_zip({"jane@school.edu.py": "print('flat')\n"})
        result = parse_submission_archive(data)

        assert result.shape == "flat_files"
        assert result.students[0].email == "jane@school.edu"
        assert result.students[0].files[0].name == "jane@school.edu.py"

    def test_flat_files_group_by_student_prefix(self):
        data = make_zip(
            {
                "Doe_Jane_j@x.edu_1_main.py": "import util\n",
                "Doe_Jane_j@x.edu_1_util.py": "X = 1\n",
            }
        )
        result = parse_submission_archive(data)

        assert result.shape == "flat_files"
        assert result.total_students == 1
        assert result.students[0].email == "j@x.edu"
        assert sorted(f.name for f in result.students[0].files) == [
            "Doe_Jane_j@x.edu_1_main.py",
            "Doe_Jane_j@x.edu_1_util.py",
        ]

    def test_configured_extensions(self):
        data = make_zip({"Doe_Jane_jane@school.edu_2024/Main.java": "class Main {}"})
        cfg = GraderConfig(code_extensions=[".java"])
        result = parse_submission_archive(data, config=cfg)

        assert result.students[0].files[0].name == "Main.java"


class TestTopLevelFailures:
    def test_not_a_zip(self):
        result = parse_submission_archive(b"plain text")

        assert result.students == []
        assert result.total_students == 0
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Failed to parse main ZIP file")

    def test_no_recognisable_shape(self):
        result = parse_submission_archive(make_zip({"readme.txt": "hello"}))

        assert result.shape is None
        assert result.errors == ["No student submissions found in archive"]

    def test_path_source(self, tmp_path):
        path = tmp_path / "bulk.zip"
        path.write_bytes(make_zip({"Doe_Jane_jane@school.edu_1.zip": _student_zip({"m.py": "1"})}))

        result = parse_submission_archive(str(path))

        assert result.successful_extractions == 1


def test_detect_shape_prefers_root_archives():
    names = ["a_b_c@d.edu_1.zip", "x_y_z@d.edu_1/main.py"]
    shape, candidates = detect_shape(names, (".py",))

    assert shape == "nested_archive"
    assert [c.key for c in candidates] == ["a_b_c@d.edu_1"]
