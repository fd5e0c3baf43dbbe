"""
Unit tests for student identity extraction from archive entry names.
"""

import pytest

from codegrader.identity import (
    build_rules,
    dash_delimited,
    parse_student_info,
    repair_email,
)
from codegrader.models import Identity


class TestRepairEmail:
    def test_known_domain_suffix_gets_at_sign(self):
        assert repair_email("jgs32calvin.edu") == "jgs32@calvin.edu"

    def test_existing_at_sign_is_kept(self):
        assert repair_email("a@b.edu") == "a@b.edu"

    def test_generic_domain_keeps_digits_in_local_part(self):
        assert repair_email("jd42mail.example.com") == "jd42@mail.example.com"

    def test_no_domain_falls_back(self):
        assert repair_email("jdoe") == "jdoe@student.edu"

    def test_custom_fallback_domain(self):
        assert repair_email("jdoe", fallback_domain="uni.org") == "jdoe@uni.org"


class TestParseStudentInfo:
    def test_moodle_name_with_stripped_at(self):
        info = parse_student_info("Segura_Joshua_jgs32calvin.edu_2025-10-10_23-43-22")
        assert info == Identity(
            last_name="Segura",
            first_name="Joshua",
            email="jgs32@calvin.edu",
            date="2025-10-10_23-43-22",
        )

    def test_four_fields_with_full_email(self):
        info = parse_student_info("Doe_Jane_jane@school.edu_1700000000")
        assert info.email == "jane@school.edu"
        assert info.last_name == "Doe"
        assert info.first_name == "Jane"
        assert info.date == "1700000000"

    def test_four_fields_blank_names_default(self):
        info = parse_student_info("__abc12calvin.edu_2024")
        assert info.last_name == "Unknown"
        assert info.first_name == "Student"
        assert info.email == "abc12@calvin.edu"

    def test_embedded_at_with_two_tokens(self):
        info = parse_student_info("Doe_jane@school.edu")
        assert info.email == "jane@school.edu"
        assert info.last_name == "Doe"
        assert info.date == "jane@school.edu"

    def test_bare_email(self):
        info = parse_student_info("jane@school.edu")
        assert info.email == "jane@school.edu"
        assert info.first_name == "Student"

    def test_last_resort_uses_first_token(self):
        info = parse_student_info("Project-1")
        assert info.email == "project1@student.edu"
        assert info.date == "unknown"

    def test_last_resort_skips_empty_leading_token(self):
        info = parse_student_info("_Doe")
        assert info is not None
        assert info.last_name == "Doe"
        assert info.email == "doe@student.edu"

    def test_last_resort_keeps_non_ascii_names(self):
        info = parse_student_info("李明")
        assert info is not None
        assert info.last_name == "李明"
        assert info.email == "李明@student.edu"

    def test_empty_name_fails(self):
        assert parse_student_info("") is None
        assert parse_student_info("___") is None

    def test_custom_rules_control_domains(self):
        rules = build_rules(known_domains=("uni.org",), fallback_domain="uni.org")
        info = parse_student_info("Lee_Sam_slee7uni.org_2024", rules)
        assert info.email == "slee7@uni.org"


class TestDashDelimited:
    def test_finds_email_between_dashes(self):
        info = dash_delimited("Doe-Jane-jane@school.edu-2024")
        assert info.email == "jane@school.edu"
        assert info.last_name == "Doe"
        assert info.first_name == "Jane"

    @pytest.mark.parametrize("name", ["Doe_Jane", "Doe-Jane"])
    def test_no_email_returns_none(self, name):
        assert dash_delimited(name) is None
