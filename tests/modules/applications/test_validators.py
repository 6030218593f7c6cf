"""
Unit tests for submission validators.
"""

import pytest

from recruitment_api.modules.applications.validators import (
    clean,
    clean_submission,
    is_email,
    is_valid_national_id,
    normalize_national_id,
    normalize_role,
    validate_submission,
)

VALID_CPF = "529.982.247-25"
VALID_CPF_DIGITS = "52998224725"
OTHER_VALID_CPF = "111.444.777-35"


class TestClean:
    """Tests for clean function."""

    def test_none_becomes_empty(self):
        assert clean(None) == ""

    def test_trims_and_truncates(self):
        assert clean("  abcdef  ", max_length=3) == "abc"

    def test_stringifies(self):
        assert clean(42) == "42"

    def test_clean_submission_applies_field_limits(self, sample_submission):
        sample_submission["phone"] = "9" * 100
        sample_submission["name"] = "x" * 500

        fields = clean_submission(sample_submission)

        assert len(fields["phone"]) == 40
        assert len(fields["name"]) == 200
        assert fields["submitted_at"] == ""


class TestNationalId:
    """Tests for CPF validation."""

    def test_reference_number_is_valid(self):
        assert is_valid_national_id(VALID_CPF)
        assert is_valid_national_id(VALID_CPF_DIGITS)
        assert is_valid_national_id(OTHER_VALID_CPF)

    @pytest.mark.parametrize("digit", "0123456789")
    def test_repeated_digit_is_invalid(self, digit):
        """All-identical digits pass the checksum but are rejected."""
        assert not is_valid_national_id(digit * 11)

    @pytest.mark.parametrize("length", [10, 12])
    def test_wrong_length_is_invalid(self, length):
        assert not is_valid_national_id(("52998224725" * 2)[:length])

    def test_every_single_digit_change_is_invalid(self):
        for position in range(11):
            for delta in range(1, 10):
                digits = list(VALID_CPF_DIGITS)
                digits[position] = str((int(digits[position]) + delta) % 10)
                mutated = "".join(digits)
                assert not is_valid_national_id(mutated), mutated

    def test_non_digits_are_ignored(self):
        assert is_valid_national_id(" 529 982 247 / 25 ")

    def test_normalize_national_id(self):
        assert normalize_national_id(VALID_CPF) == VALID_CPF_DIGITS
        assert normalize_national_id("1" * 20) == "1" * 11


class TestEmail:
    """Tests for e-mail check."""

    @pytest.mark.parametrize("value", ["a@b.co", "First.Last@Example.COM"])
    def test_valid(self, value):
        assert is_email(value)

    @pytest.mark.parametrize(
        "value", ["", "plain", "a@b", "a b@c.com", "a@@b.com", "joão@exemplo.com"]
    )
    def test_invalid(self, value):
        assert not is_email(value)


class TestValidateSubmission:
    """Tests for validate_submission function."""

    def test_valid_submission(self, sample_submission):
        result = validate_submission(clean_submission(sample_submission))
        assert result.is_valid
        assert result.error is None

    def test_missing_fields_are_all_listed_in_order(self, sample_submission):
        sample_submission["phone"] = ""
        sample_submission["city"] = "   "

        result = validate_submission(clean_submission(sample_submission))

        assert not result.is_valid
        assert result.error == "Missing required fields: phone, city"

    def test_missing_fields_checked_before_email(self, sample_submission):
        sample_submission["email"] = "not-an-email"
        sample_submission["street"] = None

        result = validate_submission(clean_submission(sample_submission))

        assert result.error == "Missing required fields: street"

    def test_invalid_email(self, sample_submission):
        sample_submission["email"] = "maria.example.com"
        result = validate_submission(clean_submission(sample_submission))
        assert result.error == "Invalid e-mail address."

    def test_invalid_national_id(self, sample_submission):
        sample_submission["national_id"] = "529.982.247-26"
        result = validate_submission(clean_submission(sample_submission))
        assert result.error == "Invalid national ID (CPF)."

    def test_length_cap_exceeded(self, sample_submission):
        sample_submission["city"] = "c" * 121
        result = validate_submission(clean_submission(sample_submission))
        assert result.error == "Some fields exceed the allowed length."

    def test_length_cap_boundary_is_accepted(self, sample_submission):
        sample_submission["city"] = "c" * 120
        assert validate_submission(clean_submission(sample_submission)).is_valid


class TestNormalizeRole:
    def test_case_and_whitespace_insensitive(self):
        assert normalize_role("  Warehouse Assistant ") == normalize_role("warehouse assistant")
