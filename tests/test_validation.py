"""Unit tests for auth/validation.py -- registration input and password policy."""

import pytest

from auth.errors import ValidationError
from auth.validation import PasswordPolicy, check_email, check_password, validate_registration, validate_role_name

POLICY = PasswordPolicy()


class TestPasswordPolicy:
    def test_compliant_password_has_no_errors(self):
        assert check_password("Str0ng!pw", POLICY) == []

    def test_too_short(self):
        errors = check_password("S0!a", POLICY)
        assert "Passwords must be at least 8 characters." in errors

    def test_lowercase_letters_only_reports_every_missing_class(self):
        errors = check_password("abcdef", POLICY)
        assert any("at least 8 characters" in e for e in errors)
        assert any("digit" in e for e in errors)
        assert any("uppercase" in e for e in errors)
        assert any("non alphanumeric" in e for e in errors)
        assert not any("lowercase" in e for e in errors)

    def test_non_ascii_letter_counts_as_non_alphanumeric(self):
        assert check_password("Passw0rd\u00e9", POLICY) == []
        assert any("non alphanumeric" in e for e in check_password("Passw0rd", POLICY))

    def test_unique_character_requirement(self):
        errors = check_password("Aa1!Aa1!Aa1!", PasswordPolicy(required_unique_chars=5))
        assert errors == ["Passwords must use at least 5 different characters."]

    def test_over_72_bytes_rejected(self):
        errors = check_password("Aa1!" + "x" * 80, POLICY)
        assert any("at most 72 bytes" in e for e in errors)

    def test_relaxed_policy(self):
        relaxed = PasswordPolicy(
            required_length=4,
            require_digit=False,
            require_lowercase=False,
            require_uppercase=False,
            require_non_alphanumeric=False,
            required_unique_chars=1,
        )
        assert check_password("aaaa", relaxed) == []


class TestEmail:
    @pytest.mark.parametrize("email", ["a@b.co", "first.last+tag@example.org", "  padded@example.com  "])
    def test_valid(self, email):
        assert check_email(email) == []

    @pytest.mark.parametrize("email", ["", "plain", "a@b", "a b@example.com", "a@@example.com"])
    def test_invalid(self, email):
        assert check_email(email) != []


class TestValidateRegistration:
    def test_valid_input_returns_none(self):
        assert validate_registration("a@example.com", "Str0ng!pw", "Str0ng!pw", POLICY) is None

    def test_collects_errors_for_all_fields(self):
        with pytest.raises(ValidationError) as info:
            validate_registration("nope", "abcdef", "abcdeg", POLICY)
        assert set(info.value.field_errors) == {"email", "password", "confirm_password"}

    def test_confirmation_mismatch_only(self):
        with pytest.raises(ValidationError) as info:
            validate_registration("a@example.com", "Str0ng!pw", "Str0ng!pX", POLICY)
        assert info.value.field_errors == {
            "confirm_password": ["The password and confirmation password do not match."]
        }


def test_role_name_is_trimmed_and_required():
    assert validate_role_name("  Editors ") == "Editors"
    with pytest.raises(ValidationError):
        validate_role_name("   ")
