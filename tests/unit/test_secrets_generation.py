"""Tests for password generation."""

import string

import pytest

from credrotate.secrets.generation import PUNCTUATION, generate_password


class TestGeneratePassword:
    """Tests for generate_password."""

    def test_default_length(self) -> None:
        """Test the default password length."""
        assert len(generate_password()) == 32

    def test_each_class_present(self) -> None:
        """Test every character class is represented."""
        password = generate_password(8)

        assert any(c in string.ascii_uppercase for c in password)
        assert any(c in string.ascii_lowercase for c in password)
        assert any(c in string.digits for c in password)
        assert any(c in PUNCTUATION for c in password)

    def test_exclusions(self) -> None:
        """Test excluded characters never appear."""
        excluded = string.digits + PUNCTUATION

        for _ in range(20):
            password = generate_password(16, exclude_characters=excluded)
            assert not set(password) & set(excluded)

    def test_passwords_differ(self) -> None:
        """Test consecutive passwords differ."""
        assert generate_password() != generate_password()

    def test_too_short(self) -> None:
        """Test lengths below 8 are rejected."""
        with pytest.raises(ValueError, match="at least 8"):
            generate_password(7)

    def test_empty_alphabet(self) -> None:
        """Test excluding every character is rejected."""
        everything = string.ascii_letters + string.digits + PUNCTUATION

        with pytest.raises(ValueError, match="no alphabet"):
            generate_password(exclude_characters=everything)
