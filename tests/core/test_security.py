"""
Tests for token and password helpers.
"""
from datetime import timedelta

import pytest

from trave_social.core.security import (
    SecurityException,
    create_access_token,
    decode_token,
    extract_token_from_header,
    hash_password,
    verify_password,
)


class TestTokens:

    def test_round_trip_with_seven_day_expiry(self):
        payload = decode_token(create_access_token({"sub": "u1", "email": "a@example.com"}))

        assert payload["sub"] == "u1"
        assert payload["email"] == "a@example.com"
        assert payload["exp"] - payload["iat"] == 168 * 3600

    def test_expired_token(self):
        token = create_access_token({"sub": "u1"}, expires_delta=timedelta(seconds=-1))

        with pytest.raises(SecurityException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_tampered_token(self):
        token = create_access_token({"sub": "u1"})

        with pytest.raises(SecurityException):
            decode_token(token[:-2] + "xx")

    @pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer", "Bearer a b"])
    def test_bad_authorization_header(self, header):
        with pytest.raises(SecurityException):
            extract_token_from_header(header)

    def test_bearer_header(self):
        assert extract_token_from_header("Bearer abc.def") == "abc.def"
        assert extract_token_from_header("bearer abc.def") == "abc.def"


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret!")

        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("wrong", hashed)

    def test_missing_hash_never_verifies(self):
        assert not verify_password("anything", None)
