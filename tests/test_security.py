"""Tests for the hashing, code generation and session token primitives."""

from __future__ import annotations

import time

import jwt
import pytest

from credential_service.security.codes import CodeGenerator, hash_reset_token
from credential_service.security.passwords import PasswordHasher
from credential_service.security.tokens import InvalidSessionToken, TokenIssuer

SECRET = "unit-test-signing-key-0123456789abcdef"


@pytest.fixture()
def issuer() -> TokenIssuer:
    return TokenIssuer(secret=SECRET, issuer="credential-service.test", ttl_seconds=60)


def test_password_hash_is_salted_and_verifiable():
    hasher = PasswordHasher(rounds=4)

    first = hasher.hash("longpass1")
    second = hasher.hash("longpass1")

    assert first != second
    assert hasher.verify("longpass1", first)
    assert hasher.verify("longpass1", second)
    assert not hasher.verify("longpass2", first)


@pytest.mark.parametrize("digest", ["", "not-a-bcrypt-hash", "$2b$04$short"])
def test_password_verify_returns_false_for_malformed_digest(digest):
    assert PasswordHasher(rounds=4).verify("longpass1", digest) is False


def test_verification_codes_are_six_digits_without_leading_zero():
    codes = CodeGenerator()
    for _ in range(2000):
        code = codes.verification_code()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


def test_reset_tokens_are_unpredictable():
    codes = CodeGenerator()
    tokens = {codes.reset_token() for _ in range(100)}
    assert len(tokens) == 100
    assert all(len(token) >= 40 for token in tokens)
    token = next(iter(tokens))
    assert hash_reset_token(token) == hash_reset_token(token)
    assert hash_reset_token(token) != token


def test_temporary_password_meets_minimum_length_and_classes():
    codes = CodeGenerator()
    for _ in range(50):
        password = codes.temporary_password()
        assert len(password) == 12
        assert any(c.isupper() for c in password)
        assert any(c.islower() for c in password)
        assert any(c.isdigit() for c in password)
        assert any(not c.isalnum() for c in password)


def test_token_round_trip(issuer):
    token = issuer.issue("account-1")
    assert issuer.validate(token) == "account-1"


def test_token_rejects_expired():
    expired = TokenIssuer(secret=SECRET, issuer="credential-service.test", ttl_seconds=-5)
    token = expired.issue("account-1")
    with pytest.raises(InvalidSessionToken):
        expired.validate(token)


def test_token_rejects_foreign_signature_and_issuer(issuer):
    now = int(time.time())
    forged = jwt.encode(
        {"sub": "account-1", "iss": "credential-service.test", "iat": now, "exp": now + 60},
        "another-signing-key-0123456789abcdef",
        algorithm="HS256",
    )
    other_issuer = TokenIssuer(secret=SECRET, issuer="someone-else", ttl_seconds=60)

    with pytest.raises(InvalidSessionToken):
        issuer.validate(forged)
    with pytest.raises(InvalidSessionToken):
        issuer.validate(other_issuer.issue("account-1"))


def test_token_rejects_tampered_and_malformed(issuer):
    token = issuer.issue("account-1")
    header, payload, signature = token.split(".")
    flipped = "B" if signature[0] == "A" else "A"
    tampered = ".".join([header, payload, flipped + signature[1:]])

    for candidate in (tampered, "garbage", ""):
        with pytest.raises(InvalidSessionToken):
            issuer.validate(candidate)


def test_token_requires_subject(issuer):
    now = int(time.time())
    token = jwt.encode(
        {"iss": "credential-service.test", "iat": now, "exp": now + 60},
        SECRET,
        algorithm="HS256",
    )
    with pytest.raises(InvalidSessionToken):
        issuer.validate(token)
