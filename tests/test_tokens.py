import hashlib

import pytest

from jose import jwt

from conftest import ACCESS_SECRET, REFRESH_SECRET

from models.helpers import TokenType
from security.tokens import TokenIssuer, hash_token
from utils.exceptions import ConfigurationError


def test_short_secrets_are_refused_at_construction():
    with pytest.raises(ConfigurationError):
        TokenIssuer("too-short", REFRESH_SECRET)

    with pytest.raises(ConfigurationError):
        TokenIssuer(ACCESS_SECRET, "")


def test_access_token_round_trip(token_issuer):
    token = token_issuer.create_access_token("42", "admin", ["dashboard.access"])

    payload = token_issuer.verify_access_token(token)

    assert payload.user_id == "42"
    assert payload.type == TokenType.ACCESS
    assert payload.role == "admin"
    assert payload.permissions == ["dashboard.access"]
    assert payload.exp - payload.iat == 15 * 60


def test_refresh_token_lasts_seven_days(token_issuer):
    payload = token_issuer.verify_refresh_token(token_issuer.create_refresh_token("42"))

    assert payload.type == TokenType.REFRESH
    assert payload.exp - payload.iat == 7 * 24 * 3600


def test_consecutive_tokens_are_distinct(token_issuer):
    first = token_issuer.create_access_token("42", "admin", [])
    second = token_issuer.create_access_token("42", "admin", [])

    assert first != second


def test_token_classes_are_not_interchangeable(token_issuer):
    access = token_issuer.create_access_token("42", "admin", [])
    refresh = token_issuer.create_refresh_token("42")

    assert token_issuer.verify_refresh_token(access) is None
    assert token_issuer.verify_access_token(refresh) is None


def test_refresh_claims_signed_with_access_secret_are_rejected(token_issuer):
    forged = jwt.encode(
        {"user_id": "42", "type": "refresh", "jti": "x", "iat": 1, "exp": 4_000_000_000},
        ACCESS_SECRET,
        algorithm="HS256",
    )

    assert token_issuer.verify_refresh_token(forged) is None


def test_expiry_follows_the_clock(token_issuer, clock):
    token = token_issuer.create_access_token("42", "admin", [])

    clock.advance(minutes=14, seconds=59)
    assert token_issuer.verify_access_token(token) is not None

    clock.advance(seconds=1)
    assert token_issuer.verify_access_token(token) is None


def test_tampered_or_garbage_tokens_are_rejected(token_issuer):
    token = token_issuer.create_access_token("42", "admin", [])
    other = token_issuer.create_access_token("43", "owner", [])
    header, _, signature = token.split(".")
    tampered = ".".join([header, other.split(".")[1], signature])

    assert token_issuer.verify_access_token(tampered) is None
    assert token_issuer.verify_access_token("not-a-jwt") is None
    assert token_issuer.verify_access_token("") is None


def test_other_algorithms_are_rejected(token_issuer):
    token = jwt.encode(
        {"user_id": "42", "type": "access", "jti": "x", "iat": 1, "exp": 4_000_000_000},
        ACCESS_SECRET,
        algorithm="HS512",
    )

    assert token_issuer.verify_access_token(token) is None


def test_hash_token_is_sha256_hex():
    assert hash_token("abc") == hashlib.sha256(b"abc").hexdigest()
    assert hash_token("abc") != hash_token("abd")
