"""
IRDesk Platform - 安全工具测试
"""

from datetime import timedelta

import pytest

from backend.app.core.exceptions import AuthenticationException
from backend.app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    hash_password,
    hash_token,
    parse_duration,
    verify_password,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("7d", timedelta(days=7)),
        ("12h", timedelta(hours=12)),
        ("30m", timedelta(minutes=30)),
        ("45s", timedelta(seconds=45)),
        ("2w", timedelta(weeks=2)),
        ("3", timedelta(days=3)),
        ("soon", timedelta(days=14)),
        ("", timedelta(days=14)),
        ("7 d", timedelta(days=14)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


def test_password_hash_roundtrip():
    hashed = hash_password("secret123")
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


def test_token_hash_is_sha256_hex():
    digest = hash_token("abc")
    assert len(digest) == 64
    assert digest == hash_token("abc")


def test_access_and_refresh_tokens_use_separate_secrets():
    access = create_access_token("user-1", "a@example.com")
    refresh, expires_in = create_refresh_token("user-1", "a@example.com")

    claims = decode_access_token(access)
    assert claims["sub"] == "user-1"
    assert claims["email"] == "a@example.com"
    assert claims["jti"]

    refresh_claims = decode_refresh_token(refresh)
    assert refresh_claims["typ"] == "refresh"
    assert expires_in == timedelta(days=14)

    with pytest.raises(AuthenticationException):
        decode_access_token(refresh)
    with pytest.raises(AuthenticationException):
        decode_refresh_token(access)


def test_tokens_are_unique_per_issue():
    first = create_access_token("user-1", "a@example.com")
    second = create_access_token("user-1", "a@example.com")
    assert first != second
