"""Unit tests for auth/tokens.py -- purpose-bound JWT issue and verify.

Covers:
- Access and refresh tokens decode to the issuing user id
- Purpose separation in both directions (WRONG_PURPOSE)
- Tampered, foreign-key and garbage tokens (BAD_SIGNATURE)
- Exclusive expiry boundary (EXPIRED at exactly exp)
- Distinct tokens for the same user in the same instant (jti)
"""

from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import ErrorReason, TokenError
from auth.tokens import TokenConfig, TokenIssuer, TokenPurpose


def test_access_token_round_trip(issuer, clock):
    token = issuer.issue_access_token(42)
    claims = issuer.verify(token, TokenPurpose.ACCESS)
    assert claims.user_id == 42
    assert claims.purpose is TokenPurpose.ACCESS
    assert claims.expires_at - claims.issued_at == timedelta(minutes=15)


def test_refresh_token_uses_longer_ttl(issuer):
    claims = issuer.verify(issuer.issue_refresh_token(7), TokenPurpose.REFRESH)
    assert claims.user_id == 7
    assert claims.expires_at - claims.issued_at == timedelta(days=10)


def test_access_token_rejected_as_refresh(issuer):
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(issuer.issue_access_token(1), TokenPurpose.REFRESH)
    assert exc_info.value.reason is ErrorReason.WRONG_PURPOSE


def test_refresh_token_rejected_as_access(issuer):
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(issuer.issue_refresh_token(1), TokenPurpose.ACCESS)
    assert exc_info.value.reason is ErrorReason.WRONG_PURPOSE


def test_purpose_claim_forged_under_wrong_key_fails_signature(issuer, token_config):
    """An access-keyed token relabelled as refresh still fails: the keys differ."""
    forged = jwt.encode(
        {"sub": "1", "typ": "refresh", "iat": 0, "exp": 4_000_000_000, "jti": "x"},
        token_config.access_secret,
        algorithm="HS256",
    )
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(forged, TokenPurpose.REFRESH)
    assert exc_info.value.reason is ErrorReason.BAD_SIGNATURE


def test_token_from_other_deployment_fails_signature(issuer, clock):
    other = TokenIssuer(
        TokenConfig(
            access_secret="z" * 40,
            refresh_secret="y" * 40,
            access_ttl=timedelta(minutes=15),
            refresh_ttl=timedelta(days=10),
        ),
        clock=clock,
    )
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(other.issue_access_token(1), TokenPurpose.ACCESS)
    assert exc_info.value.reason is ErrorReason.BAD_SIGNATURE


def test_tampered_payload_fails_signature(issuer):
    header, payload, signature = issuer.issue_access_token(1).split(".")
    tampered = ".".join([header, payload[:-2] + ("AA" if payload[-2:] != "AA" else "BB"), signature])
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(tampered, TokenPurpose.ACCESS)
    assert exc_info.value.reason in (ErrorReason.BAD_SIGNATURE, ErrorReason.WRONG_PURPOSE)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
def test_garbage_fails_signature(issuer, garbage):
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(garbage, TokenPurpose.ACCESS)
    assert exc_info.value.reason is ErrorReason.BAD_SIGNATURE


def test_valid_just_before_expiry(issuer, clock):
    token = issuer.issue_access_token(1)
    clock.advance(minutes=15, seconds=-1)
    assert issuer.verify(token, TokenPurpose.ACCESS).user_id == 1


def test_expired_at_exact_boundary(issuer, clock):
    token = issuer.issue_access_token(1)
    clock.advance(minutes=15)
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(token, TokenPurpose.ACCESS)
    assert exc_info.value.reason is ErrorReason.EXPIRED


def test_refresh_token_expires(issuer, clock):
    token = issuer.issue_refresh_token(1)
    clock.advance(days=11)
    with pytest.raises(TokenError) as exc_info:
        issuer.verify(token, TokenPurpose.REFRESH)
    assert exc_info.value.reason is ErrorReason.EXPIRED


def test_same_instant_tokens_differ(issuer):
    pair_one = issuer.issue_pair(1)
    pair_two = issuer.issue_pair(1)
    assert pair_one.access_token != pair_two.access_token
    assert pair_one.refresh_token != pair_two.refresh_token


def test_token_error_public_message_is_generic(issuer):
    with pytest.raises(TokenError) as exc_info:
        issuer.verify("not-a-jwt", TokenPurpose.ACCESS)
    assert exc_info.value.public_message == "Session expired, please log in again."
    assert exc_info.value.status_code == 401
