from datetime import timedelta

import jwt
import pytest

from services.exceptions import MalformedTokenError
from utils.security import TokenCodec, TokenKind, TokenSettings


@pytest.mark.parametrize(
    "subject, roles",
    [
        ("alice", ["ROLE_USER"]),
        ("bob", ["ROLE_USER", "ROLE_ADMIN"]),
        ("carol", ["ROLE_ADMIN", "ROLE_USER", "ROLE_AUDITOR"]),
        ("dave", []),
    ],
)
def test_access_token_round_trips_subject_and_roles(codec, subject, roles):
    token = codec.issue_access_token(subject, roles)

    assert len(token.split(".")) == 3
    assert codec.is_valid_access(token) is True
    assert codec.subject_of(token) == subject
    assert codec.roles_of(token) == roles
    assert codec.kind_of(token) is TokenKind.ACCESS


def test_refresh_token_has_no_roles(codec):
    token = codec.issue_refresh_token("alice")

    claims = codec.parse(token)
    assert claims.kind is TokenKind.REFRESH
    assert claims.roles == ()
    assert codec.is_valid_refresh(token) is True


def test_expiry_follows_configured_ttls(codec, clock):
    access = codec.issue_access_token("alice", ["ROLE_USER"])
    refresh = codec.issue_refresh_token("alice")

    assert codec.expiry_of(access) == clock() + timedelta(minutes=30)
    assert codec.expiry_of(refresh) == clock() + timedelta(days=7)
    assert codec.seconds_until_expiry(access) == 30 * 60
    assert codec.parse(access).issued_at == clock()


def test_cross_kind_tokens_are_rejected(codec):
    access = codec.issue_access_token("alice", ["ROLE_USER"])
    refresh = codec.issue_refresh_token("alice")

    assert codec.is_valid_refresh(access) is False
    assert codec.is_valid_access(refresh) is False


def test_tokens_issued_in_same_second_differ(codec):
    assert codec.issue_refresh_token("alice") != codec.issue_refresh_token("alice")


@pytest.mark.parametrize(
    "token",
    ["", "aaa.bbb", "not.a.jwt", "not.a.valid.jwt.token.format"],
)
def test_predicates_return_false_for_garbage(codec, token):
    assert codec.is_valid_access(token) is False
    assert codec.is_valid_refresh(token) is False


def test_predicates_return_false_for_wrong_signature(codec, clock):
    other = TokenCodec(
        TokenSettings(secret="another-secret-key-that-is-long-enough-0000"),
        clock=clock,
    )
    forged_access = other.issue_access_token("alice", ["ROLE_ADMIN"])
    forged_refresh = other.issue_refresh_token("alice")

    assert codec.is_valid_access(forged_access) is False
    assert codec.is_valid_refresh(forged_refresh) is False


def test_truncated_token_is_rejected(codec):
    token = codec.issue_access_token("alice", ["ROLE_USER"])

    assert codec.is_valid_access(token[:-5]) is False
    with pytest.raises(MalformedTokenError):
        codec.parse(token[:-5])


def test_expired_tokens_are_invalid(codec, clock):
    access = codec.issue_access_token("alice", ["ROLE_USER"])
    refresh = codec.issue_refresh_token("alice")

    clock.advance(minutes=30)
    assert codec.is_valid_access(access) is False
    assert codec.is_valid_refresh(refresh) is True
    assert codec.seconds_until_expiry(access) == 0

    clock.advance(days=7)
    assert codec.is_valid_refresh(refresh) is False


def test_hand_built_expired_refresh_token_is_invalid(codec, settings, clock):
    now = int(clock().timestamp())
    token = jwt.encode(
        {
            "iss": settings.issuer,
            "sub": "alice",
            "type": "refresh",
            "iat": now - 3600,
            "exp": now - 1,
        },
        settings.secret,
        algorithm="HS256",
    )

    assert codec.parse(token).kind is TokenKind.REFRESH
    assert codec.is_valid_refresh(token) is False


def test_unknown_claims_are_ignored_and_unknown_type_rejected(codec, settings, clock):
    now = int(clock().timestamp())
    base = {"iss": settings.issuer, "sub": "alice", "iat": now, "exp": now + 60}

    extra = jwt.encode({**base, "type": "access", "roles": ["ROLE_USER"], "tenant": "t1"},
                       settings.secret, algorithm="HS256")
    odd = jwt.encode({**base, "type": "id"}, settings.secret, algorithm="HS256")

    assert codec.is_valid_access(extra) is True
    assert not hasattr(codec.parse(extra), "tenant")
    assert codec.is_valid_access(odd) is False
    with pytest.raises(MalformedTokenError):
        codec.parse(odd)


def test_missing_type_claim_is_malformed(codec, settings, clock):
    now = int(clock().timestamp())
    token = jwt.encode(
        {"iss": settings.issuer, "sub": "alice", "iat": now, "exp": now + 60},
        settings.secret,
        algorithm="HS256",
    )

    with pytest.raises(MalformedTokenError):
        codec.parse(token)


def test_foreign_issuer_is_rejected(codec, settings, clock):
    now = int(clock().timestamp())
    token = jwt.encode(
        {"iss": "someone-else", "sub": "alice", "type": "access", "iat": now, "exp": now + 60},
        settings.secret,
        algorithm="HS256",
    )

    assert codec.is_valid_access(token) is False


@pytest.mark.parametrize("claim", ["exp", "iat"])
def test_out_of_range_timestamps_are_malformed(codec, settings, clock, claim):
    now = int(clock().timestamp())
    payload = {"iss": settings.issuer, "sub": "alice", "type": "access", "iat": now, "exp": now + 60}
    payload[claim] = 10**20
    token = jwt.encode(payload, settings.secret, algorithm="HS256")

    assert codec.is_valid_access(token) is False
    assert codec.is_valid_refresh(token) is False
    with pytest.raises(MalformedTokenError):
        codec.subject_of(token)
    with pytest.raises(MalformedTokenError):
        codec.expiry_of(token)


@pytest.mark.parametrize("token", ["", "a.b", "not.a.valid.jwt.token.format"])
def test_accessors_raise_on_malformed_input(codec, token):
    with pytest.raises(MalformedTokenError):
        codec.subject_of(token)
    with pytest.raises(MalformedTokenError):
        codec.expiry_of(token)


def test_settings_from_config_reads_milliseconds():
    settings = TokenSettings.from_config(
        {
            "JWT_SECRET": "x" * 40,
            "ACCESS_TOKEN_TTL_MS": 1800000,
            "REFRESH_TOKEN_TTL_MS": "604800000",
            "JWT_ALGORITHM": "HS256",
        }
    )

    assert settings.access_ttl == timedelta(minutes=30)
    assert settings.refresh_ttl == timedelta(days=7)
    assert settings.issuer == "productivity-api"
