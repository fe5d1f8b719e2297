"""Unit tests for auth/tokens.py -- TokenService.

Covers:
- sign/verify returns the same claims; expiry is issuance + TTL
- expired tokens fail with TokenExpiredError (clock moved back 25h at signing)
- tampering with header, payload or signature fails with InvalidTokenError
- foreign key, garbage input and missing claims map to distinct error kinds
- signing faults surface as TokenError
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from jose import jwt
from jose.exceptions import JWSError

from auth.errors import (
    InvalidTokenError,
    MalformedTokenError,
    TokenError,
    TokenExpiredError,
    TokenSignatureError,
)
from auth.models import Claims
from auth.tokens import TokenService
from conftest import make_settings

_CLAIMS = Claims(id=42, email="a@x.com", role="user")


@pytest.fixture
def tokens(settings) -> TokenService:
    return TokenService(settings)


def _tamper(token: str, segment: int) -> str:
    """Flip the middle character of one dot-separated segment."""
    parts = token.split(".")
    seg = parts[segment]
    i = len(seg) // 2
    replacement = "A" if seg[i] != "A" else "B"
    parts[segment] = seg[:i] + replacement + seg[i + 1 :]
    return ".".join(parts)


class TestSignAndVerify:
    def test_round_trip_claims(self, tokens):
        verified = tokens.verify(tokens.sign(_CLAIMS))
        assert verified.claims == _CLAIMS

    def test_admin_claims(self, tokens):
        claims = Claims(id=1, email="root@x.com", role="admin")
        assert tokens.verify(tokens.sign(claims)).claims == claims

    def test_expiry_is_issuance_plus_ttl(self, tokens):
        verified = tokens.verify(tokens.sign(_CLAIMS))
        assert verified.expires_at - verified.issued_at == 24 * 60 * 60

    def test_verify_is_repeatable(self, tokens):
        token = tokens.sign(_CLAIMS)
        assert tokens.verify(token) == tokens.verify(token)

    def test_token_has_three_segments(self, tokens):
        assert tokens.sign(_CLAIMS).count(".") == 2


class TestExpiry:
    def test_token_past_ttl_is_rejected(self, settings):
        issued = datetime.now(timezone.utc) - timedelta(hours=25)
        old = TokenService(settings, clock=lambda: issued)
        token = old.sign(_CLAIMS)
        with pytest.raises(TokenExpiredError):
            TokenService(settings).verify(token)

    def test_token_just_inside_ttl_is_accepted(self, settings):
        issued = datetime.now(timezone.utc) - timedelta(hours=23, minutes=59)
        token = TokenService(settings, clock=lambda: issued).sign(_CLAIMS)
        assert TokenService(settings).verify(token).claims == _CLAIMS

    def test_expired_is_an_invalid_token(self, settings):
        issued = datetime.now(timezone.utc) - timedelta(days=2)
        token = TokenService(settings, clock=lambda: issued).sign(_CLAIMS)
        with pytest.raises(InvalidTokenError):
            TokenService(settings).verify(token)


class TestTampering:
    @pytest.mark.parametrize("segment", [0, 1, 2], ids=["header", "payload", "signature"])
    def test_any_segment_change_is_rejected(self, tokens, segment):
        token = tokens.sign(_CLAIMS)
        with pytest.raises(InvalidTokenError):
            tokens.verify(_tamper(token, segment))

    def test_every_payload_character(self, tokens):
        token = tokens.sign(_CLAIMS)
        header, payload, signature = token.split(".")
        for i in range(len(payload)):
            replacement = "A" if payload[i] != "A" else "B"
            forged = f"{header}.{payload[:i]}{replacement}{payload[i + 1:]}.{signature}"
            with pytest.raises(InvalidTokenError):
                tokens.verify(forged)

    def test_role_escalation_is_rejected(self, settings, tokens):
        token = tokens.sign(_CLAIMS)
        header, _, signature = token.split(".")
        forged_payload = jwt.encode(
            {"id": 42, "email": "a@x.com", "role": "admin", "iat": 0, "exp": 9999999999},
            "some-other-key-0123456789abcdef0123",
            algorithm="HS256",
        ).split(".")[1]
        with pytest.raises(TokenSignatureError):
            tokens.verify(f"{header}.{forged_payload}.{signature}")


class TestErrorKinds:
    def test_foreign_key_is_signature_error(self, tokens):
        other = TokenService(make_settings(secret_key="another-secret-key-abcdefghijklmnopqrstuvwxyz"))
        with pytest.raises(TokenSignatureError):
            tokens.verify(other.sign(_CLAIMS))

    @pytest.mark.parametrize("garbage", ["", "not-a-token", "a.b", "!!!.???.***"])
    def test_garbage_is_malformed(self, tokens, garbage):
        with pytest.raises(MalformedTokenError):
            tokens.verify(garbage)

    def test_missing_identity_claims_is_malformed(self, settings, tokens):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode({"iat": now, "exp": now + 60}, settings.secret_key, algorithm="HS256")
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_unknown_role_is_malformed(self, settings, tokens):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"id": 1, "email": "a@x.com", "role": "superuser", "iat": now, "exp": now + 60},
            settings.secret_key,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_missing_exp_is_malformed(self, settings, tokens):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode({"id": 1, "email": "a@x.com", "role": "user", "iat": now}, settings.secret_key)
        with pytest.raises(MalformedTokenError):
            tokens.verify(token)

    def test_signing_fault_is_token_error(self, tokens):
        with patch("auth.tokens.jwt.encode", side_effect=JWSError("bad key")):
            with pytest.raises(TokenError):
                tokens.sign(_CLAIMS)

    def test_error_kinds_are_distinct(self):
        assert not issubclass(TokenExpiredError, TokenSignatureError)
        assert not issubclass(TokenSignatureError, MalformedTokenError)
        assert not issubclass(TokenError, InvalidTokenError)
