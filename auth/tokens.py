"""
auth/tokens.py -- Signed, self-contained, time-bounded session tokens.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry the identity claims
       {id, email, role} plus iat (issued at) and exp (expiry), all bound
       together by the HMAC signature -- changing any byte invalidates it.

  TTL: fixed by Settings.token_ttl_seconds (24h default). sign() takes no
       lifetime argument so no caller can mint a long-lived token.

  Verification failures are typed. Malformed structure, bad signature and
       expiry raise different InvalidTokenError subclasses even though the
       API currently answers all three with the same 401. Internal signing
       faults raise TokenError and become an opaque 500.

  The key comes from the Settings object handed to the constructor; it is
       loaded once at startup and never rotated at runtime.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt
from jose.exceptions import JOSEError, JWTClaimsError

from auth.errors import MalformedTokenError, TokenError, TokenExpiredError, TokenSignatureError
from auth.models import Claims, VerifiedToken
from core.config import PRINCIPAL_ROLES, Settings

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Sign and verify session tokens.

    clock is injectable so tests can issue a token "in the past" and watch
    it expire without sleeping for a day.
    """

    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow) -> None:
        self._secret_key = settings.secret_key
        self.ttl = timedelta(seconds=settings.token_ttl_seconds)
        self._clock = clock

    def sign(self, claims: Claims) -> str:
        """Encode claims into a signed token that expires TTL after now."""
        issued_at = self._clock()
        payload = {
            "id": claims.id,
            "email": claims.email,
            "role": claims.role,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.ttl).timestamp()),
        }
        try:
            return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        except JOSEError as exc:
            logger.error("Token signing failed: %s", type(exc).__name__)
            raise TokenError("Failed to sign token") from exc

    def verify(self, token: str) -> VerifiedToken:
        """Verify signature, structure and expiry; return the embedded claims.

        Raises:
            MalformedTokenError: not a JWT, or required claims missing/mistyped.
            TokenSignatureError: signature does not match (tampered or foreign key).
            TokenExpiredError:   exp is in the past.
        """
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedTokenError("Token is not a well-formed JWT") from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTClaimsError as exc:
            raise MalformedTokenError(f"Token claims are invalid: {exc}") from exc
        except JWTError as exc:
            raise TokenSignatureError("Token signature verification failed") from exc

        return _verified_from_payload(payload)


def _verified_from_payload(payload: dict) -> VerifiedToken:
    # jose only checks exp/iat when present; both are mandatory for us.
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    if not isinstance(issued_at, int) or not isinstance(expires_at, int):
        raise MalformedTokenError("Token iat/exp claims are missing")
    user_id = payload.get("id")
    email = payload.get("email")
    role = payload.get("role")
    # bool is an int subclass; a token with id=true is not ours.
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise MalformedTokenError("Token id claim is missing or not an integer")
    if not isinstance(email, str) or not email:
        raise MalformedTokenError("Token email claim is missing")
    if role not in PRINCIPAL_ROLES:
        raise MalformedTokenError("Token role claim is missing or unknown")
    return VerifiedToken(
        claims=Claims(id=user_id, email=email, role=role),
        issued_at=issued_at,
        expires_at=expires_at,
    )
