"""
auth/service.py -- Sign-up, sign-in and sign-out flows.

Pattern: Facade over the four auth components (PrincipalStore,
PasswordHasher, TokenService, SessionTransport). Each flow is a straight
line of steps; there is no server-side session, so nothing carries over
between requests except the token the client holds.

  register:      validate -> uniqueness pre-check -> hash -> persist
                 -> sign -> attach cookie -> principal
  authenticate:  validate -> look up -> verify (always runs bcrypt [C1])
                 -> sign -> attach cookie -> principal
  terminate:     clear cookie

Persisting a principal and issuing its token are separate steps. If the
client goes away after the insert commits, the account exists and a normal
sign-in completes the flow; nothing needs to be rolled back.

Errors are raised, never returned: InputValidationError,
DuplicateIdentityError and InvalidCredentialsError are caller errors; any
HashingError or TokenError propagates unchanged for the API layer to turn
into an opaque 500.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar, Union

from pydantic import BaseModel, ValidationError

from auth.errors import DuplicateIdentityError, InputValidationError, InvalidCredentialsError
from auth.models import AuthOutcome, Claims, Principal
from auth.passwords import PasswordHasher
from auth.schemas import SignInRequest, SignUpRequest, format_validation_errors
from auth.session import SessionTransport
from auth.store import PrincipalStore
from auth.tokens import TokenService

logger = logging.getLogger("authgate.auth")

_M = TypeVar("_M", bound=BaseModel)


def _parse(model: type[_M], payload: Union[_M, Mapping[str, Any]]) -> _M:
    """Return payload as a validated model instance.

    Already-parsed models (the FastAPI path) pass straight through.
    """
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise InputValidationError(format_validation_errors(exc.errors())) from exc


class AuthService:
    def __init__(
        self,
        store: PrincipalStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        transport: SessionTransport,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.transport = transport

    def register(self, payload: Union[SignUpRequest, Mapping[str, Any]], response) -> AuthOutcome:
        """Create a principal, sign it in, and attach the session cookie.

        Raises InputValidationError before touching the store, and
        DuplicateIdentityError when the email is taken.
        """
        data = _parse(SignUpRequest, payload)

        # Early exit saves a bcrypt round; the UNIQUE constraint in
        # create_principal() is what actually guarantees uniqueness.
        if self.store.find_principal(data.email) is not None:
            logger.info("Registration rejected, email already registered: %s", data.email)
            raise DuplicateIdentityError(data.email)

        password_hash = self.hasher.hash(data.password)
        principal = self.store.create_principal(
            name=data.name,
            email=data.email,
            password_hash=password_hash,
            role=data.role,
        )
        logger.info("New principal created with email: %s", principal.email)

        token = self._issue(principal, response)
        return AuthOutcome(principal=principal, token=token)

    def authenticate(self, payload: Union[SignInRequest, Mapping[str, Any]], response) -> AuthOutcome:
        """Check email/password, then sign in and attach the session cookie.

        Unknown email and wrong password raise the same
        InvalidCredentialsError, after the same amount of bcrypt work [C1].
        """
        data = _parse(SignInRequest, payload)

        principal = self.store.find_principal(data.email)
        if principal is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.burn(data.password)
            logger.warning("Sign-in failed for %s", data.email)
            raise InvalidCredentialsError()
        if not self.hasher.verify(data.password, principal.password_hash):
            logger.warning("Sign-in failed for %s", data.email)
            raise InvalidCredentialsError()

        token = self._issue(principal, response)
        logger.info("Principal signed in: %s", principal.email)
        return AuthOutcome(principal=principal, token=token)

    def terminate(self, response) -> None:
        """Clear the session cookie.

        Tokens already handed out stay valid until they expire; there is no
        server-side revocation.
        """
        self.transport.clear(response)
        logger.info("Principal signed out")

    def _issue(self, principal: Principal, response) -> str:
        token = self.tokens.sign(Claims(id=principal.id, email=principal.email, role=principal.role))
        self.transport.attach(response, token)
        return token
