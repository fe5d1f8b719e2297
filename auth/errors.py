"""
auth/errors.py -- Exception taxonomy for the authentication layer.

Two families:
  Caller errors (InputValidationError, DuplicateIdentityError,
      InvalidCredentialsError, InvalidTokenError and its subclasses) are
      turned into specific 4xx responses by the API layer.

  Internal faults (HashingError, TokenError) are cryptographic failures on
      our side. The API layer logs them and answers with an opaque 500 --
      their messages are never sent to the caller.

InvalidCredentialsError deliberately carries no hint of which check failed
(unknown email vs wrong password) so the response cannot be used to
enumerate accounts.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by auth/."""


class InputValidationError(AuthError):
    """Input failed shape or range validation.

    details is a list of human-readable messages, one per failing field.
    """

    def __init__(self, details: list[str]) -> None:
        super().__init__("Validation failed")
        self.details = details


class DuplicateIdentityError(AuthError):
    """A principal with the same (normalized) email already exists."""

    def __init__(self, email: str) -> None:
        super().__init__("User with this email already exists")
        self.email = email


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password. Intentionally indistinguishable."""

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class InvalidTokenError(AuthError):
    """The presented token cannot be trusted."""


class TokenExpiredError(InvalidTokenError):
    pass


class TokenSignatureError(InvalidTokenError):
    pass


class MalformedTokenError(InvalidTokenError):
    pass


class HashingError(AuthError):
    """bcrypt could not hash or check a password (e.g. a corrupt stored hash)."""


class TokenError(AuthError):
    """Signing a token failed for a reason unrelated to the caller."""
