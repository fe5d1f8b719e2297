"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond shaping).
Stores and the orchestrator do the work.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Principal:
    """An identity record as held by the principal store.

    email is always stored lowercased and stripped -- the store's UNIQUE
    constraint only works if every writer normalizes the same way.

    password_hash is the bcrypt hash. It never leaves the auth layer:
    use to_public() for anything that is returned to a caller.
    """

    name: str
    email: str
    password_hash: str
    role: str = "user"  # "user" or "admin"
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_public(self) -> dict:
        """Return the sanitized representation (credential excluded)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class Claims:
    """Identity attributes carried inside a session token."""

    id: int
    email: str
    role: str


@dataclass(frozen=True)
class VerifiedToken:
    """Result of a successful token verification.

    issued_at / expires_at are POSIX timestamps (seconds) exactly as they
    were embedded at signing time.
    """

    claims: Claims
    issued_at: int
    expires_at: int


@dataclass
class AuthOutcome:
    """What a successful register/authenticate hands back to the route layer."""

    principal: Principal
    token: str
