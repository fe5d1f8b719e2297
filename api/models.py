"""
API response models for authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Request bodies live in auth/schemas.py
because the auth orchestrator validates with the same models.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from auth.models import Principal

# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


class PrincipalResponse(BaseModel):
    """Sanitized principal. There is deliberately no password field."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    created_at: Optional[str] = None

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(**principal.to_public())


class AuthResponse(BaseModel):
    """Response for sign-up and sign-in. The token itself travels in the cookie."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: PrincipalResponse


class UsersResponse(BaseModel):
    """Response for GET /api/users."""

    model_config = ConfigDict(frozen=True)

    message: str
    users: list[PrincipalResponse]
    count: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    timestamp: str
    uptime: float
