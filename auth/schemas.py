"""
auth/schemas.py -- Input shapes for the sign-up and sign-in flows.

These Pydantic v2 models are the single definition of what a valid
registration or login looks like. FastAPI uses them to parse request bodies;
AuthService uses the same models when handed raw mappings, so the rules
cannot drift between the HTTP edge and the orchestrator.

Normalization (mode="before" validators) runs ahead of the format checks so
" Ada@Example.COM " is accepted and stored as "ada@example.com".

Passwords are never stripped: leading/trailing spaces are part of a secret.
Sign-in only requires a non-empty password -- creation-time strength rules
are not re-applied to existing accounts.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

_MAX_EMAIL_LENGTH = 255


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_email_length(value: str) -> str:
    if len(value) > _MAX_EMAIL_LENGTH:
        raise ValueError(f"email must be at most {_MAX_EMAIL_LENGTH} characters")
    return value


class SignUpRequest(BaseModel):
    """Body of POST /api/auth/sign-up."""

    name: str = Field(min_length=2, max_length=255)
    email: EmailStr
    password: str = Field(min_length=6, max_length=128)
    role: Literal["user", "admin"] = "user"

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)

    @field_validator("email")
    @classmethod
    def limit_email(cls, value: str) -> str:
        return _check_email_length(value)


class SignInRequest(BaseModel):
    """Body of POST /api/auth/sign-in."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return _normalize_email(value)

    @field_validator("email")
    @classmethod
    def limit_email(cls, value: str) -> str:
        return _check_email_length(value)


def format_validation_errors(errors: list[dict]) -> list[str]:
    """Flatten Pydantic error dicts into "field: message" strings.

    Accepts the output of ValidationError.errors() and of FastAPI's
    RequestValidationError.errors(); the latter prefixes locations with
    "body", which is dropped.
    """
    messages: list[str] = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc)
        msg = err.get("msg", "Invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return messages
