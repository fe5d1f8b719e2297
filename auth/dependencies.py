"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read by SessionTransport (cookie first, then
Authorization: Bearer), verified by TokenService, and resolved to a
Principal through the store. Components are taken from request.app.state,
where the API lifespan installs them.

try_get_current_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_admin() wraps get_current_principal() and raises HTTP 403 if not admin.

Layer rule: no imports from api/ or admission/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.errors import InvalidTokenError
from auth.models import Principal

logger = logging.getLogger("authgate.auth")


def try_get_current_principal(request: Request) -> Principal | None:
    """Return the Principal behind the request's session token, or None.

    Any InvalidTokenError (expired, tampered, malformed) is logged at debug
    level and treated as unauthenticated. Anything else propagates.
    """
    state = request.app.state
    token = state.transport.read(request)
    if not token:
        return None
    try:
        verified = state.tokens.verify(token)
    except InvalidTokenError as exc:
        logger.debug("Rejected session token: %s", type(exc).__name__)
        return None
    return state.store.get_by_id(verified.claims.id)


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return principal


def require_admin(request: Request) -> Principal:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    principal = get_current_principal(request)
    if principal.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return principal
