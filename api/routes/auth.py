"""
api/routes/auth.py -- Sign-up, sign-in, sign-out and identity endpoints.

Routes:
  POST /api/auth/sign-up   -- create principal; 201 + session cookie
  POST /api/auth/sign-in   -- password login; 200 + session cookie
  POST /api/auth/sign-out  -- clear session cookie; always 200
  GET  /api/auth/me        -- current principal (requires auth)

Error mapping is done by the exception handlers in api/main.py:
  InputValidationError / RequestValidationError -> 400
  DuplicateIdentityError                        -> 409
  InvalidCredentialsError                       -> 401 (same body for unknown
                                                   email and wrong password)
  HashingError / TokenError                     -> opaque 500

The AuthService writes the cookie onto FastAPI's injected Response; FastAPI
merges its headers into the response it builds from the returned model.

Security:
  [C1] AuthService.authenticate() runs bcrypt even for unknown emails.
  [M5] Cache-Control: no-store on every response that sets or clears the cookie.

sign-up and sign-in are plain `def` routes: bcrypt is CPU-bound on purpose
and FastAPI runs sync routes in its thread pool, off the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import AuthResponse, MessageResponse, PrincipalResponse
from auth.dependencies import get_current_principal
from auth.models import Principal
from auth.schemas import SignInRequest, SignUpRequest
from auth.service import AuthService

# Auth policy:
# - POST /api/auth/sign-up:   public
# - POST /api/auth/sign-in:   public
# - POST /api/auth/sign-out:  public -- clearing a cookie needs no prior auth
# - GET  /api/auth/me:        requires auth (get_current_principal)
router = APIRouter()


@router.post("/auth/sign-up", status_code=201, response_model=AuthResponse)
def sign_up(request: Request, response: Response, body: SignUpRequest) -> AuthResponse:
    """Register a new principal and sign it in."""
    auth_service: AuthService = request.app.state.auth_service
    outcome = auth_service.register(body, response)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(
        message="User registered successfully",
        user=PrincipalResponse.from_principal(outcome.principal),
    )


@router.post("/auth/sign-in", response_model=AuthResponse)
def sign_in(request: Request, response: Response, body: SignInRequest) -> AuthResponse:
    """Authenticate with email and password; set the session cookie."""
    auth_service: AuthService = request.app.state.auth_service
    outcome = auth_service.authenticate(body, response)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(
        message="Signed in successfully",
        user=PrincipalResponse.from_principal(outcome.principal),
    )


@router.post("/auth/sign-out", response_model=MessageResponse)
async def sign_out(request: Request, response: Response) -> MessageResponse:
    """Clear the session cookie. Issued tokens stay valid until they expire."""
    auth_service: AuthService = request.app.state.auth_service
    auth_service.terminate(response)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return MessageResponse(message="Signed out successfully")


@router.get("/auth/me", response_model=PrincipalResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:
    """Return the principal behind the current session token."""
    return PrincipalResponse.from_principal(principal)
